"""Shared fixtures: a Qt application, on-disk clip folders and fake playback surfaces."""

import json
import sys
from datetime import datetime, timedelta

import pytest
from PyQt6.QtCore import QCoreApplication

from camviewer import utils
from camviewer.models import Chunk, Clip, Segment
from camviewer.surfaces import PlaybackSurface

START = datetime(2023, 2, 23, 14, 16, 15)


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    yield app


def stamp(minute: int) -> datetime:
    return START + timedelta(minutes=minute)


def write_segment(directory, timestamp, camera, extension="mp4"):
    path = directory / utils.format_segment_name(timestamp, camera, extension)
    path.write_bytes(b"\x00")
    return path


@pytest.fixture
def make_clip():
    """
    Create a clip folder holding one file per (chunk, camera).

    ``chunks`` is a list of camera lists, one per minute starting at START.
    """
    def _make(parent, name, chunks, event=None):
        directory = parent / name
        directory.mkdir(parents=True)
        for minute, cameras in enumerate(chunks):
            for camera in cameras:
                write_segment(directory, stamp(minute), camera)
        if event is not None:
            text = event if isinstance(event, str) else json.dumps(event)
            (directory / "event.json").write_text(text, encoding="utf-8")
        return directory

    return _make


def build_clip(*chunks):
    """In-memory clip; each argument lists the cameras present in one chunk."""
    built = []
    for minute, cameras in enumerate(chunks):
        ts = stamp(minute)
        built.append(Chunk(ts, {c: Segment(f"/clip/{utils.format_segment_name(ts, c)}", ts, c)
                                for c in cameras}))
    return Clip(directory="/clip", name="clip", timestamp=stamp(0), chunks=tuple(built))


class FakeSurface(PlaybackSurface):
    """Records what the sequencer asks for; tests fire the signals by hand."""

    def __init__(self, name=""):
        super().__init__()
        self.name = name
        self.path = None
        self.playing = False
        self.visible = False
        self.opens = []

    def open(self, path):
        self.path = path
        self.playing = False
        self.opens.append(path)

    def play(self):
        self.playing = True

    def stop(self):
        self.playing = False

    def set_visible(self, visible):
        self.visible = visible

    def release(self):
        self.path = None
        self.playing = False

    def __repr__(self):
        return f"FakeSurface({self.name!r}, {self.path!r})"
