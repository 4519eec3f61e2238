"""Tests for StorageIndex building across several roots."""

import os
from datetime import datetime
from types import SimpleNamespace

import psutil

from camviewer.models import ISSUE_ACCESS_DENIED, ISSUE_MISSING_ROOT
from camviewer.storage import StorageIndex, find_default_roots
from camviewer.workers import StorageScanWorker

ALL = ["front", "back", "left_repeater", "right_repeater"]


def test_empty_index():
    index = StorageIndex.empty()
    assert index.is_empty
    assert index.clip_count == 0
    assert index.roots == ()


def test_clips_sorted_newest_first_undated_last(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    make_clip(tmp_path, "2023-06-03_15-54-27", [ALL])
    make_clip(tmp_path, "Zebra", [ALL])
    make_clip(tmp_path, "Apple", [ALL])

    index = StorageIndex.build([str(tmp_path)])

    assert [c.name for c in index.clips] == [
        "06/03/2023 15:54:27", "02/23/2023 14:16:15", "Apple", "Zebra"]
    assert index.roots[0].path == str(tmp_path)
    assert len(index.roots[0].clips) == 4


def test_same_clip_through_two_roots_indexed_once(tmp_path, make_clip):
    clip_dir = make_clip(tmp_path / "TeslaCam" / "SavedClips", "2023-02-23_14-16-15", [ALL])

    index = StorageIndex.build([str(tmp_path / "TeslaCam"), str(tmp_path / "TeslaCam" / "SavedClips")])

    assert index.clip_count == 1
    assert index.clips[0].directory == str(clip_dir)
    assert [len(r.clips) for r in index.roots] == [1, 0]


def test_duplicate_roots_collapse(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])

    index = StorageIndex.build([str(tmp_path), str(tmp_path) + os.sep])

    assert len(index.roots) == 1
    assert index.clip_count == 1


def test_missing_root_reported_others_indexed(tmp_path, make_clip):
    make_clip(tmp_path / "good", "2023-02-23_14-16-15", [ALL])
    missing = str(tmp_path / "nowhere")

    index = StorageIndex.build([missing, str(tmp_path / "good")])

    assert index.clip_count == 1
    assert [r.path for r in index.roots] == [str(tmp_path / "good")]
    assert index.failed_roots == [missing]
    assert index.issues[0].kind == ISSUE_MISSING_ROOT


def test_unreadable_root_reported_others_indexed(tmp_path, make_clip, monkeypatch):
    good = tmp_path / "good"
    locked = tmp_path / "locked"
    make_clip(good, "2023-02-23_14-16-15", [ALL])
    make_clip(locked, "2023-06-03_15-54-27", [ALL])

    real_scandir = os.scandir

    def scandir(path="."):
        if os.path.abspath(path) == str(locked):
            raise PermissionError(13, "Permission denied", str(locked))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)

    index = StorageIndex.build([str(locked), str(good)])

    assert [c.timestamp for c in index.clips] == [datetime(2023, 2, 23, 14, 16, 15)]
    assert index.failed_roots == [str(locked)]
    assert index.issues[0].kind == ISSUE_ACCESS_DENIED


def test_progress_reported(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    calls = []

    StorageIndex.build([str(tmp_path)], progress=lambda pct, msg: calls.append(pct))

    assert calls[0] == 0
    assert calls[-1] == 100


def test_find_by_directory(tmp_path, make_clip):
    clip_dir = make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    index = StorageIndex.build([str(tmp_path)])

    assert index.find(str(clip_dir)).directory == str(clip_dir)
    assert index.find(str(tmp_path / "other")) is None


def test_rebuild_leaves_old_snapshot_untouched(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    first = StorageIndex.build([str(tmp_path)])

    make_clip(tmp_path, "2023-06-03_15-54-27", [ALL])
    second = StorageIndex.build([str(tmp_path)])

    assert first.clip_count == 1
    assert second.clip_count == 2


def test_default_roots_from_working_directory_and_drives(tmp_path, monkeypatch):
    (tmp_path / "cwd" / "TeslaCam").mkdir(parents=True)
    (tmp_path / "usb" / "TeslaCam").mkdir(parents=True)
    (tmp_path / "disk").mkdir()
    monkeypatch.chdir(tmp_path / "cwd")
    monkeypatch.setattr(psutil, "disk_partitions", lambda all=False: [
        SimpleNamespace(mountpoint=str(tmp_path / "usb"), opts="rw,removable"),
        SimpleNamespace(mountpoint=str(tmp_path / "disk"), opts="rw,removable"),
    ])

    assert find_default_roots() == [
        os.path.join(os.getcwd(), "TeslaCam"),
        os.path.join(str(tmp_path / "usb"), "TeslaCam"),
    ]


def test_default_roots_survive_drive_enumeration_failure(tmp_path, monkeypatch):
    def disk_partitions(all=False):
        raise OSError("no access")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(psutil, "disk_partitions", disk_partitions)

    assert find_default_roots() == []


def test_scan_worker_delivers_index(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    worker = StorageScanWorker([str(tmp_path)])
    results = []
    worker.finished.connect(results.append)

    worker.run()

    assert results[0].clip_count == 1


def test_scan_worker_stopped_emits_cancelled(tmp_path, make_clip):
    make_clip(tmp_path, "2023-02-23_14-16-15", [ALL])
    worker = StorageScanWorker([str(tmp_path)])
    finished, cancelled = [], []
    worker.finished.connect(finished.append)
    worker.cancelled.connect(lambda: cancelled.append(True))
    worker.progress.connect(lambda pct, msg: worker.stop())

    worker.run()

    assert cancelled == [True]
    assert finished == []
