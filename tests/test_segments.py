"""Tests for segment file parsing and chunk grouping."""

from datetime import datetime

import pytest

from camviewer import utils
from camviewer.models import Segment
from camviewer.segments import group_chunks, group_segments, scan_segments

from conftest import stamp, write_segment

ALL_CAMERAS = ["front", "back", "left_repeater", "right_repeater"]


def _segment(minute, camera, path=None):
    ts = stamp(minute)
    return Segment(path or f"/clip/{utils.format_segment_name(ts, camera)}", ts, camera)


class TestSegmentNames:
    def test_parses_timestamp_camera_and_extension(self) -> None:
        parsed = utils.parse_segment_name("2023-02-23_14-16-15-left_repeater.mp4")
        assert parsed == (datetime(2023, 2, 23, 14, 16, 15), "left_repeater", "mp4")

    def test_format_reproduces_the_file_name(self) -> None:
        for name in ["2023-02-23_14-16-15-front.mp4",
                     "2023-06-03_15-54-27-right_repeater.mp4",
                     "2023-06-03_15-54-27-back.mov"]:
            timestamp, camera, extension = utils.parse_segment_name(name)
            assert utils.format_segment_name(timestamp, camera, extension) == name

    def test_rejects_names_off_convention(self) -> None:
        assert utils.parse_segment_name("notes.txt") is None
        assert utils.parse_segment_name("2023-02-23_14-16-15.mp4") is None
        assert utils.parse_segment_name("2023-2-23_14-16-15-front.mp4") is None
        assert utils.parse_segment_name("front-2023-02-23_14-16-15.mp4") is None

    def test_rejects_impossible_dates(self) -> None:
        assert utils.parse_segment_name("2023-02-30_14-16-15-front.mp4") is None
        assert utils.parse_segment_name("2023-02-23_25-16-15-front.mp4") is None

    def test_folder_timestamp_found_anywhere_in_name(self) -> None:
        assert utils.parse_folder_timestamp("2023-02-23_14-16-15") == datetime(2023, 2, 23, 14, 16, 15)
        assert utils.parse_folder_timestamp("saved 2023-02-23_14-16-15 honk") == datetime(2023, 2, 23, 14, 16, 15)
        assert utils.parse_folder_timestamp("Custom Folder Name") is None


class TestScanSegments:
    def test_yields_only_matching_files(self, tmp_path) -> None:
        write_segment(tmp_path, stamp(0), "front")
        write_segment(tmp_path, stamp(0), "back")
        (tmp_path / "event.json").write_text("{}")
        (tmp_path / "thumb.png").write_bytes(b"")
        (tmp_path / "2023-02-30_14-16-15-front.mp4").write_bytes(b"")

        segments = sorted(scan_segments(str(tmp_path)), key=lambda s: s.camera)

        assert [s.camera for s in segments] == ["back", "front"]
        assert all(s.timestamp == stamp(0) for s in segments)
        assert all(s.path.startswith(str(tmp_path)) for s in segments)

    def test_does_not_enter_subdirectories(self, tmp_path) -> None:
        nested = tmp_path / "nested"
        nested.mkdir()
        write_segment(nested, stamp(0), "front")

        assert list(scan_segments(str(tmp_path))) == []

    def test_segment_filename_round_trips(self, tmp_path) -> None:
        path = write_segment(tmp_path, stamp(3), "right_repeater")
        segment, = scan_segments(str(tmp_path))
        assert segment.filename == path.name


class TestGroupSegments:
    def test_full_clip_yields_ordered_chunks(self, tmp_path) -> None:
        for minute in (1, 0):
            for camera in ALL_CAMERAS:
                write_segment(tmp_path, stamp(minute), camera)

        chunks = group_chunks(str(tmp_path))

        assert [c.timestamp for c in chunks] == [stamp(0), stamp(1)]
        assert sum(len(c.segments) for c in chunks) == 8
        for chunk in chunks:
            assert sorted(chunk.cameras) == sorted(ALL_CAMERAS)
            assert all(s.timestamp == chunk.timestamp for s in chunk.segments.values())

    def test_group_without_front_is_dropped(self) -> None:
        segments = [_segment(0, "front"), _segment(0, "back"),
                    _segment(1, "back"), _segment(1, "left_repeater")]

        chunks = group_segments(segments)

        assert [c.timestamp for c in chunks] == [stamp(0)]

    def test_no_front_at_all_yields_nothing(self) -> None:
        segments = [_segment(0, "back"), _segment(1, "back")]
        assert group_segments(segments) == []

    def test_missing_secondary_keeps_chunk(self) -> None:
        segments = [_segment(0, c) for c in ALL_CAMERAS]
        segments += [_segment(1, c) for c in ALL_CAMERAS if c != "left_repeater"]

        chunks = group_segments(segments)

        assert len(chunks) == 2
        assert chunks[1].get("left_repeater") is None
        assert chunks[1].get("front") is not None

    def test_chunks_strictly_increase(self) -> None:
        segments = [_segment(m, "front") for m in (5, 2, 9, 0)]
        timestamps = [c.timestamp for c in group_segments(segments)]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)

    def test_duplicate_camera_keeps_smallest_path(self) -> None:
        ts = stamp(0)
        segments = [
            Segment("/clip/2023-02-23_14-16-15-front.mp4", ts, "front", "mp4"),
            Segment("/clip/2023-02-23_14-16-15-front.mov", ts, "front", "mov"),
        ]

        chunk, = group_segments(segments)

        assert chunk.get("front").path == "/clip/2023-02-23_14-16-15-front.mov"

    def test_custom_mandatory_camera(self) -> None:
        segments = [_segment(0, "back"), _segment(1, "front")]
        chunks = group_segments(segments, mandatory_camera="back")
        assert [c.timestamp for c in chunks] == [stamp(0)]

    def test_chunk_segments_are_read_only(self) -> None:
        chunk, = group_segments([_segment(0, "front")])
        with pytest.raises(TypeError):
            chunk.segments["back"] = _segment(0, "back")
