"""Unit tests for audio library scanning."""

import os

import pytest

from echoflow.library import find_tracks


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


class TestFindTracks:
    def test_pairs_subtitles_and_sorts(self, tmp_path):
        _touch(tmp_path / "beta.mp3")
        _touch(tmp_path / "Alpha.mp3")
        _touch(tmp_path / "Alpha.srt")
        _touch(tmp_path / "unit2" / "gamma.MP3")

        tracks = find_tracks(str(tmp_path))

        assert [t.display_name for t in tracks] == ["Alpha", "beta", "gamma"]
        assert tracks[0].subtitle_path == str(tmp_path / "Alpha.srt")
        assert tracks[1].subtitle_path is None
        assert tracks[2].audio_path == os.path.join(str(tmp_path), "unit2", "gamma.MP3")

    def test_skips_hidden_entries(self, tmp_path):
        _touch(tmp_path / ".hidden.mp3")
        _touch(tmp_path / ".cache" / "inside.mp3")
        _touch(tmp_path / "visible.mp3")
        assert [t.display_name for t in find_tracks(str(tmp_path))] == ["visible"]

    def test_other_extensions(self, tmp_path):
        _touch(tmp_path / "a.mp3")
        _touch(tmp_path / "b.m4a")
        _touch(tmp_path / "notes.txt")
        assert [t.display_name for t in find_tracks(str(tmp_path))] == ["a"]
        assert [t.display_name for t in find_tracks(str(tmp_path), [".mp3", ".M4A"])] == ["a", "b"]

    def test_srt_directory_is_not_a_pair(self, tmp_path):
        _touch(tmp_path / "a.mp3")
        (tmp_path / "a.srt").mkdir()
        assert find_tracks(str(tmp_path))[0].subtitle_path is None

    def test_same_name_in_different_folders_stays_distinct(self, tmp_path):
        _touch(tmp_path / "one" / "lesson.mp3")
        _touch(tmp_path / "two" / "lesson.mp3")
        first, second = find_tracks(str(tmp_path))
        assert first.display_name == second.display_name
        assert first != second

    def test_empty_directory(self, tmp_path):
        assert find_tracks(str(tmp_path)) == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_tracks(str(tmp_path / "missing"))

    def test_file_instead_of_directory(self, tmp_path):
        path = _touch(tmp_path / "a.mp3")
        with pytest.raises(ValueError):
            find_tracks(str(path))
