"""
Contract tests for the temp-artifact bridge.

Scratch files exist only inside their with-block; output files are replaced
wholesale and never left half-written.
"""

import os

import pytest

from audio_decoder.artifacts import (
    SCRATCH_PREFIX,
    normalize_extension,
    read_and_delete,
    scratch_input,
    scratch_output,
    write_output,
)
from audio_decoder.errors import ArtifactIOError, InvalidArgumentsError


class TestNormalizeExtension:

    @pytest.mark.parametrize("hint,expected", [
        ("mp3", "mp3"),
        (".MP3", "mp3"),
        (" flac ", "flac"),
        ("m4a", "m4a"),
    ])
    def test_valid_hints(self, hint, expected):
        assert normalize_extension(hint) == expected

    @pytest.mark.parametrize("hint", ["", "../etc", "mp3/x", "a b", "x" * 17])
    def test_invalid_hints(self, hint):
        with pytest.raises(InvalidArgumentsError, match="formatHint"):
            normalize_extension(hint)


class TestScratchInput:

    def test_file_holds_data_inside_block(self, scratch_dir):
        with scratch_input(b"abc", "mp3", scratch_dir) as path:
            assert os.path.basename(path).startswith(SCRATCH_PREFIX)
            assert path.endswith(".mp3")
            with open(path, "rb") as f:
                assert f.read() == b"abc"
        assert not os.path.exists(path)

    def test_removed_on_exception(self, scratch_dir):
        """The scratch file is removed even when the body raises."""
        with pytest.raises(RuntimeError):
            with scratch_input(b"abc", "wav", scratch_dir):
                raise RuntimeError("boom")
        assert os.listdir(scratch_dir) == []

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ArtifactIOError, match="temp file"):
            with scratch_input(b"abc", "wav", str(tmp_path / "missing")):
                pass


class TestScratchOutput:

    def test_reserved_path_removed(self, scratch_dir):
        with scratch_output("m4a", scratch_dir) as path:
            assert path.endswith(".m4a")
            assert os.path.exists(path)
        assert not os.path.exists(path)

    def test_read_and_delete(self, scratch_dir):
        with scratch_output("wav", scratch_dir) as path:
            with open(path, "wb") as f:
                f.write(b"payload")
            assert read_and_delete(path) == b"payload"
            assert not os.path.exists(path)

    def test_read_missing_output(self, tmp_path):
        with pytest.raises(ArtifactIOError, match="Cannot read output file"):
            read_and_delete(str(tmp_path / "gone.wav"))


class TestWriteOutput:

    def test_replaces_existing_file(self, tmp_path):
        path = tmp_path / "out.wav"
        path.write_bytes(b"old contents that are longer")

        assert write_output(str(path), b"new") == str(path)
        assert path.read_bytes() == b"new"

    def test_unwritable_destination(self, tmp_path):
        with pytest.raises(ArtifactIOError, match="Cannot open output file for writing"):
            write_output(str(tmp_path / "no" / "such" / "dir.wav"), b"data")
