"""Tests for file helpers."""

import errno

import pytest

from texture_annotator.utils.fileio import atomic_write_text, copy_file, describe_os_error


class TestAtomicWrite:
    """Tests for atomic_write_text."""

    def test_replaces_content(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("old")

        atomic_write_text(target, "new\n")

        assert target.read_text() == "new\n"
        assert not (tmp_path / "a.txt.tmp").exists()

    def test_failure_keeps_previous_file(self, tmp_path):
        target = tmp_path / "missing" / "a.txt"

        with pytest.raises(OSError):
            atomic_write_text(target, "data")

        assert not target.exists()

    def test_encoding_failure_leaves_no_temp_file(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("old")

        with pytest.raises(UnicodeEncodeError):
            atomic_write_text(target, "bad \ud800")

        assert target.read_text() == "old"
        assert not (tmp_path / "a.txt.tmp").exists()

    def test_copy_file_creates_directories(self, tmp_path):
        source = tmp_path / "a.png"
        source.write_bytes(b"x")

        copy_file(source, tmp_path / "out" / "deep" / "a.png")

        assert (tmp_path / "out" / "deep" / "a.png").read_bytes() == b"x"


class TestDescribeOsError:
    """Tests for describe_os_error."""

    def test_permission_denied(self):
        message = describe_os_error(OSError(errno.EACCES, "Permission denied"), "save", "a.jsonl")

        assert message.startswith("Permission denied while trying to save a.jsonl.")

    def test_disk_full(self):
        message = describe_os_error(OSError(errno.ENOSPC, "No space"), "write", "labels")

        assert message == "No space left on device to write labels."

    def test_other_error(self):
        message = describe_os_error(OSError(errno.EIO, "I/O error"), "read", "a.png")

        assert message == "Could not read a.png: I/O error"
