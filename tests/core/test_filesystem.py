"""
Unit tests for filesystem module.

Covers archive extraction safety, wrapper folder normalization and the
staged directory helpers used by installs.
"""

import io
import os
import tarfile
from pathlib import Path

import pytest

from portenv.core.exceptions import ArchiveError, UnsupportedArchiveFormat
from portenv.core.filesystem import (
    FilesystemError,
    archive_contains,
    atomic_write,
    detect_archive_format,
    extract_archive,
    find_folder_containing,
    normalize_root_directory,
    promote_directory,
    recursive_copy,
    safe_rmtree,
    temporary_directory,
)


def _make_tar(path: Path, members) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for info, data in members:
            tar.addfile(info, io.BytesIO(data) if data is not None else None)
    return path


def _file_info(name: str, data: bytes) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = 0o644
    return info


class TestDetectArchiveFormat:
    """Test archive format detection."""

    def test_zip_by_signature(self, make_zip, tmp_path):
        archive = make_zip("tool.bin", {"a.txt": b"a"})
        assert detect_archive_format(archive) == "zip"

    def test_tar_by_signature(self, tmp_path):
        archive = _make_tar(tmp_path / "tool.tar.gz", [(_file_info("a.txt", b"a"), b"a")])
        assert detect_archive_format(archive) == "tar"

    def test_corrupt_zip(self, tmp_path):
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"definitely not a zip")
        with pytest.raises(ArchiveError, match="corrupt"):
            detect_archive_format(archive)

    def test_unsupported(self, tmp_path):
        archive = tmp_path / "tool.rar"
        archive.write_bytes(b"Rar!")
        with pytest.raises(UnsupportedArchiveFormat):
            detect_archive_format(archive)


class TestExtractArchive:
    """Test extract_archive function."""

    def test_extracts_files_and_directories(self, make_zip, tmp_path):
        """Test directory entries and file entries are created."""
        archive = make_zip(
            "tool.zip",
            {"bin/": None, "bin/tool.exe": b"binary", "empty/": None, "README": b"hi"},
        )
        destination = tmp_path / "out"

        report = extract_archive(archive, destination)

        assert (destination / "bin" / "tool.exe").read_bytes() == b"binary"
        assert (destination / "empty").is_dir()
        assert (destination / "README").read_bytes() == b"hi"
        assert report.extracted == 2
        assert report.skipped == []

    def test_traversal_entries_are_skipped(self, traversal_zip, tmp_path):
        """Test nothing is written outside the destination."""
        destination = tmp_path / "sandbox" / "out"

        report = extract_archive(traversal_zip, destination)

        assert (destination / "ok.txt").read_bytes() == b"fine"
        assert not (tmp_path / "evil.txt").exists()
        assert not (tmp_path / "sandbox" / "evil.txt").exists()
        assert not (tmp_path / "sandbox" / "outside.txt").exists()
        assert sorted(report.skipped) == sorted(
            ["../../evil.txt", "/abs.txt", "nested/../../outside.txt"]
        )
        assert report.extracted == 1

    def test_drive_letter_entry_skipped(self, make_zip, tmp_path):
        """Test Windows drive-qualified names are skipped."""
        archive = make_zip("drive.zip", {"C:/Windows/evil.dll": b"x", "ok.txt": b"ok"})

        report = extract_archive(archive, tmp_path / "out")

        assert report.skipped == ["C:/Windows/evil.dll"]

    def test_tar_escaping_symlink_skipped(self, tmp_path):
        """Test tar symlinks pointing outside the destination are skipped."""
        link = tarfile.TarInfo("bin/escape")
        link.type = tarfile.SYMTYPE
        link.linkname = "../../../etc/passwd"
        archive = _make_tar(
            tmp_path / "tool.tar.gz",
            [(_file_info("bin/tool", b"x"), b"x"), (link, None)],
        )
        destination = tmp_path / "out"

        report = extract_archive(archive, destination)

        assert (destination / "bin" / "tool").exists()
        assert not os.path.lexists(destination / "bin" / "escape")
        assert report.skipped == ["bin/escape"]

    def test_corrupt_archive_cleans_up(self, tmp_path):
        """Test a corrupt archive raises ArchiveError and leaves no destination."""
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"PK\x03\x04 truncated garbage")
        destination = tmp_path / "out"

        with pytest.raises(ArchiveError):
            extract_archive(archive, destination)

        assert not destination.exists()

    def test_failure_keeps_preexisting_content(self, make_zip, tmp_path, monkeypatch):
        """Test rollback only removes what the failed extraction created."""
        archive = make_zip("tool.zip", {"a.txt": b"a", "b.txt": b"b"})
        destination = tmp_path / "out"
        destination.mkdir()
        (destination / "keep.txt").write_text("keep")

        import portenv.core.filesystem as filesystem

        real_copy = filesystem.shutil.copyfileobj
        calls = []

        def failing_copy(src, dst, length=0):
            calls.append(1)
            if len(calls) == 2:
                raise OSError("disk full")
            return real_copy(src, dst, length)

        monkeypatch.setattr(filesystem.shutil, "copyfileobj", failing_copy)

        with pytest.raises(ArchiveError, match="disk full"):
            extract_archive(archive, destination)

        assert sorted(p.name for p in destination.iterdir()) == ["keep.txt"]

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveError, match="not found"):
            extract_archive(tmp_path / "missing.zip", tmp_path / "out")


class TestNormalizeRootDirectory:
    """Test single wrapper folder normalization."""

    def test_single_wrapper_folder(self, wrapped_zip, tmp_path):
        """Test foo/bin/tool.exe normalizes to foo as root."""
        destination = tmp_path / "out"
        extract_archive(wrapped_zip, destination)

        root = normalize_root_directory(destination)

        assert root == destination / "foo"
        assert (root / "bin" / "tool.exe").exists()

    def test_multiple_entries(self, tmp_path):
        (tmp_path / "bin").mkdir()
        (tmp_path / "README").write_text("x")

        assert normalize_root_directory(tmp_path) == tmp_path

    def test_single_file(self, tmp_path):
        (tmp_path / "tool.exe").write_text("x")

        assert normalize_root_directory(tmp_path) == tmp_path


class TestArchiveContains:
    """Test archive_contains function."""

    def test_exact_match(self, make_zip):
        archive = make_zip("a.zip", {"node.exe": b"x"})
        assert archive_contains(archive, "node.exe") is True

    def test_suffix_match(self, make_zip):
        archive = make_zip("a.zip", {"mingw64/bin/gcc.exe": b"x"})
        assert archive_contains(archive, "bin/gcc.exe") is True

    def test_partial_name_does_not_match(self, make_zip):
        archive = make_zip("a.zip", {"mingw64/bin/xgcc.exe": b"x"})
        assert archive_contains(archive, "gcc.exe") is False

    def test_missing(self, make_zip):
        archive = make_zip("a.zip", {"other.exe": b"x"})
        assert archive_contains(archive, "node.exe") is False


class TestSafeOperations:
    """Test staged directory helpers."""

    def test_atomic_write(self, tmp_path):
        target = tmp_path / "sub" / "file.txt"
        atomic_write(target, "content")
        assert target.read_text() == "content"
        assert [p.name for p in target.parent.iterdir()] == ["file.txt"]

    def test_safe_rmtree_requires_prefix(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        with pytest.raises(ValueError, match="Refusing"):
            safe_rmtree(outside, require_prefix=tmp_path / "apps")
        assert outside.exists()

    def test_safe_rmtree_refuses_prefix_itself(self, tmp_path):
        with pytest.raises(ValueError):
            safe_rmtree(tmp_path, require_prefix=tmp_path)

    def test_safe_rmtree_removes(self, tmp_path):
        victim = tmp_path / "apps" / "node"
        (victim / "bin").mkdir(parents=True)
        (victim / "bin" / "node.exe").write_text("x")

        safe_rmtree(victim, require_prefix=tmp_path / "apps")

        assert not victim.exists()

    def test_promote_directory(self, tmp_path):
        staging = tmp_path / ".node_staging"
        staging.mkdir()
        (staging / "node.exe").write_text("x")
        target = tmp_path / "node"

        promote_directory(staging, target)

        assert (target / "node.exe").exists()
        assert not staging.exists()

    def test_promote_directory_target_exists(self, tmp_path):
        staging = tmp_path / "staging"
        staging.mkdir()
        (tmp_path / "node").mkdir()

        with pytest.raises(FilesystemError, match="already exists"):
            promote_directory(staging, tmp_path / "node")

    def test_recursive_copy(self, tmp_path):
        source = tmp_path / "src"
        (source / "bin").mkdir(parents=True)
        (source / "bin" / "gcc.exe").write_text("gcc")
        (source / "README").write_text("r")

        copied = recursive_copy(source, tmp_path / "dst")

        assert copied == 2
        assert (tmp_path / "dst" / "bin" / "gcc.exe").read_text() == "gcc"

    def test_temporary_directory_removed(self, tmp_path):
        with temporary_directory("node_extract_", parent=tmp_path) as tmp:
            (tmp / "file").write_text("x")
            assert tmp.name.startswith("node_extract_")
        assert not tmp.exists()


class TestFindFolderContaining:
    """Test find_folder_containing function."""

    def test_finds_nested_folder(self, tmp_path):
        tool = tmp_path / "usb" / "tools" / "mingw64"
        (tool / "bin").mkdir(parents=True)
        (tool / "bin" / "gcc.exe").write_text("x")

        assert find_folder_containing(tmp_path, "bin/gcc.exe") == tool

    def test_respects_depth(self, tmp_path):
        tool = tmp_path / "a" / "b" / "c" / "d"
        tool.mkdir(parents=True)
        (tool / "node.exe").write_text("x")

        assert find_folder_containing(tmp_path, "node.exe", max_depth=3) is None
        assert find_folder_containing(tmp_path, "node.exe", max_depth=4) == tool

    def test_not_found(self, tmp_path):
        assert find_folder_containing(tmp_path, "pwsh.exe") is None
