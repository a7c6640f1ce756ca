"""
File system utilities for portenv.

This module provides:
- Archive extraction (zip, tar.gz, tar.xz, tar.bz2) that skips unsafe entries
- Single wrapper folder normalization
- Safe file operations (atomic writes, staged directory moves, safe deletion)

Extraction never writes outside its destination: entries whose target path
resolves elsewhere are skipped and reported, not extracted.
"""

import logging
import os
import shutil
import sys
import tarfile
import tempfile
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

from portenv.core.exceptions import ArchiveError, UnsupportedArchiveFormat

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

CHUNK_SIZE = 64 * 1024


class FilesystemError(OSError):
    """Base exception for filesystem operations."""

    pass


@dataclass
class ExtractionReport:
    """Summary of an extraction run."""

    extracted: int = 0
    """Number of file entries written"""

    skipped: List[str] = field(default_factory=list)
    """Member names skipped because they resolve outside the destination"""


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Example:
        >>> is_relative_to(Path("/home/user/tools/node"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _safe_member_target(name: str, destination: Path) -> Optional[Path]:
    """
    Resolve an archive member name under destination.

    Returns:
        The resolved target path, or None when the member would land outside
        destination (parent references, absolute paths, drive letters).
    """
    cleaned = name.replace("\\", "/")
    if not cleaned or cleaned.startswith("/") or (len(cleaned) > 1 and cleaned[1] == ":"):
        return None

    root = destination.resolve()
    target = (root / cleaned).resolve()
    if not is_relative_to(target, root):
        return None
    return target


# ============================================================================
# Archive Extraction
# ============================================================================


def detect_archive_format(archive_path: Path) -> str:
    """
    Detect archive format from file signature, falling back to the suffix.

    Returns:
        'zip' or 'tar'

    Raises:
        ArchiveError: If the suffix names a known format but the content is unreadable
        UnsupportedArchiveFormat: If the format is not recognized
    """
    if zipfile.is_zipfile(archive_path):
        return "zip"
    try:
        if tarfile.is_tarfile(archive_path):
            return "tar"
    except OSError:
        pass

    name = archive_path.name.lower()
    if name.endswith((".zip", ".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tbz2", ".tar")):
        raise ArchiveError(f"Archive is corrupt or unreadable: {archive_path}")
    raise UnsupportedArchiveFormat(
        f"Unsupported archive format: {archive_path.name}. "
        "Supported: .zip, .tar.gz, .tar.xz, .tar.bz2"
    )


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> ExtractionReport:
    """
    Extract an archive to a destination directory.

    Every entry is checked before it is written; entries that would escape
    destination are skipped. On failure everything this call created inside
    destination is removed before the error propagates.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to
        progress_callback: Optional callback(current, total) for progress

    Returns:
        ExtractionReport with the number of files written and skipped entries

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveError: If the archive is missing, corrupt or extraction fails

    Example:
        >>> report = extract_archive("node.zip", "/tmp/node_extract")
        >>> print(report.extracted, report.skipped)
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveError(f"Archive not found: {archive_path}")

    archive_format = detect_archive_format(archive_path)

    created_destination = not destination.exists()
    destination.mkdir(parents=True, exist_ok=True)
    existing = set(destination.iterdir())

    logger.info(f"Extracting {archive_path} to {destination}")
    try:
        if archive_format == "zip":
            report = _extract_zip(archive_path, destination, progress_callback)
        else:
            report = _extract_tar(archive_path, destination, progress_callback)
    except Exception as e:
        _rollback_extraction(destination, existing, created_destination)
        if isinstance(e, ArchiveError):
            raise
        raise ArchiveError(f"Failed to extract {archive_path}: {e}") from e

    for name in report.skipped:
        logger.warning(f"Skipped unsafe archive entry: {name}")
    return report


def _rollback_extraction(destination: Path, existing: set, created: bool) -> None:
    try:
        if created:
            shutil.rmtree(destination, ignore_errors=True)
            return
        for item in destination.iterdir():
            if item in existing:
                continue
            if item.is_dir() and not item.is_symlink():
                shutil.rmtree(item, ignore_errors=True)
            else:
                item.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Cleanup after failed extraction incomplete: {e}")


def _extract_zip(
    archive_path: Path,
    destination: Path,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> ExtractionReport:
    """Extract a ZIP archive entry by entry."""
    report = ExtractionReport()
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()
        total = len(members)

        for i, info in enumerate(members):
            target = _safe_member_target(info.filename, destination)
            if target is None:
                report.skipped.append(info.filename)
            elif info.filename.endswith(("/", "\\")):
                target.mkdir(parents=True, exist_ok=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst, CHUNK_SIZE)
                mode = (info.external_attr >> 16) & 0o777
                if mode and not IS_WINDOWS:
                    os.chmod(target, mode)
                report.extracted += 1

            if progress_callback:
                progress_callback(i + 1, total)
    return report


def _extract_tar(
    archive_path: Path,
    destination: Path,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> ExtractionReport:
    """Extract a tar archive (any compression tarfile understands)."""
    report = ExtractionReport()
    with tarfile.open(archive_path, "r:*") as tar:
        members = tar.getmembers()
        total = len(members)

        for i, member in enumerate(members):
            target = _safe_member_target(member.name, destination)
            if target is None:
                report.skipped.append(member.name)
            elif member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.isfile():
                target.parent.mkdir(parents=True, exist_ok=True)
                src = tar.extractfile(member)
                if src is None:
                    raise ArchiveError(f"Cannot read archive member: {member.name}")
                with src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst, CHUNK_SIZE)
                if not IS_WINDOWS:
                    os.chmod(target, member.mode & 0o777)
                report.extracted += 1
            elif member.issym() and _symlink_stays_inside(member, target, destination):
                target.parent.mkdir(parents=True, exist_ok=True)
                os.symlink(member.linkname, target)
            else:
                # Devices, fifos, hard links and escaping symlinks
                report.skipped.append(member.name)

            if progress_callback:
                progress_callback(i + 1, total)
    return report


def _symlink_stays_inside(member: tarfile.TarInfo, target: Path, destination: Path) -> bool:
    if os.path.isabs(member.linkname):
        return False
    resolved = (target.parent / member.linkname).resolve()
    return is_relative_to(resolved, destination.resolve())


def normalize_root_directory(extract_dir: Path) -> Path:
    """
    Return the real root of an extracted tree.

    Archives that wrap everything in one top-level folder extract to a
    directory holding exactly that folder; the folder is the root then.
    Otherwise the extraction directory itself is the root.
    """
    items = list(Path(extract_dir).iterdir())

    if len(items) == 1 and items[0].is_dir():
        return items[0]

    return Path(extract_dir)


def archive_contains(archive_path: Union[str, Path], member: str) -> bool:
    """
    Check whether an archive holds a member named ``member``.

    A member matches on exact name or when its name ends with ``member``
    (``bin/gcc.exe`` matches ``mingw64/bin/gcc.exe``).
    """
    archive_path = Path(archive_path)
    wanted = member.replace("\\", "/")

    try:
        if detect_archive_format(archive_path) == "zip":
            with zipfile.ZipFile(archive_path, "r") as zf:
                names = zf.namelist()
        else:
            with tarfile.open(archive_path, "r:*") as tar:
                names = tar.getnames()
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
        raise ArchiveError(f"Cannot read archive {archive_path}: {e}") from e

    for name in names:
        name = name.replace("\\", "/")
        if name == wanted or name.endswith("/" + wanted):
            return True
    return False


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def _handle_remove_readonly(func, path, exc):
    """Error handler for read-only files (common in extracted Windows trees)."""
    if not os.access(path, os.W_OK):
        os.chmod(path, 0o777)
        func(path)
    else:
        raise exc


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_handle_remove_readonly)
        else:
            shutil.rmtree(
                path, onerror=lambda f, p, info: _handle_remove_readonly(f, p, info[1])
            )
    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def remove_quietly(path: Union[str, Path]) -> None:
    """Best-effort removal of a file or directory tree; failures are only logged."""
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path, ignore_errors=True)
        elif path.exists() or path.is_symlink():
            path.unlink()
    except OSError as e:
        logger.debug(f"Best-effort cleanup of {path} failed: {e}")


def recursive_copy(
    source: Union[str, Path],
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> int:
    """
    Recursively copy a directory tree, merging into destination.

    Args:
        source: Source directory
        destination: Destination directory
        progress_callback: Optional callback(files_copied, total_files)

    Returns:
        Number of files copied
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    destination.mkdir(parents=True, exist_ok=True)

    items = sorted(source.rglob("*"))
    total_files = sum(1 for item in items if not item.is_dir())
    copied = 0

    for item in items:
        dest_item = destination / item.relative_to(source)

        if item.is_dir() and not item.is_symlink():
            dest_item.mkdir(parents=True, exist_ok=True)
            continue

        dest_item.parent.mkdir(parents=True, exist_ok=True)
        if item.is_symlink():
            if dest_item.exists() or dest_item.is_symlink():
                dest_item.unlink()
            os.symlink(os.readlink(item), dest_item)
        else:
            shutil.copy2(item, dest_item)
        copied += 1

        if progress_callback:
            progress_callback(copied, total_files)

    return copied


def promote_directory(staging: Path, target: Path) -> None:
    """
    Move a fully built staging directory into its final location.

    Staging must sit on the same file system as target (a sibling) so the
    rename is atomic; a cross-device fallback copies and then renames.
    """
    staging = Path(staging)
    target = Path(target)

    if target.exists():
        raise FilesystemError(f"Target already exists: {target}")

    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        staging.rename(target)
    except OSError:
        shutil.move(str(staging), str(target))


def find_folder_containing(
    base: Path, relative_file: str, max_depth: int = 3
) -> Optional[Path]:
    """
    Find the first directory under base (depth 1..max_depth) holding relative_file.

    Example:
        >>> find_folder_containing(Path("E:/tools"), "bin/gcc.exe")
        WindowsPath('E:/tools/mingw64')
    """
    base = Path(base)
    level = [base]
    for _ in range(max_depth):
        next_level = []
        for directory in level:
            try:
                children = sorted(p for p in directory.iterdir() if p.is_dir())
            except OSError:
                continue
            for child in children:
                if (child / relative_file).exists():
                    return child
                next_level.append(child)
        level = next_level
    return None


# ============================================================================
# Temporary File/Directory Management
# ============================================================================


@contextmanager
def temporary_directory(
    prefix: str = "portenv_", parent: Optional[Path] = None
) -> Iterator[Path]:
    """
    Context manager for a uniquely named temporary directory.

    The directory is always removed on exit; removal failures are ignored.

    Example:
        >>> with temporary_directory("node_extract_") as tmp:
        ...     extract_archive("node.zip", tmp)
    """
    if parent is not None:
        Path(parent).mkdir(parents=True, exist_ok=True)
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))

    try:
        yield temp_dir
    finally:
        remove_quietly(temp_dir)


__all__ = [
    "FilesystemError",
    "ExtractionReport",
    "is_relative_to",
    "detect_archive_format",
    "extract_archive",
    "normalize_root_directory",
    "archive_contains",
    "atomic_write",
    "safe_rmtree",
    "remove_quietly",
    "recursive_copy",
    "promote_directory",
    "find_folder_containing",
    "temporary_directory",
]
