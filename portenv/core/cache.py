"""
Content-verified download cache.

One artifact per tool lives at ``<cache_root>/<name>.<ext>``. A cached file
is reused when its recomputed SHA-256 matches the expected hash. When no
hash is known the cached file is trusted on presence alone: a poisoned or
stale file is not detected in that case, so the reuse is logged as a
warning.

Downloads go to ``<slot>.part`` and are renamed into the slot only after
the hash check passed, so a known-bad file never occupies a slot.
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from filelock import FileLock, Timeout as LockTimeout

from portenv.core.download import ProgressCallback, download_file
from portenv.core.exceptions import CacheLockError, IntegrityError
from portenv.core.filesystem import remove_quietly, safe_rmtree
from portenv.core.verification import compute_file_hash, hashes_match, normalize_hash

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".zip", ".exe")


def artifact_suffix(url: str, default: str = ".zip") -> str:
    """
    Pick the cache file extension for a URL.

    Example:
        >>> artifact_suffix("https://host/x/node-v22-win-x64.zip")
        '.zip'
        >>> artifact_suffix("https://win.rustup.rs/x86_64")
        '.zip'
    """
    path = urlparse(url).path.lower()
    for suffix in _ARCHIVE_SUFFIXES:
        if path.endswith(suffix):
            return suffix
    return default


class ContentCache:
    """
    Maps a tool name to a verified local copy of its artifact.

    Args:
        cache_root: Directory holding one file per tool
        lock_timeout: Seconds to wait for another process using the same slot
        session: Optional requests session used for downloads

    Example:
        >>> cache = ContentCache(Path("/tmp/portenv_cache"))
        >>> path = cache.resolve("node", url, expected_hash="ab12...")
    """

    def __init__(
        self,
        cache_root: Path,
        lock_timeout: int = 600,
        session: Optional[requests.Session] = None,
    ):
        self.cache_root = Path(cache_root)
        self.lock_timeout = lock_timeout
        self.session = session

    def slot_path(self, tool_name: str, url: str, default_suffix: str = ".zip") -> Path:
        """
        Deterministic cache location for a tool's artifact.

        ``default_suffix`` applies when the URL carries no known extension
        (installers served from extension-less URLs need ``.exe``).
        """
        return self.cache_root / f"{tool_name}{artifact_suffix(url, default_suffix)}"

    def resolve(
        self,
        tool_name: str,
        url: str,
        expected_hash: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
        default_suffix: str = ".zip",
    ) -> Path:
        """
        Return the path of a valid local copy of ``url``.

        Args:
            tool_name: Cache slot name
            url: Where to download the artifact from when the slot is empty or stale
            expected_hash: SHA-256 the artifact must have (None skips verification)
            progress_callback: Optional download progress callback
            default_suffix: Slot extension when the URL has none

        Returns:
            Path to the cached artifact

        Raises:
            NetworkError: If the download fails
            IntegrityError: If the downloaded bytes do not match expected_hash
            CacheLockError: If another process keeps the slot locked
        """
        if expected_hash is not None:
            expected_hash = normalize_hash(expected_hash)

        self.cache_root.mkdir(parents=True, exist_ok=True)
        slot = self.slot_path(tool_name, url, default_suffix)
        lock = FileLock(str(self.cache_root / f".{tool_name}.lock"), timeout=self.lock_timeout)

        try:
            with lock:
                cached = self._reuse(tool_name, slot, expected_hash)
                if cached is not None:
                    return cached
                return self._fetch(tool_name, url, slot, expected_hash, progress_callback)
        except LockTimeout as e:
            raise CacheLockError(
                f"Cache slot for {tool_name} is locked by another process "
                f"(waited {self.lock_timeout}s)"
            ) from e

    def _reuse(self, tool_name: str, slot: Path, expected_hash: Optional[str]) -> Optional[Path]:
        if not slot.is_file():
            return None

        if expected_hash is None:
            logger.warning(
                f"No hash for {tool_name}; reusing cached {slot.name} without verification"
            )
            return slot

        actual = compute_file_hash(slot)
        if hashes_match(actual, expected_hash):
            logger.info(f"Using cached {slot.name} (hash verified)")
            return slot

        logger.warning(
            f"Cached {slot.name} does not match the expected hash "
            f"(expected {expected_hash}, got {actual}); downloading again"
        )
        slot.unlink()
        return None

    def _fetch(
        self,
        tool_name: str,
        url: str,
        slot: Path,
        expected_hash: Optional[str],
        progress_callback: Optional[ProgressCallback],
    ) -> Path:
        partial = slot.with_name(slot.name + ".part")
        remove_quietly(partial)

        result = download_file(
            url, partial, progress_callback=progress_callback, session=self.session
        )

        if expected_hash is not None and not hashes_match(result.sha256, expected_hash):
            remove_quietly(partial)
            raise IntegrityError(tool_name, expected_hash, result.sha256)

        partial.replace(slot)
        logger.debug(f"Cached {tool_name} at {slot} (sha256 {result.sha256})")
        return slot

    def clear(self) -> bool:
        """
        Remove the whole cache root.

        Returns:
            True if something was removed
        """
        if not self.cache_root.exists():
            return False
        safe_rmtree(self.cache_root)
        logger.info(f"Removed download cache {self.cache_root}")
        return True
