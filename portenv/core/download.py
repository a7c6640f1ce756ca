"""
Network download with progress tracking and streaming hashing.

This module provides:
- HTTP/HTTPS streaming downloads through requests
- Progress reporting (bytes, percentage, speed, ETA)
- Retry with exponential backoff for transport failures
- SHA-256 computed while the bytes are written
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from portenv.core.exceptions import NetworkError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


@dataclass
class DownloadResult:
    """Outcome of a completed download."""

    path: Path
    size_bytes: int
    sha256: str


ProgressCallback = Callable[[DownloadProgress], None]


def download_file(
    url: str,
    destination: Path,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: int = 30,
    max_retries: int = 3,
    session: Optional[requests.Session] = None,
) -> DownloadResult:
    """
    Download file from URL to destination.

    A partially written destination is removed before an error propagates,
    so the caller never sees a truncated file.

    Args:
        url: URL to download from
        destination: Local path to save file
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts for transport failures
        session: Optional requests session (defaults to module-level requests)

    Returns:
        DownloadResult with path, size and SHA-256 of the written bytes

    Raises:
        NetworkError: On a non-success HTTP status or after retries are exhausted
        ValueError: If URL or destination is empty

    Example:
        >>> result = download_file("https://nodejs.org/dist/node.zip", Path("node.zip"))
        >>> print(result.sha256)
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    for attempt in range(max_retries):
        try:
            return _download_with_progress(
                url=url,
                destination=destination,
                progress_callback=progress_callback,
                timeout=timeout,
                session=session,
            )
        except HTTPError as e:
            _remove_partial(destination)
            raise NetworkError(f"Download of {url} failed: {e}") from e
        except (Timeout, ConnectionError, RequestException) as e:
            _remove_partial(destination)
            if attempt == max_retries - 1:
                raise NetworkError(
                    f"Download of {url} failed after {max_retries} attempts: {e}"
                ) from e

            backoff_seconds = 2**attempt
            logger.warning(
                f"Download attempt {attempt + 1} failed: {e}. "
                f"Retrying in {backoff_seconds}s..."
            )
            time.sleep(backoff_seconds)
        except Exception:
            _remove_partial(destination)
            raise

    raise NetworkError(f"Download of {url} failed for unknown reason")


def _download_with_progress(
    url: str,
    destination: Path,
    progress_callback: Optional[ProgressCallback],
    timeout: int,
    session: Optional[requests.Session],
) -> DownloadResult:
    """Perform one streaming attempt."""
    logger.info(f"Downloading from {url}")

    getter = session.get if session is not None else requests.get
    response = getter(url, stream=True, timeout=timeout, allow_redirects=True)

    with response:
        response.raise_for_status()

        content_length = response.headers.get("content-length")
        total_size = int(content_length) if content_length else 0

        hasher = hashlib.sha256()
        downloaded = 0
        start_time = time.time()
        last_progress_time = 0.0

        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                hasher.update(chunk)
                downloaded += len(chunk)

                # Report at most every 0.5s, plus the final chunk
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    progress_callback(
                        _progress(downloaded, total_size, current_time - start_time)
                    )
                    last_progress_time = current_time

    if progress_callback and total_size == 0:
        progress_callback(_progress(downloaded, 0, time.time() - start_time))

    logger.info(f"Download complete: {destination} ({downloaded} bytes)")
    return DownloadResult(
        path=destination, size_bytes=downloaded, sha256=hasher.hexdigest()
    )


def _progress(downloaded: int, total_size: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total_size - downloaded if total_size > 0 else 0
    eta = remaining / speed if speed > 0 else 0

    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total_size if total_size > 0 else downloaded,
        percentage=(downloaded / total_size * 100) if total_size > 0 else 0,
        speed_bps=speed,
        eta_seconds=eta,
    )


def _remove_partial(destination: Path) -> None:
    try:
        destination.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not remove partial download {destination}: {e}")


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    # Unknown total size
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
