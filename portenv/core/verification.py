"""
Content hashing for downloaded artifacts.

Artifacts are identified by a SHA-256 digest over their full byte stream,
rendered as lowercase hex. Comparisons are case-insensitive and use a
constant-time compare.
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class HashFormatError(ValueError):
    """Exception raised when an expected hash is not a valid hex digest."""

    pass


_EXPECTED_LENGTHS = {"sha256": 64, "sha512": 128}


def compute_file_hash(
    file_path: Path,
    algorithm: str = "sha256",
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> str:
    """
    Compute cryptographic hash of file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm ('sha256' or 'sha512')
        progress_callback: Optional progress callback (bytes_read, total_bytes)

    Returns:
        Lowercase hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is not supported

    Example:
        >>> compute_file_hash(Path("node.zip"))
        'b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9'
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    algorithm = algorithm.lower()
    if algorithm not in _EXPECTED_LENGTHS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    hasher = hashlib.new(algorithm)

    file_size = file_path.stat().st_size
    bytes_read = 0

    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
            bytes_read += len(chunk)

            if progress_callback:
                progress_callback(bytes_read, file_size)

    return hasher.hexdigest()


def normalize_hash(value: str, algorithm: str = "sha256") -> str:
    """
    Normalize an expected hash string.

    Accepts an optional ``algorithm:`` prefix (``sha256:abc...``), strips
    whitespace and lowercases the digest.

    Raises:
        HashFormatError: If the value is not a hex digest of the right length
    """
    value = value.strip()
    if ":" in value:
        prefix, value = value.split(":", 1)
        if prefix.lower() != algorithm:
            raise HashFormatError(
                f"Hash algorithm '{prefix}' does not match expected '{algorithm}'"
            )
    value = value.strip().lower()

    if not value or any(c not in "0123456789abcdef" for c in value):
        raise HashFormatError(f"Invalid {algorithm} digest: {value!r}")
    if len(value) != _EXPECTED_LENGTHS[algorithm]:
        raise HashFormatError(
            f"Invalid {algorithm} digest length {len(value)}, "
            f"expected {_EXPECTED_LENGTHS[algorithm]}"
        )
    return value


def hashes_match(actual: str, expected: str) -> bool:
    """Compare two hex digests case-insensitively in constant time."""
    return secrets.compare_digest(
        actual.strip().lower().encode("utf-8"),
        expected.strip().lower().encode("utf-8"),
    )

