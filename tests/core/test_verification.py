"""
Unit tests for verification module.
"""

import hashlib

import pytest

from portenv.core.verification import (
    HashFormatError,
    compute_file_hash,
    hashes_match,
    normalize_hash,
)


class TestComputeFileHash:
    """Test compute_file_hash function."""

    def test_sha256_of_file(self, tmp_path):
        """Test hash equals hashlib over the full content."""
        data = b"portable toolchain" * 10000
        file_path = tmp_path / "artifact.zip"
        file_path.write_bytes(data)

        assert compute_file_hash(file_path) == hashlib.sha256(data).hexdigest()

    def test_sha512_supported(self, tmp_path):
        """Test SHA512 algorithm."""
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")

        assert compute_file_hash(file_path, "sha512") == hashlib.sha512(b"abc").hexdigest()

    def test_hash_is_lowercase(self, tmp_path):
        """Test returned digest is lowercase hex."""
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")

        digest = compute_file_hash(file_path)
        assert digest == digest.lower()

    def test_missing_file(self, tmp_path):
        """Test missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            compute_file_hash(tmp_path / "missing.zip")

    def test_unsupported_algorithm(self, tmp_path):
        """Test unsupported algorithm raises ValueError."""
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"abc")

        with pytest.raises(ValueError, match="Unsupported hash algorithm"):
            compute_file_hash(file_path, "md5")

    def test_progress_callback(self, tmp_path):
        """Test progress callback receives final byte count."""
        file_path = tmp_path / "a.bin"
        file_path.write_bytes(b"x" * 200000)
        calls = []

        compute_file_hash(file_path, progress_callback=lambda done, total: calls.append((done, total)))

        assert calls[-1] == (200000, 200000)


class TestNormalizeHash:
    """Test normalize_hash function."""

    def test_lowercases_digest(self):
        """Test uppercase digest is lowercased."""
        digest = hashlib.sha256(b"x").hexdigest()
        assert normalize_hash(digest.upper()) == digest

    def test_accepts_algorithm_prefix(self):
        """Test 'sha256:' prefix is stripped."""
        digest = hashlib.sha256(b"x").hexdigest()
        assert normalize_hash(f"sha256:{digest}") == digest

    def test_rejects_wrong_prefix(self):
        """Test mismatching algorithm prefix."""
        digest = hashlib.sha256(b"x").hexdigest()
        with pytest.raises(HashFormatError, match="does not match"):
            normalize_hash(f"sha512:{digest}")

    def test_rejects_non_hex(self):
        """Test non-hex characters are rejected."""
        with pytest.raises(HashFormatError, match="Invalid"):
            normalize_hash("z" * 64)

    def test_rejects_wrong_length(self):
        """Test short digest is rejected."""
        with pytest.raises(HashFormatError, match="length"):
            normalize_hash("ab" * 10)


class TestHashesMatch:
    """Test hashes_match function."""

    def test_case_insensitive(self):
        """Test comparison ignores case."""
        digest = hashlib.sha256(b"x").hexdigest()
        assert hashes_match(digest, digest.upper()) is True

    def test_different_hashes(self):
        """Test different digests do not match."""
        assert hashes_match("a" * 64, "b" * 64) is False
