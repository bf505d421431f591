"""Tests for HashCalculator digest computation and comparison."""

import hashlib
from pathlib import Path

import pytest

from packwatch.verification.hash_calculator import (
    HashCalculator,
    normalize_hex,
)
from tests.verification.fakes import TEST_SHA256


def test_compute_digest_sha256(test_file_path: Path) -> None:
    """Test SHA256 of a file with known content."""
    assert HashCalculator().compute_digest(test_file_path, "sha256") == (
        TEST_SHA256
    )


@pytest.mark.parametrize("algorithm", ["sha256", "sha512", "md5"])
def test_compute_digest_matches_hashlib(
    test_file_path: Path, algorithm: str
) -> None:
    """Test every supported algorithm against hashlib."""
    expected = hashlib.new(algorithm, b"test content").hexdigest()

    assert HashCalculator().compute_digest(test_file_path, algorithm) == (
        expected
    )


def test_compute_digest_streams_in_chunks(tmp_path: Path) -> None:
    """Test a file larger than the chunk size hashes identically."""
    data = bytes(range(256)) * 1000
    path = tmp_path / "large.bin"
    path.write_bytes(data)

    digest = HashCalculator(chunk_size=1024).compute_digest(path, "sha512")

    assert digest == hashlib.sha512(data).hexdigest()


def test_compute_digest_unsupported_algorithm(test_file_path: Path) -> None:
    """Test unsupported algorithms are rejected."""
    with pytest.raises(ValueError, match="Unsupported hash algorithm"):
        HashCalculator().compute_digest(
            test_file_path, "sha1"  # type: ignore[arg-type]
        )


def test_compute_digest_missing_file(tmp_path: Path) -> None:
    """Test an unreadable file raises OSError."""
    with pytest.raises(OSError):
        HashCalculator().compute_digest(tmp_path / "missing", "sha256")


def test_compare_digest_is_case_insensitive(test_file_path: Path) -> None:
    """Test uppercase expected digests still match."""
    calculator = HashCalculator()

    assert calculator.compare_digest(
        test_file_path, TEST_SHA256.upper(), "sha256"
    )


def test_compare_digest_is_deterministic(test_file_path: Path) -> None:
    """Test repeated comparisons give the same answer."""
    calculator = HashCalculator()
    wrong = "0" * 64

    results = {
        calculator.compare_digest(test_file_path, TEST_SHA256, "sha256")
        for _ in range(3)
    }
    mismatches = {
        calculator.compare_digest(test_file_path, wrong, "sha256")
        for _ in range(3)
    }

    assert results == {True}
    assert mismatches == {False}


def test_digests_match_does_not_truncate() -> None:
    """Test a prefix of the real digest is not accepted."""
    assert not HashCalculator.digests_match(TEST_SHA256, TEST_SHA256[:32])


def test_normalize_hex_strips_whitespace() -> None:
    """Test whitespace inside and around a digest is removed."""
    assert normalize_hex("  AB cd\nEF ") == "abcdef"


def test_files_match(tmp_path: Path) -> None:
    """Test two files are compared by digest."""
    a = tmp_path / "a.deb"
    b = tmp_path / "b.deb"
    c = tmp_path / "c.deb"
    a.write_bytes(b"same")
    b.write_bytes(b"same")
    c.write_bytes(b"different")
    calculator = HashCalculator()

    assert calculator.files_match(a, b, "sha256")
    assert not calculator.files_match(a, c, "sha256")


def test_compute_digest_continues_when_lock_fails(
    test_file_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test filesystems without flock support are still hashed."""

    def refuse_lock(fd: int, operation: int) -> None:
        raise OSError("locking not supported")

    monkeypatch.setattr(
        "packwatch.verification.hash_calculator.fcntl.flock", refuse_lock
    )

    assert HashCalculator().compute_digest(test_file_path, "sha256") == (
        TEST_SHA256
    )
