"""Hash calculation and comparison for artifact verification.

This module provides memory-efficient digest computation for downloaded
artifacts. Files are streamed in fixed-size chunks under a shared lock so a
concurrent writer cannot change the file halfway through hashing.
"""

import fcntl
import hashlib
from pathlib import Path

from packwatch.constants import (
    HASH_CHUNK_SIZE,
    SUPPORTED_HASH_ALGORITHMS,
    HashType,
)
from packwatch.logger import get_logger

logger = get_logger(__name__)


def normalize_hex(value: str) -> str:
    """Strip whitespace and lowercase a hex digest."""
    return "".join(value.split()).lower()


class HashCalculator:
    """Handles digest computation and comparison for local files."""

    def __init__(self, chunk_size: int = HASH_CHUNK_SIZE) -> None:
        """Initialize the hash calculator.

        Args:
            chunk_size: Number of bytes read per iteration

        """
        self.chunk_size = chunk_size

    @staticmethod
    def _new_hash(algorithm: str) -> "hashlib._Hash":
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        return hashlib.new(algorithm)

    def compute_digest(self, path: str | Path, algorithm: HashType) -> str:
        """Calculate a file digest using chunked reading.

        Args:
            path: Path to file to hash
            algorithm: Hash algorithm (sha256, sha512 or md5)

        Returns:
            Calculated digest as lowercase hexadecimal string

        Raises:
            OSError: If file cannot be opened or read
            ValueError: If the algorithm is not supported

        Example:
            >>> HashCalculator().compute_digest("file.AppImage", "sha256")
            '8d969eef6ecad3c29a3a629280e686cf0c3f5d5a86aff3ca12020c923adc6c92'

        """
        hasher = self._new_hash(algorithm)
        bytes_processed = 0

        with open(path, "rb") as f:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
            except OSError as lock_error:
                # Some filesystems (NFS, FUSE) refuse flock; read anyway
                logger.warning(
                    "Could not acquire file lock for %s: %s", path, lock_error
                )

            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                hasher.update(chunk)
                bytes_processed += len(chunk)

        digest = hasher.hexdigest().lower()
        logger.debug(
            "🧮 %s of %s (%s bytes): %s",
            algorithm.upper(),
            Path(path).name,
            f"{bytes_processed:,}",
            digest,
        )
        return digest

    @staticmethod
    def digests_match(actual: str, expected: str) -> bool:
        """Compare two hex digests case-insensitively, without truncation."""
        return normalize_hex(actual) == normalize_hex(expected)

    def compare_digest(
        self, path: str | Path, expected_hex: str, algorithm: HashType
    ) -> bool:
        """Calculate a file digest and compare it with an expected value.

        Args:
            path: Path to the file to verify
            expected_hex: The expected digest in hex
            algorithm: Hash algorithm used for the expected digest

        Returns:
            True if the digests match, False otherwise

        Raises:
            OSError: If file cannot be read

        """
        return self.digests_match(
            self.compute_digest(path, algorithm), expected_hex
        )

    def files_match(
        self, path_a: str | Path, path_b: str | Path, algorithm: HashType
    ) -> bool:
        """Check whether two files have identical digests."""
        return self.compute_digest(path_a, algorithm) == self.compute_digest(
            path_b, algorithm
        )
