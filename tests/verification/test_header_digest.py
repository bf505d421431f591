"""Tests for digest header parsing."""

import pytest

from packwatch.verification.header_digest import (
    HeaderDigest,
    parse_header_digest,
)
from tests.verification.fakes import TEST_SHA256

SHA256_B64 = "auinVVUgn9bEQVfArtgBbnY/9DWhnPGG92hjFAFD/3I="
SHA512_B64 = (
    "DL9MrvOAR7upok5iGpYUhOXSqSF2qFnn6yffND3TTrmNU4psX02hzjAuwlC4IcwAHkbMl6cEmIKXGFpN9+mWAg=="
)
SHA512_HEX = (
    "0cbf4caef38047bba9a24e621a961484e5d2a92176a859e7eb27df343dd34eb9"
    "8d538a6c5f4da1ce302ec250b821cc001e46cc97a704988297185a4df7e99602"
)
MD5_B64 = "lHP90NiApDwht3eNNIchVw=="
MD5_HEX = "9473fdd0d880a43c21b7778d34872157"


def test_no_digest_headers() -> None:
    assert parse_header_digest({"Content-Type": "text/plain"}) is None


@pytest.mark.parametrize("header", ["Repr-Digest", "Content-Digest"])
def test_structured_field(header: str) -> None:
    """Test RFC 9530 ``sha-256=:<base64>:`` fields."""
    result = parse_header_digest({header: f"sha-256=:{SHA256_B64}:"})

    assert result == HeaderDigest("sha256", TEST_SHA256, header.lower())


def test_structured_field_prefers_sha512() -> None:
    """Test the strongest algorithm wins within one field."""
    value = f"sha-256=:{SHA256_B64}:, sha-512=:{SHA512_B64}:"

    result = parse_header_digest({"Repr-Digest": value})

    assert result is not None
    assert result.algorithm == "sha512"
    assert result.hex_value == SHA512_HEX


def test_legacy_digest_header() -> None:
    """Test RFC 3230 ``Digest: SHA-256=<base64>``."""
    result = parse_header_digest({"Digest": f"SHA-256={SHA256_B64}"})

    assert result == HeaderDigest("sha256", TEST_SHA256, "digest")


def test_goog_hash_header() -> None:
    """Test unknown algorithms in x-goog-hash are skipped."""
    value = f"crc32c=n03x6A==,md5={MD5_B64}"

    result = parse_header_digest({"x-goog-hash": value})

    assert result == HeaderDigest("md5", MD5_HEX, "x-goog-hash")


def test_amz_checksum_header() -> None:
    result = parse_header_digest({"x-amz-checksum-sha256": SHA256_B64})

    assert result == HeaderDigest(
        "sha256", TEST_SHA256, "x-amz-checksum-sha256"
    )


def test_plain_hex_checksum_header() -> None:
    """Test Artifactory style hex headers, matched case-insensitively."""
    result = parse_header_digest({"X-Checksum-Sha256": TEST_SHA256.upper()})

    assert result == HeaderDigest(
        "sha256", TEST_SHA256, "x-checksum-sha256"
    )


def test_strongest_algorithm_across_headers() -> None:
    headers = {
        "X-Checksum-Md5": MD5_HEX,
        "Digest": f"sha-256={SHA256_B64}",
        "X-Checksum-Sha512": SHA512_HEX,
    }

    result = parse_header_digest(headers)

    assert result is not None
    assert result.algorithm == "sha512"
    assert result.header == "x-checksum-sha512"


def test_malformed_values_are_ignored() -> None:
    """Test undecodable or wrong-length digests are not used."""
    headers = {
        "Digest": "SHA-256=not*base64",
        "X-Checksum-Sha256": "abc123",
        "Repr-Digest": f"sha-512=:{SHA256_B64}:",
    }

    assert parse_header_digest(headers) is None
