"""Vendor-supplied digest headers.

Recognized headers, checked in this order:

- ``Repr-Digest`` / ``Content-Digest`` (RFC 9530): ``sha-256=:<base64>:``
- ``Digest`` (RFC 3230): ``SHA-256=<base64>``
- ``x-goog-hash``: ``crc32c=<base64>,md5=<base64>``
- ``x-amz-checksum-sha256``: ``<base64>``
- ``X-Checksum-Sha512`` / ``X-Checksum-Sha256`` / ``X-Checksum-Md5``: hex

When several digests are present the strongest algorithm wins.
"""

import base64
import binascii
import re
from collections.abc import Mapping
from dataclasses import dataclass

from packwatch.constants import HEADER_DIGEST_PREFERENCE, HEX_LENGTHS
from packwatch.logger import get_logger

logger = get_logger(__name__)

_STRUCTURED_RE = re.compile(
    r"(sha-512|sha-256|md5)\s*=\s*:([A-Za-z0-9+/=]+):", re.IGNORECASE
)
_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

_ALGORITHM_ALIASES = {
    "sha-256": "sha256",
    "sha256": "sha256",
    "sha-512": "sha512",
    "sha512": "sha512",
    "md5": "md5",
}


@dataclass(slots=True, frozen=True)
class HeaderDigest:
    """A digest advertised by the server for the artifact."""

    algorithm: str
    hex_value: str
    header: str


def _b64_to_hex(value: str, algorithm: str) -> str | None:
    try:
        hex_value = base64.b64decode(value.strip(), validate=True).hex()
    except (binascii.Error, ValueError):
        return None
    if len(hex_value) != HEX_LENGTHS[algorithm]:
        return None
    return hex_value


def _plain_hex(value: str, algorithm: str) -> str | None:
    value = value.strip().lower()
    if len(value) != HEX_LENGTHS[algorithm] or not _HEX_RE.match(value):
        return None
    return value


def _parse_structured(header: str, value: str) -> list[HeaderDigest]:
    """Parse an RFC 9530 dictionary field."""
    found = []
    for name, b64 in _STRUCTURED_RE.findall(value):
        algorithm = _ALGORITHM_ALIASES[name.lower()]
        hex_value = _b64_to_hex(b64, algorithm)
        if hex_value:
            found.append(HeaderDigest(algorithm, hex_value, header))
    return found


def _parse_pairs(header: str, value: str) -> list[HeaderDigest]:
    """Parse ``alg=<base64>`` pairs (RFC 3230 ``Digest``, ``x-goog-hash``)."""
    found = []
    for item in value.split(","):
        name, sep, b64 = item.strip().partition("=")
        if not sep:
            continue
        algorithm = _ALGORITHM_ALIASES.get(name.strip().lower())
        if algorithm is None:
            continue
        hex_value = _b64_to_hex(b64, algorithm)
        if hex_value:
            found.append(HeaderDigest(algorithm, hex_value, header))
    return found


def parse_header_digest(headers: Mapping[str, str]) -> HeaderDigest | None:
    """Pick the strongest usable digest from response headers.

    Args:
        headers: Response headers; names are matched case-insensitively

    Returns:
        The preferred digest, or None if the server advertised none

    """
    lowered = {name.lower(): value for name, value in headers.items()}
    candidates: list[HeaderDigest] = []

    for name in ("repr-digest", "content-digest"):
        if name in lowered:
            candidates.extend(_parse_structured(name, lowered[name]))

    for name in ("digest", "x-goog-hash"):
        if name in lowered:
            candidates.extend(_parse_pairs(name, lowered[name]))

    if "x-amz-checksum-sha256" in lowered:
        hex_value = _b64_to_hex(lowered["x-amz-checksum-sha256"], "sha256")
        if hex_value:
            candidates.append(
                HeaderDigest("sha256", hex_value, "x-amz-checksum-sha256")
            )

    for algorithm in HEADER_DIGEST_PREFERENCE:
        name = f"x-checksum-{algorithm}"
        if name in lowered:
            hex_value = _plain_hex(lowered[name], algorithm)
            if hex_value:
                candidates.append(HeaderDigest(algorithm, hex_value, name))

    if not candidates:
        return None

    for algorithm in HEADER_DIGEST_PREFERENCE:
        for candidate in candidates:
            if candidate.algorithm == algorithm:
                logger.debug(
                    "🔍 Using %s digest from %s header",
                    algorithm,
                    candidate.header,
                )
                return candidate
    return None
