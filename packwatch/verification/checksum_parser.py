"""Checksum manifest parsing.

Handles the manifest formats upstream projects publish next to their
releases:

- ``<hex>  <filename>`` and ``<hex> *<filename>`` (coreutils ``sha*sum``)
- ``<hex>  ./dist/<filename>`` (paths are reduced to their basename)
- ``<filename> <hex>`` (reversed columns)
- ``SHA256 (<filename>) = <hex>`` (BSD ``sha256 -r`` style)
- electron-builder YAML (``latest-linux.yml``) with base64 digests

Line-based manifests that carry no entry for the requested file fall back to
the first line that starts with a SHA-256 or SHA-512 sized hex token.

Digests of the requested algorithm are returned as bare hex. A digest of
the other algorithm is returned as ``<algorithm>:<hex>`` so the caller
hashes the artifact with the algorithm the manifest actually used.
"""

import base64
import binascii
import re
from collections.abc import Sequence
from pathlib import PurePosixPath

import yaml

from packwatch.constants import (
    DEFAULT_HASH_TYPE,
    MANIFEST_HEX_LENGTHS,
    SHA256_HEX_LENGTH,
    SHA512_HEX_LENGTH,
)
from packwatch.logger import get_logger

logger = get_logger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_BSD_LINE_RE = re.compile(
    r"^(?:SHA-?(?:256|512))\s*\((?P<name>.+)\)\s*=\s*(?P<hash>[0-9a-fA-F]+)$",
    re.IGNORECASE,
)
_YAML_HASH_KEYS = ("sha512", "sha256")
_ALGORITHM_BY_HEX_LENGTH = {
    SHA256_HEX_LENGTH: "sha256",
    SHA512_HEX_LENGTH: "sha512",
}


def is_manifest_hex(token: str) -> bool:
    """Check whether a token looks like a SHA-256 or SHA-512 hex digest."""
    return len(token) in MANIFEST_HEX_LENGTHS and bool(_HEX_RE.match(token))


def _entry_basename(name: str) -> str:
    """Reduce a manifest file column to a bare file name."""
    name = name.strip().lstrip("*").strip()
    return PurePosixPath(name.replace("\\", "/")).name


def _tag(digest: str, found: str, wanted: str) -> str:
    """Prefix ``digest`` with its algorithm unless it is the wanted one."""
    digest = digest.lower()
    return digest if found == wanted else f"{found}:{digest}"


def _tag_by_length(digest: str, wanted: str) -> str:
    return _tag(digest, _ALGORITHM_BY_HEX_LENGTH[len(digest)], wanted)


class ChecksumManifestParser:
    """Extracts the expected digest for one file from a checksum manifest."""

    def parse(
        self,
        content: str,
        filename: str | Sequence[str],
        algorithm: str = DEFAULT_HASH_TYPE,
    ) -> str | None:
        """Find the digest for ``filename`` in manifest content.

        Args:
            content: Manifest text
            filename: Artifact name, or several names tried in order
            algorithm: Algorithm the caller hashes with by default

        Returns:
            Lowercase hex digest (prefixed with ``sha256:``/``sha512:`` when
            the manifest uses another algorithm), or None if the manifest
            has no usable entry

        """
        names = [filename] if isinstance(filename, str) else list(filename)
        algorithm = algorithm.lower()

        if self._looks_like_yaml(content):
            data = self._load_yaml(content)
            if data is not None:
                return self._parse_yaml_manifest(data, names, algorithm)

        return self._parse_line_manifest(content, names, algorithm)

    def _looks_like_yaml(self, content: str) -> bool:
        """Heuristic for electron-builder manifests.

        Line-based manifests never contain ``key: value`` pairs, so any
        ``files:``/``path:``/``sha512:`` key marks a YAML manifest.
        """
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if re.match(r"^-?\s*(files|path|url|sha512|sha256)\s*:", stripped):
                return True
        return False

    def _load_yaml(self, content: str) -> dict | None:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            logger.debug("Manifest is not valid YAML: %s", e)
            return None
        return data if isinstance(data, dict) else None

    def _parse_yaml_manifest(
        self, data: dict, names: list[str], algorithm: str
    ) -> str | None:
        """Parse electron-builder YAML (e.g. ``latest-linux.yml``).

        YAML manifests never use the first-digest fallback.
        """
        files = data.get("files")
        if not isinstance(files, list):
            files = []
        entries = [entry for entry in files if isinstance(entry, dict)]

        for filename in names:
            for file_info in entries:
                if _entry_basename(str(file_info.get("url", ""))) != filename:
                    continue
                digest = self._yaml_digest(file_info, algorithm)
                if digest:
                    logger.debug(
                        "✅ Found hash for %s in YAML files array", filename
                    )
                    return digest

            if _entry_basename(str(data.get("path", ""))) == filename:
                digest = self._yaml_digest(data, algorithm)
                if digest:
                    logger.debug(
                        "✅ Found hash for %s in YAML root", filename
                    )
                    return digest

        logger.info(
            "Could not find hash for %s in YAML manifest", " or ".join(names)
        )
        return None

    def _yaml_digest(self, entry: dict, algorithm: str) -> str | None:
        """Digest of an entry, preferring the key named after ``algorithm``."""
        keys = sorted(_YAML_HASH_KEYS, key=lambda key: key != algorithm)
        for key in keys:
            value = entry.get(key)
            if not value:
                continue
            value = str(value).strip()
            if is_manifest_hex(value):
                return _tag_by_length(value, algorithm)
            try:
                return _tag(convert_base64_to_hex(value), key, algorithm)
            except ValueError:
                logger.warning("Ignoring undecodable %s value in YAML", key)
        return None

    def _parse_line_manifest(
        self, content: str, names: list[str], algorithm: str
    ) -> str | None:
        """Parse a line-based manifest with first-hex-line fallback."""
        entries: list[tuple[str, str]] = []

        for line_num, raw_line in enumerate(content.splitlines(), 1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            bsd = _BSD_LINE_RE.match(line)
            if bsd:
                digest, name = bsd.group("hash"), bsd.group("name")
            else:
                parts = line.split(None, 1)
                digest = parts[0]
                name = parts[1] if len(parts) > 1 else ""
                if not is_manifest_hex(digest) and len(parts) > 1:
                    # Reversed columns: <filename> <hex>
                    tail = line.rsplit(None, 1)
                    if is_manifest_hex(tail[-1]):
                        digest, name = tail[-1], tail[0]

            if not is_manifest_hex(digest):
                logger.debug("   Line %d: no hex digest, skipping", line_num)
                continue

            entries.append((_entry_basename(name) if name else "", digest))

        for filename in names:
            for entry_name, digest in entries:
                if entry_name == filename:
                    logger.debug("✅ Found matching entry for %s", filename)
                    return _tag_by_length(digest, algorithm)

        if not entries:
            return None

        logger.warning(
            "⚠️  %s not listed in manifest; using first digest line",
            " or ".join(names),
        )
        return _tag_by_length(entries[0][1], algorithm)


def convert_base64_to_hex(base64_hash: str) -> str:
    """Convert a base64 encoded digest to lowercase hex.

    Raises:
        ValueError: If the value is not valid base64

    """
    try:
        return base64.b64decode(base64_hash, validate=True).hex()
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 hash: {base64_hash}") from e
