"""Expected-checksum resolution.

Sources are tried in priority order:

1. A checksum supplied directly by the caller (returned verbatim, no fetch)
2. The policy's remote checksum manifest
3. Nothing; the orchestrator decides whether that is acceptable
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from packwatch.exceptions import NetworkError
from packwatch.logger import get_logger
from packwatch.models.artifact import Artifact
from packwatch.models.policy import VerificationPolicy
from packwatch.services.fetcher import Fetcher, fetched_file
from packwatch.verification.checksum_parser import ChecksumManifestParser

logger = get_logger(__name__)


class ChecksumSource(str, Enum):
    """Where a resolved checksum came from."""

    DIRECT = "direct"
    MANIFEST = "manifest"


@dataclass(slots=True, frozen=True)
class ResolvedChecksum:
    """An expected digest and its provenance."""

    value: str
    source: ChecksumSource
    url: str = ""


class ChecksumResolver:
    """Determines the expected digest for an artifact."""

    def __init__(
        self,
        fetcher: Fetcher,
        parser: ChecksumManifestParser | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            fetcher: Network collaborator used for manifest downloads
            parser: Manifest parser (default parser if omitted)

        """
        self.fetcher = fetcher
        self.parser = parser or ChecksumManifestParser()

    async def resolve(
        self, policy: VerificationPolicy, artifact: Artifact
    ) -> ResolvedChecksum | None:
        """Resolve the expected checksum for ``artifact``.

        Args:
            policy: Verification policy of the application
            artifact: The downloaded file and its origin

        Returns:
            The expected checksum, or None if no source yields one. Manifest
            digests of another algorithm keep an ``<algorithm>:`` prefix.

        Raises:
            NetworkError: If the configured manifest cannot be downloaded

        """
        direct = artifact.direct_checksum.strip()
        if direct:
            logger.debug(
                "📋 Using caller-supplied checksum for %s", policy.name
            )
            return ResolvedChecksum(direct, ChecksumSource.DIRECT)

        if not policy.checksum_url:
            logger.debug("No checksum source configured for %s", policy.name)
            return None

        logger.debug(
            "📥 Fetching checksum manifest for %s: %s",
            policy.name,
            policy.checksum_url,
        )
        try:
            async with fetched_file(
                self.fetcher, policy.checksum_url, policy.allow_insecure_http
            ) as manifest_path:
                content = manifest_path.read_text(
                    encoding="utf-8", errors="replace"
                )
        except NetworkError as e:
            raise NetworkError(
                f"failed to download checksum file from "
                f"{policy.checksum_url}: {e.message}",
                target=policy.name,
            ) from e

        value = self.parser.parse(
            content,
            artifact.manifest_names,
            policy.checksum_algorithm.value,
        )
        if not value:
            logger.info(
                "Checksum manifest %s has no usable entry for %s",
                policy.checksum_url,
                artifact.basename,
            )
            return None

        return ResolvedChecksum(
            value, ChecksumSource.MANIFEST, policy.checksum_url
        )
