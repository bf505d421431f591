"""Detached GPG signature verification.

The signature is fetched from the policy's explicit ``sig_url`` or from
``<download_url>.sig``; without an explicit URL a missing ``.sig`` falls back
to ``<download_url>.asc`` once, after a lightweight existence probe. The
signing key is then materialized in an ephemeral keyring, its fingerprint
is compared with the configured one and the signature is checked. Every
attempt emits exactly one signature event before returning or raising; its
``url`` is always a signature URL, never the artifact URL.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from packwatch.constants import (
    SENTINEL_BAD_SIGNATURE,
    SENTINEL_DOWNLOAD_ERROR,
    SENTINEL_KEY_IMPORT_ERROR,
    SENTINEL_KEY_NOT_FOUND,
    SENTINEL_NO_HELPER,
    SIGNATURE_ALGORITHM,
    SIGNATURE_FALLBACK_SUFFIX,
    SIGNATURE_SUFFIX,
)
from packwatch.exceptions import GPGError, NetworkError, PackwatchError
from packwatch.logger import get_logger
from packwatch.models.artifact import Artifact
from packwatch.models.events import EventKind, VerificationEvent
from packwatch.models.policy import VerificationPolicy
from packwatch.services.fetcher import Fetcher
from packwatch.services.hooks import EventSink
from packwatch.verification.gpg import (
    GPGUnavailableError,
    normalize_fingerprint,
)
from packwatch.verification.keyring import EphemeralKeyring, KeyringManager

logger = get_logger(__name__)


class SignatureVerifier:
    """Verifies an artifact's detached signature against a pinned key."""

    def __init__(
        self,
        fetcher: Fetcher,
        keyring_manager: KeyringManager,
        sink: EventSink,
    ) -> None:
        """Initialize the signature verifier.

        Args:
            fetcher: Network collaborator for signature downloads
            keyring_manager: Provides keyrings holding the signing key
            sink: Receives the signature event

        """
        self.fetcher = fetcher
        self.keyring_manager = keyring_manager
        self.sink = sink

    def _emit(
        self,
        sink: EventSink,
        policy: VerificationPolicy,
        artifact: Artifact,
        success: bool,
        actual: str,
        url: str,
    ) -> None:
        sink.emit(
            VerificationEvent(
                kind=EventKind.SIGNATURE,
                success=success,
                algorithm=SIGNATURE_ALGORITHM,
                expected=policy.gpg_fingerprint or "",
                actual=actual,
                file=str(artifact.path),
                url=url,
                app=artifact.app_name,
                key_id=policy.gpg_key_id or "",
                fingerprint=policy.gpg_fingerprint or "",
            )
        )

    async def verify(
        self,
        policy: VerificationPolicy,
        artifact: Artifact,
        sink: EventSink | None = None,
    ) -> bool:
        """Verify the detached signature of ``artifact``.

        Args:
            policy: Verification policy with key ID and fingerprint
            artifact: The downloaded file and its origin
            sink: Overrides the configured event sink for this call

        Returns:
            True when verified, or when the policy configures no key

        Raises:
            NetworkError: If the signature or key file cannot be downloaded
            GPGError: If the key is wrong or missing, or the signature is bad

        """
        if not policy.signature_enabled:
            logger.debug(
                "No gpg_key_id/gpg_fingerprint for %s; skipping signature",
                policy.name,
            )
            return True

        sink = sink or self.sink
        sig_path, sig_url = await self._download_signature(
            sink, policy, artifact
        )
        try:
            handle = await self._prepare_keyring(
                sink, policy, artifact, sig_url
            )
            try:
                await self._check(
                    sink, policy, artifact, handle, sig_path, sig_url
                )
            finally:
                self.keyring_manager.destroy(handle)
        finally:
            sig_path.unlink(missing_ok=True)

        logger.debug("✅ Signature verified for %s", policy.name)
        return True

    async def _download_signature(
        self, sink: EventSink, policy: VerificationPolicy, artifact: Artifact
    ) -> tuple[Path, str]:
        """Fetch the signature, applying the ``.asc`` fallback when allowed."""
        allow_http = policy.allow_insecure_http
        sig_url = policy.sig_url or artifact.download_url + SIGNATURE_SUFFIX

        try:
            path = await self.fetcher.fetch_to_file(sig_url, allow_http)
            return path, sig_url
        except NetworkError as e:
            if policy.sig_url:
                self._emit(
                    sink,
                    policy,
                    artifact,
                    False,
                    SENTINEL_DOWNLOAD_ERROR,
                    sig_url,
                )
                raise NetworkError(
                    f"failed to download signature file from {sig_url}: "
                    f"{e.message}",
                    target=policy.name,
                ) from e
            logger.debug("Signature %s unavailable: %s", sig_url, e)

        asc_url = artifact.download_url + SIGNATURE_FALLBACK_SUFFIX
        if not await self.fetcher.probe_exists(asc_url):
            self._emit(
                sink,
                policy,
                artifact,
                False,
                SENTINEL_DOWNLOAD_ERROR,
                sig_url,
            )
            raise NetworkError(
                f"failed to download signature file from {sig_url}",
                target=policy.name,
            )

        logger.debug("Falling back to %s", asc_url)
        try:
            path = await self.fetcher.fetch_to_file(asc_url, allow_http)
            return path, asc_url
        except NetworkError as e:
            self._emit(
                sink,
                policy,
                artifact,
                False,
                SENTINEL_DOWNLOAD_ERROR,
                asc_url,
            )
            raise NetworkError(
                f"failed to download signature file from {sig_url} "
                f"(and {SIGNATURE_FALLBACK_SUFFIX} fallback): {e.message}",
                target=policy.name,
            ) from e

    async def _prepare_keyring(
        self,
        sink: EventSink,
        policy: VerificationPolicy,
        artifact: Artifact,
        sig_url: str,
    ) -> EphemeralKeyring:
        try:
            return await self.keyring_manager.prepare(
                policy.gpg_key_source,
                policy.gpg_key_id or "",
                policy.gpg_key_url,
                policy.allow_insecure_http,
            )
        except GPGUnavailableError as e:
            self._emit(
                sink, policy, artifact, False, SENTINEL_NO_HELPER, sig_url
            )
            raise GPGError(e.message, target=policy.name) from e
        except PackwatchError as e:
            self._emit(
                sink,
                policy,
                artifact,
                False,
                SENTINEL_KEY_IMPORT_ERROR,
                sig_url,
            )
            raise type(e)(
                f"could not acquire key {policy.gpg_key_id} via "
                f"{policy.gpg_key_source.value}: {e.message}",
                target=policy.name,
            ) from e

    async def _check(
        self,
        sink: EventSink,
        policy: VerificationPolicy,
        artifact: Artifact,
        handle: EphemeralKeyring,
        sig_path: Path,
        sig_url: str,
    ) -> None:
        """Compare the key fingerprint, then check the signature itself."""
        expected = normalize_fingerprint(policy.gpg_fingerprint)
        key_id = policy.gpg_key_id or ""

        actual = await asyncio.to_thread(handle.backend.fingerprint_of, key_id)
        if not actual:
            self._emit(
                sink, policy, artifact, False, SENTINEL_KEY_NOT_FOUND, sig_url
            )
            raise GPGError(
                f"key {key_id} not found in {handle.strategy.value} keyring",
                target=policy.name,
            )

        if normalize_fingerprint(actual) != expected:
            self._emit(sink, policy, artifact, False, actual, sig_url)
            raise GPGError(
                f"fingerprint mismatch for key {key_id}: expected "
                f"{policy.gpg_fingerprint}, got {actual}",
                target=policy.name,
            )

        check = await asyncio.to_thread(
            handle.backend.verify_detached, sig_path, Path(artifact.path)
        )
        if not check.valid:
            self._emit(
                sink, policy, artifact, False, SENTINEL_BAD_SIGNATURE, sig_url
            )
            raise GPGError(
                f"bad signature from {sig_url} ({check.status or 'invalid'})",
                target=policy.name,
            )

        signer = normalize_fingerprint(check.primary_fingerprint)
        if signer != expected:
            self._emit(
                sink,
                policy,
                artifact,
                False,
                check.primary_fingerprint,
                sig_url,
            )
            raise GPGError(
                f"signature made by "
                f"{check.primary_fingerprint or 'unknown key'}, "
                f"expected {policy.gpg_fingerprint}",
                target=policy.name,
            )

        self._emit(sink, policy, artifact, True, actual, sig_url)
