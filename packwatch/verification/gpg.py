"""GPG capability used for key acquisition and detached signature checks.

Everything that touches the ``gpg`` binary lives behind the ``GPGBackend``
protocol so the keyring manager and signature verifier can be exercised
with an in-memory fake. ``GnuPGBackend`` is the real implementation on top
of python-gnupg; Web Key Directory lookups call ``gpg`` directly since
python-gnupg has no wrapper for ``--locate-keys``.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import gnupg

from packwatch.constants import DEFAULT_GPG_BINARY, DEFAULT_MAX_TIME_SECONDS
from packwatch.exceptions import GPGError, MissingDependencyError
from packwatch.logger import get_logger

logger = get_logger(__name__)


class GPGUnavailableError(GPGError):
    """Raised when the GPG helper cannot be started."""


@dataclass(slots=True, frozen=True)
class SignatureCheck:
    """Outcome of a detached signature check.

    Attributes:
        valid: Whether GPG accepted the signature.
        fingerprint: Fingerprint of the (sub)key that made the signature.
        primary_fingerprint: Fingerprint of the signer's primary key.
        status: GPG status text, useful in error messages.

    """

    valid: bool
    fingerprint: str = ""
    primary_fingerprint: str = ""
    status: str = ""


class GPGBackend(Protocol):
    """GPG operations bound to one keyring home directory."""

    home: Path

    def import_key_data(self, data: str | bytes) -> list[str]:
        """Import armored or binary key data; return imported fingerprints."""
        ...

    def receive_key(self, keyserver: str, key_id: str) -> list[str]:
        """Fetch ``key_id`` from a keyserver; return imported fingerprints."""
        ...

    def locate_key_wkd(self, identifier: str) -> list[str]:
        """Resolve ``identifier`` via Web Key Directory."""
        ...

    def fingerprint_of(self, key_id: str) -> str | None:
        """Return the primary fingerprint of ``key_id`` in this keyring."""
        ...

    def verify_detached(
        self, signature_path: Path, data_path: Path
    ) -> SignatureCheck:
        """Check a detached signature over ``data_path``."""
        ...


BackendFactory = Callable[[Path], GPGBackend]


def normalize_fingerprint(value: str | None) -> str:
    """Strip all whitespace and uppercase a fingerprint."""
    return "".join((value or "").split()).upper()


def ensure_dependencies(binary: str = DEFAULT_GPG_BINARY) -> str:
    """Check that the GPG binary is installed.

    Args:
        binary: GPG executable name or path

    Returns:
        Resolved path of the binary

    Raises:
        MissingDependencyError: If the binary is not on PATH

    """
    path = shutil.which(binary)
    if path is None:
        raise MissingDependencyError(
            f"GPG binary '{binary}' not found; install gnupg to verify "
            "signatures"
        )
    logger.debug("Using GPG binary %s", path)
    return path


class GnuPGBackend:
    """python-gnupg implementation of ``GPGBackend``."""

    def __init__(
        self,
        home: Path,
        binary: str = DEFAULT_GPG_BINARY,
        timeout: int = DEFAULT_MAX_TIME_SECONDS,
    ) -> None:
        """Bind a GPG instance to a keyring directory.

        Args:
            home: GNUPGHOME for every operation
            binary: GPG executable name or path
            timeout: Upper bound in seconds for WKD lookups

        Raises:
            GPGUnavailableError: If python-gnupg cannot start the binary

        """
        self.home = Path(home)
        self.binary = binary
        self.timeout = timeout
        try:
            self._gpg = gnupg.GPG(gnupghome=str(self.home), gpgbinary=binary)
        except (OSError, ValueError, RuntimeError) as e:
            raise GPGUnavailableError(f"cannot run '{binary}': {e}") from e

    def import_key_data(self, data: str | bytes) -> list[str]:
        result = self._gpg.import_keys(data)
        logger.debug("Imported %s key(s) into %s", result.count, self.home)
        return list(result.fingerprints)

    def receive_key(self, keyserver: str, key_id: str) -> list[str]:
        result = self._gpg.recv_keys(keyserver, key_id)
        logger.debug(
            "Received %s key(s) for %s from %s",
            result.count,
            key_id,
            keyserver,
        )
        return list(result.fingerprints)

    def locate_key_wkd(self, identifier: str) -> list[str]:
        cmd = [
            self.binary,
            "--homedir",
            str(self.home),
            "--batch",
            "--auto-key-locate",
            "clear,nodefault,wkd",
            "--locate-keys",
            identifier,
        ]
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise GPGUnavailableError(f"cannot run '{self.binary}'") from e
        except subprocess.TimeoutExpired:
            logger.warning("WKD lookup for %s timed out", identifier)
            return []

        if completed.returncode != 0:
            logger.debug(
                "WKD lookup for %s failed: %s",
                identifier,
                completed.stderr.strip(),
            )
            return []

        fingerprint = self.fingerprint_of(identifier)
        return [fingerprint] if fingerprint else []

    def fingerprint_of(self, key_id: str) -> str | None:
        keys = self._gpg.list_keys(keys=[key_id])
        if not keys:
            return None
        return keys[0].get("fingerprint") or None

    def verify_detached(
        self, signature_path: Path, data_path: Path
    ) -> SignatureCheck:
        with open(signature_path, "rb") as sig_file:
            result = self._gpg.verify_file(
                sig_file, data_filename=str(data_path)
            )
        return SignatureCheck(
            valid=bool(result.valid),
            fingerprint=result.fingerprint or "",
            primary_fingerprint=getattr(result, "pubkey_fingerprint", None)
            or result.fingerprint
            or "",
            status=result.status or "",
        )


def gnupg_backend_factory(
    binary: str = DEFAULT_GPG_BINARY, timeout: int = DEFAULT_MAX_TIME_SECONDS
) -> BackendFactory:
    """Return a factory creating ``GnuPGBackend`` instances for a home dir."""

    def factory(home: Path) -> GPGBackend:
        return GnuPGBackend(home, binary=binary, timeout=timeout)

    return factory
