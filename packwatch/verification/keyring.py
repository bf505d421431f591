"""Ephemeral, isolated GPG keyrings.

Each ``url``/``keyserver``/``wkd`` preparation creates a fresh ``0700``
directory under the configured tmp dir and imports exactly the key needed
for one signature check. The directory is removed on every exit path;
``user_keyring`` points at the caller's own GNUPGHOME and never creates or
removes anything.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from packwatch.constants import (
    DEFAULT_KEYSERVER,
    EPHEMERAL_KEYRING_MODE,
    EPHEMERAL_KEYRING_PREFIX,
)
from packwatch.exceptions import GPGError
from packwatch.logger import get_logger
from packwatch.models.policy import KeySource
from packwatch.services.fetcher import Fetcher, fetched_file
from packwatch.verification.gpg import BackendFactory, GPGBackend

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class EphemeralKeyring:
    """Handle to a prepared keyring."""

    path: Path
    strategy: KeySource
    backend: GPGBackend

    @property
    def ephemeral(self) -> bool:
        """Whether the directory is owned (and removed) by packwatch."""
        return self.strategy is not KeySource.USER_KEYRING


class KeyringManager:
    """Creates keyrings populated by a key-acquisition strategy."""

    def __init__(
        self,
        fetcher: Fetcher,
        backend_factory: BackendFactory,
        tmp_dir: Path,
        user_home: Path,
        keyserver: str = DEFAULT_KEYSERVER,
    ) -> None:
        """Initialize the keyring manager.

        Args:
            fetcher: Network collaborator for the ``url`` strategy
            backend_factory: Creates a GPG backend bound to a directory
            tmp_dir: Parent directory of ephemeral keyrings
            user_home: The caller's GNUPGHOME for ``user_keyring``
            keyserver: Keyserver for the ``keyserver`` strategy

        """
        self.fetcher = fetcher
        self.backend_factory = backend_factory
        self.tmp_dir = Path(tmp_dir)
        self.user_home = Path(user_home)
        self.keyserver = keyserver

    async def prepare(
        self,
        strategy: KeySource,
        key_id: str,
        key_url: str | None = None,
        allow_insecure_http: bool = False,
    ) -> EphemeralKeyring:
        """Materialize a keyring holding ``key_id``.

        Args:
            strategy: Key-acquisition strategy
            key_id: Key ID (or WKD address) to acquire
            key_url: Key file location for the ``url`` strategy
            allow_insecure_http: Permit fetching the key file over HTTP

        Returns:
            Keyring handle; pass it to ``destroy`` when done

        Raises:
            NetworkError: If the key file cannot be downloaded
            GPGError: If the key cannot be acquired or imported

        """
        strategy = KeySource(strategy)
        if strategy is KeySource.USER_KEYRING:
            backend = await asyncio.to_thread(
                self.backend_factory, self.user_home
            )
            logger.debug("🔑 Using existing keyring at %s", self.user_home)
            return EphemeralKeyring(self.user_home, strategy, backend)

        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        path = Path(
            tempfile.mkdtemp(prefix=EPHEMERAL_KEYRING_PREFIX, dir=self.tmp_dir)
        )
        try:
            os.chmod(path, EPHEMERAL_KEYRING_MODE)
            backend = await asyncio.to_thread(self.backend_factory, path)
            fingerprints = await self._acquire(
                backend, strategy, key_id, key_url, allow_insecure_http
            )
            if not fingerprints:
                raise GPGError(
                    f"no key imported for {key_id} via {strategy.value}"
                )
        except BaseException:
            self._remove(path)
            raise

        logger.debug(
            "🔑 Prepared %s keyring %s with %s",
            strategy.value,
            path.name,
            ", ".join(fingerprints),
        )
        return EphemeralKeyring(path, strategy, backend)

    async def _acquire(
        self,
        backend: GPGBackend,
        strategy: KeySource,
        key_id: str,
        key_url: str | None,
        allow_insecure_http: bool,
    ) -> list[str]:
        if strategy is KeySource.URL:
            if not key_url:
                raise GPGError("key source 'url' requires a key URL")
            async with fetched_file(
                self.fetcher, key_url, allow_insecure_http
            ) as key_path:
                data = key_path.read_bytes()
            return await asyncio.to_thread(backend.import_key_data, data)
        if strategy is KeySource.KEYSERVER:
            return await asyncio.to_thread(
                backend.receive_key, self.keyserver, key_id
            )
        if strategy is KeySource.WKD:
            return await asyncio.to_thread(backend.locate_key_wkd, key_id)
        raise GPGError(f"unsupported key source: {strategy.value}")

    def destroy(self, handle: EphemeralKeyring) -> None:
        """Remove an ephemeral keyring; no-op for ``user_keyring``."""
        if not handle.ephemeral:
            return
        self._remove(handle.path)

    @staticmethod
    def _remove(path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning("Could not fully remove keyring %s", path)
        else:
            logger.debug("🧹 Removed keyring %s", path.name)

    @contextlib.asynccontextmanager
    async def keyring(
        self,
        strategy: KeySource,
        key_id: str,
        key_url: str | None = None,
        allow_insecure_http: bool = False,
    ) -> AsyncIterator[EphemeralKeyring]:
        """Prepare a keyring for the duration of an ``async with`` block."""
        handle = await self.prepare(
            strategy, key_id, key_url, allow_insecure_http
        )
        try:
            yield handle
        finally:
            self.destroy(handle)
