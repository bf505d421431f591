"""Network-fetch collaborator for checksum manifests, signatures and keys.

Side-files are downloaded into a private cache directory. Every fetch is
bounded by the configured connect/total timeouts and retried with
exponential backoff; a timeout is treated like any other failure.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import aiohttp

from packwatch.config import NetworkConfig
from packwatch.constants import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_TIME_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
)
from packwatch.exceptions import NetworkError
from packwatch.logger import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 8192


class Fetcher(Protocol):
    """Operations the verification core needs from the network layer."""

    async def fetch_to_file(
        self, url: str, allow_insecure_http: bool = False
    ) -> Path:
        """Download ``url`` into a new local file and return its path."""
        ...

    async def probe_exists(self, url: str) -> bool:
        """Return True if ``url`` answers a lightweight probe with 2xx."""
        ...

    async def probe_headers(self, url: str) -> Mapping[str, str]:
        """Return the response headers of a metadata-only request."""
        ...


@contextlib.asynccontextmanager
async def fetched_file(
    fetcher: Fetcher, url: str, allow_insecure_http: bool = False
) -> AsyncIterator[Path]:
    """Download a side-file and remove it when the block exits.

    Removal also happens when the block raises or is cancelled.
    """
    path = await fetcher.fetch_to_file(url, allow_insecure_http)
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove side-file %s: %s", path, e)


def check_url_scheme(url: str, allow_insecure_http: bool) -> None:
    """Refuse schemes other than https (and http when explicitly allowed).

    Raises:
        NetworkError: If the URL scheme is not permitted

    """
    scheme = urlparse(url).scheme.lower()
    if scheme == "https":
        return
    if scheme == "http":
        if allow_insecure_http:
            logger.warning("⚠️  Fetching over plain HTTP: %s", url)
            return
        raise NetworkError(
            f"refusing insecure HTTP URL '{url}' "
            "(set allow_insecure_http to permit it)"
        )
    raise NetworkError(f"unsupported URL scheme in '{url}'")


class HttpFetcher:
    """aiohttp implementation of the ``Fetcher`` protocol."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cache_dir: Path,
        network_config: NetworkConfig | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            session: aiohttp session used for all requests
            cache_dir: Directory that receives downloaded side-files
            network_config: Retry and timeout settings

        """
        self.session = session
        self.cache_dir = Path(cache_dir)
        network = network_config or NetworkConfig(
            retry_attempts=DEFAULT_RETRY_ATTEMPTS,
            retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
            connect_timeout_seconds=DEFAULT_CONNECT_TIMEOUT_SECONDS,
            max_time_seconds=DEFAULT_MAX_TIME_SECONDS,
        )
        self.retry_attempts = max(1, int(network["retry_attempts"]))
        self.retry_delay = int(network["retry_delay_seconds"])
        self.timeout = aiohttp.ClientTimeout(
            total=network["max_time_seconds"],
            sock_connect=network["connect_timeout_seconds"],
        )

    def _new_side_file(self, url: str) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(urlparse(url).path).suffix[:16]
        fd, name = tempfile.mkstemp(
            prefix="packwatch-", suffix=suffix, dir=self.cache_dir
        )
        os.close(fd)
        return Path(name)

    async def fetch_to_file(
        self, url: str, allow_insecure_http: bool = False
    ) -> Path:
        """Download a file from URL into the cache directory with retries.

        Args:
            url: URL to download from
            allow_insecure_http: Permit plain HTTP

        Returns:
            Path of the downloaded file; the caller owns and removes it

        Raises:
            NetworkError: If the URL is refused or all attempts fail

        """
        check_url_scheme(url, allow_insecure_http)
        dest = self._new_side_file(url)

        for attempt in range(1, self.retry_attempts + 1):
            try:
                await self._attempt_download(url, dest)
                logger.debug("✅ Downloaded %s -> %s", url, dest.name)
                return dest
            except aiohttp.ClientResponseError as e:
                if e.status < 500 or attempt == self.retry_attempts:
                    dest.unlink(missing_ok=True)
                    raise NetworkError(
                        f"HTTP {e.status} while downloading '{url}'"
                    ) from e
                last_error: Exception = e
            except (aiohttp.ClientError, TimeoutError) as e:
                if attempt == self.retry_attempts:
                    dest.unlink(missing_ok=True)
                    raise NetworkError(
                        f"failed to download '{url}' after "
                        f"{self.retry_attempts} attempts: {e}"
                    ) from e
                last_error = e
            except BaseException:
                dest.unlink(missing_ok=True)
                raise

            backoff = self.retry_delay * 2 ** (attempt - 1)
            logger.warning(
                "Attempt %s/%s failed for %s: %s; retrying in %ss",
                attempt,
                self.retry_attempts,
                url,
                last_error,
                backoff,
            )
            await asyncio.sleep(backoff)

        # Unreachable: the loop either returns or raises
        raise NetworkError(f"failed to download '{url}'")

    def fetched_file(
        self, url: str, allow_insecure_http: bool = False
    ) -> contextlib.AbstractAsyncContextManager[Path]:
        """Scoped download; see the module-level ``fetched_file``."""
        return fetched_file(self, url, allow_insecure_http)

    async def _attempt_download(self, url: str, dest: Path) -> None:
        """Perform a single download attempt, truncating ``dest`` first."""
        async with self.session.get(
            url, timeout=self.timeout, allow_redirects=True
        ) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)

    async def probe_exists(self, url: str) -> bool:
        """Check whether a URL exists using a single HEAD request.

        Never raises; any error means "does not exist".
        """
        try:
            async with self.session.head(
                url, timeout=self.timeout, allow_redirects=True
            ) as response:
                exists = 200 <= response.status < 300
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.debug("Probe of %s failed: %s", url, e)
            return False
        logger.debug("Probe of %s -> %s", url, exists)
        return exists

    async def probe_headers(self, url: str) -> Mapping[str, str]:
        """Fetch response headers with a HEAD request.

        Returns:
            Headers with lowercase names

        Raises:
            NetworkError: If the request fails or returns an error status

        """
        try:
            async with self.session.head(
                url, timeout=self.timeout, allow_redirects=True
            ) as response:
                response.raise_for_status()
                return {
                    name.lower(): value
                    for name, value in response.headers.items()
                }
        except (aiohttp.ClientError, TimeoutError) as e:
            raise NetworkError(f"header probe of '{url}' failed: {e}") from e
