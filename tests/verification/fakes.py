"""In-memory fakes for the network and GPG collaborators.

- FakeFetcher: serves registered URLs and records every call
- GPGWorld / FakeGPGBackend: keys and signatures without a gpg binary
"""

import hashlib
from pathlib import Path

from packwatch.exceptions import NetworkError
from packwatch.services.fetcher import check_url_scheme
from packwatch.verification.gpg import SignatureCheck

TEST_CONTENT = b"test content"
TEST_SHA256 = (
    "6ae8a75555209fd6c44157c0aed8016e763ff435a19cf186f76863140143ff72"
)

APP_URL = "https://example.com/releases/v1.0/app-1.0-x86_64.AppImage"
KEY_ID = "0123456789ABCDEF"
FINGERPRINT = "AAAA BBBB CCCC DDDD EEEE  FFFF 0000 1111 0123 4567 89AB CDEF"
FINGERPRINT_COMPACT = FINGERPRINT.replace(" ", "")
OTHER_FINGERPRINT = "9999888877776666555544443333222211110000"


class FakeFetcher:
    """Network collaborator serving registered URLs from memory."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir
        self.files: dict[str, bytes] = {}
        self.headers: dict[str, dict[str, str]] = {}
        self.header_errors: set[str] = set()
        self.fetch_calls: list[str] = []
        self.probe_calls: list[str] = []
        self.header_calls: list[str] = []
        self.created: list[Path] = []

    async def fetch_to_file(
        self, url: str, allow_insecure_http: bool = False
    ) -> Path:
        self.fetch_calls.append(url)
        check_url_scheme(url, allow_insecure_http)
        if url not in self.files:
            raise NetworkError(f"HTTP 404 while downloading '{url}'")
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / f"side-{len(self.fetch_calls)}"
        path.write_bytes(self.files[url])
        self.created.append(path)
        return path

    async def probe_exists(self, url: str) -> bool:
        self.probe_calls.append(url)
        return url in self.files

    async def probe_headers(self, url: str) -> dict[str, str]:
        self.header_calls.append(url)
        if url in self.header_errors:
            raise NetworkError(f"header probe of '{url}' failed")
        return self.headers.get(url, {})

    @property
    def call_count(self) -> int:
        return (
            len(self.fetch_calls)
            + len(self.probe_calls)
            + len(self.header_calls)
        )


def make_key_file(key_id: str, fingerprint: str) -> bytes:
    """Key file understood by FakeGPGBackend.import_key_data."""
    return f"KEY {key_id} {fingerprint}".encode()


def make_signature(fingerprint: str, data: bytes) -> bytes:
    """Detached signature understood by FakeGPGBackend.verify_detached."""
    digest = hashlib.sha256(data).hexdigest()
    return f"SIG {fingerprint.replace(' ', '')} {digest}".encode()


class GPGWorld:
    """Key sources and keyrings shared by every FakeGPGBackend."""

    def __init__(self) -> None:
        self.keyserver_keys: dict[str, str] = {}
        self.wkd_keys: dict[str, str] = {}
        self.keyrings: dict[str, dict[str, str]] = {}
        self.homes: list[Path] = []
        self.unavailable = False
        self.keyservers_used: list[str] = []


class FakeGPGBackend:
    """GPGBackend operating on a GPGWorld instead of a gpg binary."""

    def __init__(self, home: Path, world: GPGWorld) -> None:
        self.home = Path(home)
        self.world = world
        self.home.mkdir(parents=True, exist_ok=True)
        (self.home / "pubring.kbx").write_bytes(b"")
        world.homes.append(self.home)

    @property
    def _keys(self) -> dict[str, str]:
        return self.world.keyrings.setdefault(str(self.home), {})

    def import_key_data(self, data: str | bytes) -> list[str]:
        if isinstance(data, bytes):
            data = data.decode()
        parts = data.split()
        if len(parts) != 3 or parts[0] != "KEY":
            return []
        self._keys[parts[1]] = parts[2]
        return [parts[2]]

    def receive_key(self, keyserver: str, key_id: str) -> list[str]:
        self.world.keyservers_used.append(keyserver)
        fingerprint = self.world.keyserver_keys.get(key_id)
        if not fingerprint:
            return []
        self._keys[key_id] = fingerprint
        return [fingerprint]

    def locate_key_wkd(self, identifier: str) -> list[str]:
        fingerprint = self.world.wkd_keys.get(identifier)
        if not fingerprint:
            return []
        self._keys[identifier] = fingerprint
        return [fingerprint]

    def fingerprint_of(self, key_id: str) -> str | None:
        return self._keys.get(key_id)

    def verify_detached(
        self, signature_path: Path, data_path: Path
    ) -> SignatureCheck:
        parts = Path(signature_path).read_bytes().decode().split()
        if len(parts) != 3 or parts[0] != "SIG":
            return SignatureCheck(valid=False, status="no valid OpenPGP data")
        signer, digest = parts[1], parts[2]
        known = {fp.replace(" ", "") for fp in self._keys.values()}
        data_digest = hashlib.sha256(Path(data_path).read_bytes()).hexdigest()
        if signer not in known:
            return SignatureCheck(valid=False, status="no public key")
        if digest != data_digest:
            return SignatureCheck(
                valid=False,
                fingerprint=signer,
                primary_fingerprint=signer,
                status="signature bad",
            )
        return SignatureCheck(
            valid=True,
            fingerprint=signer,
            primary_fingerprint=signer,
            status="signature valid",
        )
