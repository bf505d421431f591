"""Tests for KeyringManager strategies and keyring cleanup."""

import stat
from pathlib import Path

import pytest

from packwatch.exceptions import GPGError, NetworkError
from packwatch.models.policy import KeySource
from packwatch.verification.keyring import KeyringManager
from tests.verification.fakes import (
    FINGERPRINT,
    KEY_ID,
    FakeFetcher,
    GPGWorld,
    make_key_file,
)

KEY_URL = "https://example.com/keys/release.asc"
KEYSERVER = "hkps://keys.example.org"


@pytest.fixture
def manager(
    fake_fetcher: FakeFetcher,
    backend_factory,
    keyring_tmp: Path,
    user_home: Path,
) -> KeyringManager:
    return KeyringManager(
        fake_fetcher,
        backend_factory,
        tmp_dir=keyring_tmp,
        user_home=user_home,
        keyserver=KEYSERVER,
    )


def _leftovers(keyring_tmp: Path) -> list[Path]:
    if not keyring_tmp.exists():
        return []
    return list(keyring_tmp.iterdir())


@pytest.mark.asyncio
async def test_url_strategy_imports_key(
    manager: KeyringManager,
    fake_fetcher: FakeFetcher,
    keyring_tmp: Path,
) -> None:
    """Test a key file is imported into a private 0700 directory."""
    fake_fetcher.files[KEY_URL] = make_key_file(KEY_ID, FINGERPRINT)

    handle = await manager.prepare(KeySource.URL, KEY_ID, KEY_URL)

    assert handle.ephemeral
    assert handle.path.parent == keyring_tmp
    assert handle.path.name.startswith("packwatch-gpg-")
    assert stat.S_IMODE(handle.path.stat().st_mode) == 0o700
    assert handle.backend.fingerprint_of(KEY_ID) == FINGERPRINT

    manager.destroy(handle)

    assert not handle.path.exists()
    assert not any(path.exists() for path in fake_fetcher.created)


@pytest.mark.asyncio
async def test_keyserver_strategy(
    manager: KeyringManager, gpg_world: GPGWorld, keyring_tmp: Path
) -> None:
    """Test keys are received from the configured keyserver."""
    gpg_world.keyserver_keys[KEY_ID] = FINGERPRINT

    async with manager.keyring(KeySource.KEYSERVER, KEY_ID) as handle:
        assert handle.backend.fingerprint_of(KEY_ID) == FINGERPRINT
        assert handle.path.exists()

    assert gpg_world.keyservers_used == [KEYSERVER]
    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_wkd_strategy(
    manager: KeyringManager, gpg_world: GPGWorld, keyring_tmp: Path
) -> None:
    address = "release@example.org"
    gpg_world.wkd_keys[address] = FINGERPRINT

    async with manager.keyring(KeySource.WKD, address) as handle:
        assert handle.backend.fingerprint_of(address) == FINGERPRINT

    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_user_keyring_creates_nothing(
    manager: KeyringManager, user_home: Path, keyring_tmp: Path
) -> None:
    """Test the caller's keyring is used in place and never removed."""
    async with manager.keyring(KeySource.USER_KEYRING, KEY_ID) as handle:
        assert handle.path == user_home
        assert not handle.ephemeral

    assert user_home.exists()
    assert not keyring_tmp.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "strategy", [KeySource.KEYSERVER, KeySource.WKD, KeySource.URL]
)
async def test_unknown_key_removes_keyring(
    manager: KeyringManager,
    fake_fetcher: FakeFetcher,
    keyring_tmp: Path,
    strategy: KeySource,
) -> None:
    """Test a strategy that imports nothing leaves no directory behind."""
    fake_fetcher.files[KEY_URL] = b"not a key"

    with pytest.raises(GPGError, match="no key imported"):
        await manager.prepare(strategy, KEY_ID, KEY_URL)

    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_key_download_failure_removes_keyring(
    manager: KeyringManager, keyring_tmp: Path
) -> None:
    with pytest.raises(NetworkError):
        await manager.prepare(KeySource.URL, KEY_ID, KEY_URL)

    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_url_strategy_without_url(
    manager: KeyringManager, keyring_tmp: Path
) -> None:
    with pytest.raises(GPGError, match="requires a key URL"):
        await manager.prepare(KeySource.URL, KEY_ID)

    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_keyring_removed_when_block_raises(
    manager: KeyringManager, gpg_world: GPGWorld, keyring_tmp: Path
) -> None:
    """Test the context manager cleans up when its body fails."""
    gpg_world.keyserver_keys[KEY_ID] = FINGERPRINT

    with pytest.raises(RuntimeError):
        async with manager.keyring(KeySource.KEYSERVER, KEY_ID):
            raise RuntimeError("boom")

    assert _leftovers(keyring_tmp) == []


@pytest.mark.asyncio
async def test_concurrent_keyrings_are_isolated(
    manager: KeyringManager, gpg_world: GPGWorld
) -> None:
    """Test two preparations get distinct directories and key sets."""
    gpg_world.keyserver_keys[KEY_ID] = FINGERPRINT
    gpg_world.keyserver_keys["FEDCBA9876543210"] = FINGERPRINT

    first = await manager.prepare(KeySource.KEYSERVER, KEY_ID)
    second = await manager.prepare(KeySource.KEYSERVER, "FEDCBA9876543210")
    try:
        assert first.path != second.path
        assert first.backend.fingerprint_of("FEDCBA9876543210") is None
        assert second.backend.fingerprint_of(KEY_ID) is None
    finally:
        manager.destroy(first)
        manager.destroy(second)
