"""Shared fixtures for verification tests.

- test_file_path: artifact with known content and digests
- fake_fetcher: in-memory network collaborator
- gpg_world / backend_factory: GPG backend without a gpg binary
"""

from pathlib import Path

import pytest

from packwatch.verification.gpg import GPGUnavailableError
from tests.verification.fakes import (
    TEST_CONTENT,
    FakeFetcher,
    FakeGPGBackend,
    GPGWorld,
)


@pytest.fixture
def test_file_path(tmp_path: Path) -> Path:
    """Create a temporary artifact containing "test content".

    SHA256: 6ae8a75555209fd6c44157c0aed8016e763ff435a19cf186f76863140143ff72
    """
    path = tmp_path / "downloads" / "app-1.0-x86_64.AppImage"
    path.parent.mkdir(parents=True)
    path.write_bytes(TEST_CONTENT)
    return path


@pytest.fixture
def fake_fetcher(tmp_path: Path) -> FakeFetcher:
    """Network collaborator writing side-files under tmp_path/cache."""
    return FakeFetcher(tmp_path / "cache")


@pytest.fixture
def gpg_world() -> GPGWorld:
    """Empty key world; tests register keys as needed."""
    return GPGWorld()


@pytest.fixture
def backend_factory(gpg_world: GPGWorld):
    """Factory producing FakeGPGBackend instances bound to gpg_world."""

    def factory(home: Path) -> FakeGPGBackend:
        if gpg_world.unavailable:
            raise GPGUnavailableError("cannot run 'gpg'")
        return FakeGPGBackend(home, gpg_world)

    return factory


@pytest.fixture
def user_home(tmp_path: Path) -> Path:
    """Stand-in for the caller's GNUPGHOME."""
    home = tmp_path / "gnupg-home"
    home.mkdir(mode=0o700)
    return home


@pytest.fixture
def keyring_tmp(tmp_path: Path) -> Path:
    """Parent directory for ephemeral keyrings."""
    return tmp_path / "keyrings"
