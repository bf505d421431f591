"""Tests for exception classes."""

import pytest

from packwatch.exceptions import (
    ChecksumError,
    ConfigurationError,
    ErrorKind,
    GPGError,
    MissingDependencyError,
    NetworkError,
    PackwatchError,
)


class TestPackwatchError:
    """Test the base error class."""

    def test_basic_initialization(self):
        """Test basic error initialization."""
        error = PackwatchError("Test error")
        assert error.message == "Test error"
        assert error.target is None
        assert str(error) == "Verification failed: Test error"

    def test_initialization_with_target(self):
        """Test initialization with target parameter."""
        error = ChecksumError("expected sha256 aa, got bb", target="app1")
        assert error.target == "app1"
        assert str(error) == (
            "Checksum verification failed for 'app1': "
            "expected sha256 aa, got bb"
        )

    def test_raise_and_catch_as_base(self):
        """Test subclasses are caught as PackwatchError."""
        with pytest.raises(PackwatchError) as exc_info:
            raise GPGError("bad signature", target="myapp")

        assert exc_info.value.kind is ErrorKind.GPG_ERROR
        assert "myapp" in str(exc_info.value)


@pytest.mark.parametrize(
    ("error_class", "kind", "action"),
    [
        (NetworkError, ErrorKind.NETWORK_ERROR, "Download"),
        (ChecksumError, ErrorKind.VALIDATION_ERROR, "Checksum verification"),
        (GPGError, ErrorKind.GPG_ERROR, "Signature verification"),
        (MissingDependencyError, ErrorKind.MISSING_DEP, "Dependency check"),
        (ConfigurationError, ErrorKind.CONFIG_ERROR, "Configuration"),
    ],
)
def test_error_kinds(error_class, kind, action):
    """Test every error maps to one reported kind."""
    error = error_class("boom")

    assert error.kind is kind
    assert str(error) == f"{action} failed: boom"


def test_error_kind_values_are_strings():
    assert ErrorKind.NETWORK_ERROR == "NETWORK_ERROR"
    assert ErrorKind.MISSING_DEP.value == "MISSING_DEP"
