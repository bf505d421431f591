"""Tests for VerificationPolicy validation and JSON record parsing."""

import pytest

from packwatch.exceptions import ConfigurationError, ErrorKind
from packwatch.models.policy import (
    ChecksumAlgorithm,
    KeySource,
    VerificationPolicy,
)


def test_defaults() -> None:
    policy = VerificationPolicy()

    assert policy.name == "unknown"
    assert policy.checksum_algorithm is ChecksumAlgorithm.SHA256
    assert policy.gpg_key_source is KeySource.USER_KEYRING
    assert policy.signature_enabled is False
    assert policy.allow_insecure_http is False


def test_string_enums_are_normalized() -> None:
    policy = VerificationPolicy(
        checksum_algorithm=" SHA512 ",  # type: ignore[arg-type]
        gpg_key_source="wkd",  # type: ignore[arg-type]
    )

    assert policy.checksum_algorithm is ChecksumAlgorithm.SHA512
    assert policy.gpg_key_source is KeySource.WKD


def test_unsupported_algorithm() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported checksum"):
        VerificationPolicy(checksum_algorithm="md5")  # type: ignore[arg-type]


def test_unsupported_key_source() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported GPG key"):
        VerificationPolicy(gpg_key_source="ldap")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("key_id", "fingerprint"), [("ABCD", None), (None, "ABCD")]
)
def test_key_id_and_fingerprint_go_together(key_id, fingerprint) -> None:
    """Test a half-configured signing key is rejected."""
    with pytest.raises(ConfigurationError) as exc_info:
        VerificationPolicy(
            name="app", gpg_key_id=key_id, gpg_fingerprint=fingerprint
        )

    assert exc_info.value.kind is ErrorKind.CONFIG_ERROR
    assert exc_info.value.target == "app"


def test_url_source_requires_key_url() -> None:
    with pytest.raises(ConfigurationError, match="requires gpg_key_url"):
        VerificationPolicy(
            gpg_key_id="ABCD",
            gpg_fingerprint="ABCD",
            gpg_key_source=KeySource.URL,
        )


def test_signature_enabled() -> None:
    policy = VerificationPolicy(gpg_key_id="ABCD", gpg_fingerprint="EF01")

    assert policy.signature_enabled is True


def test_from_dict_full_record() -> None:
    """Test unknown keys in an application record are ignored."""
    record = {
        "name": "legcord",
        "source": "github",
        "owner": "Legcord",
        "require_checksum": True,
        "skip_header_digest": "yes",
        "checksum_algorithm": "sha512",
        "checksum_url": "https://example.com/latest-linux.yml",
        "gpg_key_id": "0123456789ABCDEF",
        "gpg_fingerprint": "AAAA BBBB",
        "sig_url": "",
        "gpg_key_source": "url",
        "gpg_key_url": "https://example.com/key.asc",
    }

    policy = VerificationPolicy.from_dict(record)

    assert policy.name == "legcord"
    assert policy.require_checksum is True
    assert policy.skip_checksum is False
    assert policy.skip_header_digest is True
    assert policy.checksum_algorithm is ChecksumAlgorithm.SHA512
    assert policy.sig_url is None
    assert policy.gpg_key_source is KeySource.URL
    assert policy.signature_enabled is True


def test_from_dict_uses_fallback_name() -> None:
    policy = VerificationPolicy.from_dict({}, name="siyuan")

    assert policy.name == "siyuan"
    assert policy.gpg_key_source is KeySource.USER_KEYRING


@pytest.mark.parametrize("value", [1, 0, "true", "off", True])
def test_from_dict_accepts_flag_forms(value) -> None:
    policy = VerificationPolicy.from_dict({"allow_insecure_http": value})

    assert policy.allow_insecure_http is (value in (1, "true", True))


@pytest.mark.parametrize("value", ["maybe", 2, [True]])
def test_from_dict_rejects_bad_flags(value) -> None:
    with pytest.raises(ConfigurationError, match="must be a boolean"):
        VerificationPolicy.from_dict({"require_checksum": value})


def test_policy_is_immutable() -> None:
    policy = VerificationPolicy()

    with pytest.raises(AttributeError):
        policy.name = "other"  # type: ignore[misc]
