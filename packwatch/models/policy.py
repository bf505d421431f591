"""Per-application verification policy.

The policy is the typed form of an application's JSON config record. It is
owned by the caller and never mutated by the verification core.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from packwatch.exceptions import ConfigurationError


class ChecksumAlgorithm(str, Enum):
    """Digest algorithms a policy may require for checksum verification."""

    SHA256 = "sha256"
    SHA512 = "sha512"


class KeySource(str, Enum):
    """Where the signing key for signature verification comes from."""

    URL = "url"
    KEYSERVER = "keyserver"
    WKD = "wkd"
    USER_KEYRING = "user_keyring"


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


def _coerce_bool(key: str, value: Any) -> bool:
    """Coerce JSON booleans, 0/1 and string flags to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"'{key}' must be a boolean, got {value!r}")


def _as_algorithm(value: Any) -> ChecksumAlgorithm:
    if isinstance(value, ChecksumAlgorithm):
        return value
    return ChecksumAlgorithm(str(value).strip().lower())


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True, frozen=True)
class VerificationPolicy:
    """Verification settings for one application.

    Attributes:
        name: Application name used in logs and audit events.
        require_checksum: Fail when no checksum can be resolved.
        skip_checksum: Disable the checksum phase entirely.
        skip_header_digest: Disable the response-header digest phase.
        checksum_algorithm: Algorithm of the expected checksum.
        checksum_url: Remote manifest with digests keyed by filename.
        gpg_key_id: Signing key ID; enables signatures with the fingerprint.
        gpg_fingerprint: Expected fingerprint of the signing key.
        sig_url: Explicit detached signature URL.
        allow_insecure_http: Permit side-file fetches over plain HTTP.
        gpg_key_source: Strategy used to obtain the signing key.
        gpg_key_url: Key file location for the ``url`` strategy.

    """

    name: str = "unknown"
    require_checksum: bool = False
    skip_checksum: bool = False
    skip_header_digest: bool = False
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256
    checksum_url: str | None = None
    gpg_key_id: str | None = None
    gpg_fingerprint: str | None = None
    sig_url: str | None = None
    allow_insecure_http: bool = False
    gpg_key_source: KeySource = KeySource.USER_KEYRING
    gpg_key_url: str | None = None

    def __post_init__(self) -> None:
        """Normalize enum fields and validate field combinations."""
        try:
            object.__setattr__(
                self,
                "checksum_algorithm",
                _as_algorithm(self.checksum_algorithm),
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Unsupported checksum algorithm: {self.checksum_algorithm}",
                target=self.name,
            ) from e

        try:
            object.__setattr__(
                self, "gpg_key_source", KeySource(self.gpg_key_source)
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Unsupported GPG key source: {self.gpg_key_source}",
                target=self.name,
            ) from e

        if bool(self.gpg_key_id) != bool(self.gpg_fingerprint):
            raise ConfigurationError(
                "gpg_key_id and gpg_fingerprint must be configured together",
                target=self.name,
            )

        if self.gpg_key_source is KeySource.URL and not self.gpg_key_url:
            raise ConfigurationError(
                "gpg_key_source 'url' requires gpg_key_url",
                target=self.name,
            )

    @property
    def signature_enabled(self) -> bool:
        """Whether both key ID and fingerprint are configured."""
        return bool(self.gpg_key_id and self.gpg_fingerprint)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], name: str | None = None
    ) -> VerificationPolicy:
        """Build a policy from a per-application JSON record.

        Unknown keys are ignored so that full application records (with
        checker and installer settings) can be passed directly.

        Args:
            data: Decoded JSON object.
            name: Fallback application name when the record has none.

        Returns:
            Validated verification policy.

        Raises:
            ConfigurationError: If a value has the wrong type or the field
                combination is invalid.

        """
        app_name = _optional_str(data.get("name")) or name or "unknown"

        def flag(key: str) -> bool:
            return _coerce_bool(key, data.get(key, False))

        return cls(
            name=app_name,
            require_checksum=flag("require_checksum"),
            skip_checksum=flag("skip_checksum"),
            skip_header_digest=flag("skip_header_digest"),
            checksum_algorithm=data.get("checksum_algorithm")
            or ChecksumAlgorithm.SHA256,
            checksum_url=_optional_str(data.get("checksum_url")),
            gpg_key_id=_optional_str(data.get("gpg_key_id")),
            gpg_fingerprint=_optional_str(data.get("gpg_fingerprint")),
            sig_url=_optional_str(data.get("sig_url")),
            allow_insecure_http=flag("allow_insecure_http"),
            gpg_key_source=data.get("gpg_key_source")
            or KeySource.USER_KEYRING,
            gpg_key_url=_optional_str(data.get("gpg_key_url")),
        )
