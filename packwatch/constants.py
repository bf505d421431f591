"""Centralized constants module for packwatch.

This module serves as the single source of truth for all shared constants
across the packwatch codebase. Constants are organized by logical categories
and use typing.Final annotations to ensure immutability.

Usage:
    from packwatch.constants import DEFAULT_KEYSERVER
"""

from typing import Final, Literal

# =============================================================================
# Configuration Constants
# =============================================================================

CONFIG_VERSION: Final[str] = "1.0.0"

CONFIG_FILE_NAME: Final[str] = "settings.conf"
CONFIG_DIR_NAME: Final[str] = ".config"
DEFAULT_CONFIG_SUBDIR: Final[str] = "packwatch"
DEFAULT_APPS_DIR_NAME: Final[str] = "apps"

DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_CONSOLE_LOG_LEVEL: Final[str] = "WARNING"
DEFAULT_BACKUP_COUNT: Final[int] = 3
DEFAULT_MAX_CONCURRENT_VERIFICATIONS: Final[int] = 4

# Network defaults (seconds)
DEFAULT_RETRY_ATTEMPTS: Final[int] = 3
DEFAULT_RETRY_DELAY_SECONDS: Final[int] = 2
DEFAULT_CONNECT_TIMEOUT_SECONDS: Final[int] = 10
DEFAULT_MAX_TIME_SECONDS: Final[int] = 120

SECTION_DEFAULT: Final[str] = "DEFAULT"
SECTION_NETWORK: Final[str] = "network"
SECTION_GPG: Final[str] = "gpg"
SECTION_DIRECTORY: Final[str] = "directory"

DIRECTORY_KEYS: Final[tuple[str, ...]] = ("logs", "cache", "tmp", "audit")

# =============================================================================
# Logging Constants
# =============================================================================

LOG_FILE_NAME: Final[str] = "packwatch.log"
LOG_MAX_FILE_SIZE_BYTES: Final[int] = 1024 * 1024  # 1 MB
LOG_BACKUP_COUNT: Final[int] = DEFAULT_BACKUP_COUNT

LOG_CONSOLE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
LOG_CONSOLE_DATE_FORMAT: Final[str] = "%H:%M:%S"
LOG_FILE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(funcName)s:%(lineno)d - %(message)s"
)
LOG_FILE_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

AUDIT_LOG_FILE_NAME: Final[str] = "verify-events.jsonl"

# =============================================================================
# Hashing / verification constants
# =============================================================================

HashType = Literal["sha256", "sha512", "md5"]

SUPPORTED_HASH_ALGORITHMS: Final[tuple[str, ...]] = ("sha256", "sha512", "md5")
DEFAULT_HASH_TYPE: Final[str] = "sha256"

# Read size used when streaming artifacts through a hash function
HASH_CHUNK_SIZE: Final[int] = 65536

# Hex digest lengths accepted in checksum manifests
SHA256_HEX_LENGTH: Final[int] = 64
SHA512_HEX_LENGTH: Final[int] = 128
MANIFEST_HEX_LENGTHS: Final[tuple[int, ...]] = (
    SHA256_HEX_LENGTH,
    SHA512_HEX_LENGTH,
)

# Hex digest length per algorithm
HEX_LENGTHS: Final[dict[str, int]] = {
    "md5": 32,
    "sha256": SHA256_HEX_LENGTH,
    "sha512": SHA512_HEX_LENGTH,
}

# Preferred order when a response carries several digest headers
HEADER_DIGEST_PREFERENCE: Final[tuple[str, ...]] = ("sha512", "sha256", "md5")

# =============================================================================
# Signature / GPG constants
# =============================================================================

DEFAULT_KEYSERVER: Final[str] = "hkps://keyserver.ubuntu.com"
DEFAULT_GPG_BINARY: Final[str] = "gpg"
SIGNATURE_ALGORITHM: Final[str] = "pgp"
SIGNATURE_SUFFIX: Final[str] = ".sig"
SIGNATURE_FALLBACK_SUFFIX: Final[str] = ".asc"
EPHEMERAL_KEYRING_PREFIX: Final[str] = "packwatch-gpg-"
EPHEMERAL_KEYRING_MODE: Final[int] = 0o700

# =============================================================================
# Audit event sentinels
# =============================================================================

SENTINEL_RESOLVE_ERROR: Final[str] = "<resolve-error>"
SENTINEL_MISSING: Final[str] = "<missing>"
SENTINEL_NONE: Final[str] = "<none>"
SENTINEL_NOT_COMPUTED: Final[str] = "<not-computed>"
SENTINEL_PROBE_ERROR: Final[str] = "<probe-error>"
SENTINEL_DOWNLOAD_ERROR: Final[str] = "<download-error>"
SENTINEL_KEY_NOT_FOUND: Final[str] = "<key-not-found>"
SENTINEL_KEY_IMPORT_ERROR: Final[str] = "<key-import-error>"
SENTINEL_BAD_SIGNATURE: Final[str] = "<bad-signature>"
SENTINEL_NO_HELPER: Final[str] = "<no-helper>"
