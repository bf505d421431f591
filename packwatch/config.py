"""Configuration management for packwatch.

This module handles the global INI configuration (network limits, GPG
settings, directories, log levels) and the per-application JSON records that
carry each application's verification policy.

Requirements:
    - orjson: High-performance JSON library (required for all JSON operations)
"""

import configparser
import os
from pathlib import Path
from typing import TypedDict

import orjson

from packwatch.constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    CONFIG_VERSION,
    DEFAULT_APPS_DIR_NAME,
    DEFAULT_CONFIG_SUBDIR,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_GPG_BINARY,
    DEFAULT_KEYSERVER,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_CONCURRENT_VERIFICATIONS,
    DEFAULT_MAX_TIME_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DIRECTORY_KEYS,
    SECTION_DEFAULT,
    SECTION_DIRECTORY,
    SECTION_GPG,
    SECTION_NETWORK,
)
from packwatch.exceptions import ConfigurationError
from packwatch.models.policy import VerificationPolicy


class NetworkConfig(TypedDict):
    """Network configuration options."""

    retry_attempts: int
    retry_delay_seconds: int
    connect_timeout_seconds: int
    max_time_seconds: int


class GPGConfig(TypedDict):
    """GPG configuration options."""

    keyserver: str
    user_home: Path
    binary: str


class DirectoryConfig(TypedDict):
    """Directory paths configuration."""

    logs: Path
    cache: Path
    tmp: Path
    audit: Path


class GlobalConfig(TypedDict):
    """Global application configuration."""

    config_version: str
    log_level: str
    console_log_level: str
    max_concurrent_verifications: int
    network: NetworkConfig
    gpg: GPGConfig
    directory: DirectoryConfig


def default_gpg_home() -> Path:
    """Return the caller's GPG home ($GNUPGHOME or ~/.gnupg)."""
    env_home = os.environ.get("GNUPGHOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".gnupg"


class DirectoryManager:
    """Manages directory operations and path resolution."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize directory manager.

        Args:
            config_dir: Optional custom config directory. Defaults to
                ~/.config/packwatch/

        """
        self._config_dir: Path = config_dir or (
            Path.home() / CONFIG_DIR_NAME / DEFAULT_CONFIG_SUBDIR
        )
        self._settings_file: Path = self._config_dir / CONFIG_FILE_NAME
        self._apps_dir: Path = self._config_dir / DEFAULT_APPS_DIR_NAME

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self._config_dir

    @property
    def settings_file(self) -> Path:
        """Get the settings file path."""
        return self._settings_file

    @property
    def apps_dir(self) -> Path:
        """Get the per-application configuration directory path."""
        return self._apps_dir

    def expand_path(self, path_str: str) -> Path:
        """Expand and resolve path with ~ and relative path support."""
        return Path(path_str).expanduser().resolve()

    def ensure_user_directories(self) -> None:
        """Create the config and apps directories if they don't exist."""
        for directory in (self._config_dir, self._apps_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def ensure_directories_from_config(self, config: GlobalConfig) -> None:
        """Create every directory named in the [directory] section."""
        for path in config["directory"].values():
            Path(path).mkdir(parents=True, exist_ok=True)


class GlobalConfigManager:
    """Manages the global INI configuration."""

    def __init__(self, directory_manager: DirectoryManager) -> None:
        """Initialize global config manager.

        Args:
            directory_manager: Directory manager for path operations

        """
        self.directory_manager = directory_manager

    def get_default_global_config(self) -> dict[str, str | dict[str, str]]:
        """Get default global configuration values.

        Returns:
            Default configuration dictionary

        """
        config_dir = self.directory_manager.config_dir
        return {
            "config_version": CONFIG_VERSION,
            "log_level": DEFAULT_LOG_LEVEL,
            "console_log_level": DEFAULT_CONSOLE_LOG_LEVEL,
            "max_concurrent_verifications": str(
                DEFAULT_MAX_CONCURRENT_VERIFICATIONS
            ),
            SECTION_NETWORK: {
                "retry_attempts": str(DEFAULT_RETRY_ATTEMPTS),
                "retry_delay_seconds": str(DEFAULT_RETRY_DELAY_SECONDS),
                "connect_timeout_seconds": str(
                    DEFAULT_CONNECT_TIMEOUT_SECONDS
                ),
                "max_time_seconds": str(DEFAULT_MAX_TIME_SECONDS),
            },
            SECTION_GPG: {
                "keyserver": DEFAULT_KEYSERVER,
                "user_home": str(default_gpg_home()),
                "binary": DEFAULT_GPG_BINARY,
            },
            SECTION_DIRECTORY: {
                "logs": str(config_dir / "logs"),
                "cache": str(config_dir / "cache"),
                "tmp": str(config_dir / "tmp"),
                "audit": str(config_dir / "audit"),
            },
        }

    def load_global_config(self) -> GlobalConfig:
        """Load global configuration from the INI file.

        Missing files and keys fall back to defaults. Loading never writes.

        Returns:
            Loaded global configuration

        Raises:
            ConfigurationError: If the file cannot be parsed or a numeric
                value is invalid

        """
        parser = configparser.ConfigParser(interpolation=None)
        defaults = self.get_default_global_config()

        parser.read_dict(
            {
                SECTION_DEFAULT: {
                    key: value
                    for key, value in defaults.items()
                    if not isinstance(value, dict)
                }
            }
        )
        for key, value in defaults.items():
            if isinstance(value, dict):
                parser.add_section(key)
                for subkey, subvalue in value.items():
                    parser.set(key, subkey, subvalue)

        settings_file = self.directory_manager.settings_file
        if settings_file.exists():
            try:
                parser.read(settings_file, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(
                    f"Invalid settings file {settings_file}: {e}"
                ) from e

        return self._convert_to_global_config(parser)

    def save_global_config(self, config: GlobalConfig) -> None:
        """Save global configuration to the INI file.

        Args:
            config: Global configuration to save

        """
        parser = configparser.ConfigParser(interpolation=None)
        parser[SECTION_DEFAULT] = {
            "config_version": config["config_version"],
            "log_level": config["log_level"],
            "console_log_level": config["console_log_level"],
            "max_concurrent_verifications": str(
                config["max_concurrent_verifications"]
            ),
        }
        parser[SECTION_NETWORK] = {
            key: str(value) for key, value in config["network"].items()
        }
        parser[SECTION_GPG] = {
            key: str(value) for key, value in config["gpg"].items()
        }
        parser[SECTION_DIRECTORY] = {
            key: str(path) for key, path in config["directory"].items()
        }

        self.directory_manager.config_dir.mkdir(parents=True, exist_ok=True)
        with open(
            self.directory_manager.settings_file, "w", encoding="utf-8"
        ) as f:
            parser.write(f)

    def _convert_to_global_config(
        self, parser: configparser.ConfigParser
    ) -> GlobalConfig:
        """Convert a populated parser into a typed GlobalConfig."""

        def get_int(section: str, key: str) -> int:
            raw = parser.get(section, key)
            try:
                value = int(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"[{section}] {key} must be an integer, got {raw!r}"
                ) from e
            if value < 0:
                raise ConfigurationError(
                    f"[{section}] {key} must not be negative"
                )
            return value

        directory = DirectoryConfig(
            **{
                key: self.directory_manager.expand_path(
                    parser.get(SECTION_DIRECTORY, key)
                )
                for key in DIRECTORY_KEYS
            }
        )

        return GlobalConfig(
            config_version=parser.get(SECTION_DEFAULT, "config_version"),
            log_level=parser.get(SECTION_DEFAULT, "log_level").upper(),
            console_log_level=parser.get(
                SECTION_DEFAULT, "console_log_level"
            ).upper(),
            max_concurrent_verifications=max(
                1, get_int(SECTION_DEFAULT, "max_concurrent_verifications")
            ),
            network=NetworkConfig(
                retry_attempts=max(
                    1, get_int(SECTION_NETWORK, "retry_attempts")
                ),
                retry_delay_seconds=get_int(
                    SECTION_NETWORK, "retry_delay_seconds"
                ),
                connect_timeout_seconds=get_int(
                    SECTION_NETWORK, "connect_timeout_seconds"
                ),
                max_time_seconds=get_int(SECTION_NETWORK, "max_time_seconds"),
            ),
            gpg=GPGConfig(
                keyserver=parser.get(SECTION_GPG, "keyserver"),
                user_home=self.directory_manager.expand_path(
                    parser.get(SECTION_GPG, "user_home")
                ),
                binary=parser.get(SECTION_GPG, "binary"),
            ),
            directory=directory,
        )


class PolicyConfigManager:
    """Manages per-application JSON records holding verification policies."""

    def __init__(self, directory_manager: DirectoryManager) -> None:
        """Initialize policy config manager.

        Args:
            directory_manager: Directory manager for path operations

        """
        self.directory_manager = directory_manager

    def _app_file(self, app_name: str) -> Path:
        return self.directory_manager.apps_dir / f"{app_name}.json"

    def load_policy(self, app_name: str) -> VerificationPolicy | None:
        """Load the verification policy of an application.

        Args:
            app_name: Name of the application

        Returns:
            Verification policy or None if the app has no config file

        Raises:
            ConfigurationError: If the file is not valid JSON or the policy
                fields are invalid

        """
        app_file = self._app_file(app_name)
        if not app_file.exists():
            return None

        try:
            with open(app_file, "rb") as f:
                data = orjson.loads(f.read())
        except (orjson.JSONDecodeError, OSError) as e:
            raise ConfigurationError(
                f"Failed to load app config: {e}", target=app_name
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "App config must be a JSON object", target=app_name
            )
        return VerificationPolicy.from_dict(data, name=app_name)

    def save_policy(self, policy: VerificationPolicy) -> None:
        """Write a policy back to its JSON record, keeping unknown keys.

        Args:
            policy: Policy to persist

        Raises:
            ConfigurationError: If the file cannot be written

        """
        app_file = self._app_file(policy.name)
        record: dict = {}
        if app_file.exists():
            try:
                with open(app_file, "rb") as f:
                    existing = orjson.loads(f.read())
            except (orjson.JSONDecodeError, OSError) as e:
                raise ConfigurationError(
                    f"Failed to read app config: {e}", target=policy.name
                ) from e
            if isinstance(existing, dict):
                record = existing

        record.update(
            {
                "name": policy.name,
                "require_checksum": policy.require_checksum,
                "skip_checksum": policy.skip_checksum,
                "skip_header_digest": policy.skip_header_digest,
                "checksum_algorithm": policy.checksum_algorithm.value,
                "checksum_url": policy.checksum_url or "",
                "gpg_key_id": policy.gpg_key_id or "",
                "gpg_fingerprint": policy.gpg_fingerprint or "",
                "sig_url": policy.sig_url or "",
                "allow_insecure_http": policy.allow_insecure_http,
                "gpg_key_source": policy.gpg_key_source.value,
                "gpg_key_url": policy.gpg_key_url or "",
            }
        )

        try:
            app_file.parent.mkdir(parents=True, exist_ok=True)
            with open(app_file, "wb") as f:
                f.write(orjson.dumps(record, option=orjson.OPT_INDENT_2))
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save app config: {e}", target=policy.name
            ) from e

    def list_apps(self) -> list[str]:
        """Get the names of all applications with a config record."""
        if not self.directory_manager.apps_dir.exists():
            return []
        return sorted(
            f.stem
            for f in self.directory_manager.apps_dir.glob("*.json")
            if f.is_file()
        )


class ConfigManager:
    """Facade that coordinates all configuration managers."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom config directory. Defaults to
                ~/.config/packwatch/

        """
        self.directory_manager = DirectoryManager(config_dir)
        self.global_config_manager = GlobalConfigManager(
            self.directory_manager
        )
        self.policy_config_manager = PolicyConfigManager(
            self.directory_manager
        )

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.directory_manager.config_dir

    @property
    def settings_file(self) -> Path:
        """Get the settings file path."""
        return self.directory_manager.settings_file

    def load_global_config(self) -> GlobalConfig:
        """Load global configuration from INI file."""
        return self.global_config_manager.load_global_config()

    def save_global_config(self, config: GlobalConfig) -> None:
        """Save global configuration to INI file."""
        self.global_config_manager.save_global_config(config)

    def load_policy(self, app_name: str) -> VerificationPolicy | None:
        """Load an application's verification policy."""
        return self.policy_config_manager.load_policy(app_name)

    def save_policy(self, policy: VerificationPolicy) -> None:
        """Save an application's verification policy."""
        self.policy_config_manager.save_policy(policy)

    def list_apps(self) -> list[str]:
        """Get list of configured applications."""
        return self.policy_config_manager.list_apps()
