"""Exception classes for packwatch verification operations."""

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of hard failures reported to the error collaborator."""

    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GPG_ERROR = "GPG_ERROR"
    MISSING_DEP = "MISSING_DEP"
    CONFIG_ERROR = "CONFIG_ERROR"


class PackwatchError(Exception):
    """Base class for every packwatch failure."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR
    action: str = "Verification"

    def __init__(self, message: str, target: str | None = None) -> None:
        """Initialize packwatch error.

        Args:
            message: Error message describing the failure.
            target: Optional name of the application or file involved.

        """
        super().__init__(message)
        self.message = message
        self.target = target

    def __str__(self) -> str:
        """Return string representation of the error.

        Returns:
            Formatted error message with target if available.

        """
        if self.target:
            return f"{self.action} failed for '{self.target}': {self.message}"
        return f"{self.action} failed: {self.message}"


class NetworkError(PackwatchError):
    """Raised when a side-file, key or header fetch fails."""

    kind = ErrorKind.NETWORK_ERROR
    action = "Download"


class ChecksumError(PackwatchError):
    """Raised when a checksum is missing while required, or mismatched."""

    kind = ErrorKind.VALIDATION_ERROR
    action = "Checksum verification"


class GPGError(PackwatchError):
    """Raised when key acquisition or signature verification fails."""

    kind = ErrorKind.GPG_ERROR
    action = "Signature verification"


class MissingDependencyError(PackwatchError):
    """Raised when a required external tool is not installed."""

    kind = ErrorKind.MISSING_DEP
    action = "Dependency check"


class ConfigurationError(PackwatchError):
    """Raised when a verification policy or config file is invalid."""

    kind = ErrorKind.CONFIG_ERROR
    action = "Configuration"
