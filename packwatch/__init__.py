"""Top-level package for packwatch.

packwatch verifies downloaded release artifacts (checksums, server digest
headers and detached GPG signatures) before they are installed.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("packwatch")
except PackageNotFoundError:
    # Fallback for development environments where package isn't installed
    __version__ = "dev"
