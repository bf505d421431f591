"""Artifact descriptor handed to the verification core."""

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse


@dataclass(slots=True, frozen=True)
class Artifact:
    """A downloaded file awaiting verification.

    Attributes:
        path: Local path of the downloaded file.
        download_url: URL the file was downloaded from.
        app_name: Application display name for logs and audit events.
        direct_checksum: Checksum already extracted by the caller, for
            example from a release API response.

    """

    path: Path
    download_url: str
    app_name: str = "unknown"
    direct_checksum: str = ""

    @property
    def basename(self) -> str:
        """Local file name (without query string) used in manifest lookups."""
        return Path(self.path).name.split("?", 1)[0]

    @property
    def url_basename(self) -> str:
        """Last path segment of the download URL, or "" if it has none."""
        return unquote(urlparse(self.download_url).path.rsplit("/", 1)[-1])

    @property
    def manifest_names(self) -> tuple[str, ...]:
        """Names to look up in a checksum manifest, in priority order.

        Redirecting download URLs (``.../linux-deb-x64/stable``) end in a
        segment that is not a file name, so the local name comes first.
        """
        names = [self.basename]
        url_name = self.url_basename
        if url_name and url_name not in names:
            names.append(url_name)
        return tuple(name for name in names if name)
