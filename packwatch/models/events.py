"""Audit events emitted for every attempted verification phase."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import orjson


class EventKind(str, Enum):
    """Verification phase an event belongs to."""

    CHECKSUM = "checksum"
    HEADER_DIGEST = "header_digest"
    SIGNATURE = "signature"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True, frozen=True)
class VerificationEvent:
    """Structured record of one verification phase.

    ``actual`` holds the observed value, or one of the sentinels from
    ``packwatch.constants`` when it could not be computed.

    ``url`` is the download URL of the artifact for checksum and
    header-digest events. Signature events carry the URL of the signature
    file that was used, or whose download failed last.
    """

    kind: EventKind
    success: bool
    algorithm: str
    expected: str
    actual: str
    file: str
    url: str
    app: str
    key_id: str = ""
    fingerprint: str = ""
    time: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Return the event as the JSON object published to hooks."""
        return {
            "kind": self.kind.value,
            "success": self.success,
            "algorithm": self.algorithm,
            "expected": self.expected,
            "actual": self.actual,
            "file": self.file,
            "url": self.url,
            "key_id": self.key_id,
            "fingerprint": self.fingerprint,
            "app": self.app,
            "time": self.time,
        }

    def to_json(self) -> bytes:
        """Encode the event with orjson."""
        return orjson.dumps(self.to_dict())
