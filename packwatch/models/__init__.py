"""Typed data model for the verification core."""

from packwatch.models.artifact import Artifact
from packwatch.models.events import EventKind, VerificationEvent
from packwatch.models.policy import (
    ChecksumAlgorithm,
    KeySource,
    VerificationPolicy,
)

__all__ = [
    "Artifact",
    "ChecksumAlgorithm",
    "EventKind",
    "KeySource",
    "VerificationEvent",
    "VerificationPolicy",
]
