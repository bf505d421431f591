"""Collaborators of the verification core: network fetching and hooks."""

from packwatch.services.fetcher import (
    Fetcher,
    HttpFetcher,
    check_url_scheme,
    fetched_file,
)
from packwatch.services.hooks import (
    ErrorReporter,
    EventSink,
    HookRegistry,
    JsonLinesAuditSink,
    LoggingErrorReporter,
    LoggingEventSink,
    RecordingErrorReporter,
    RecordingEventSink,
)

__all__ = [
    "ErrorReporter",
    "EventSink",
    "Fetcher",
    "HookRegistry",
    "HttpFetcher",
    "JsonLinesAuditSink",
    "LoggingErrorReporter",
    "LoggingEventSink",
    "RecordingErrorReporter",
    "RecordingEventSink",
    "check_url_scheme",
    "fetched_file",
]
