"""Event sinks and error reporters used by the verification core.

The orchestrator only knows the ``EventSink`` and ``ErrorReporter``
protocols. A caller composes the concrete implementations below, usually
through ``HookRegistry``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

import orjson

from packwatch.exceptions import ErrorKind
from packwatch.logger import get_logger
from packwatch.models.events import VerificationEvent

logger = get_logger(__name__)

EventHook = Callable[[VerificationEvent], None]


@runtime_checkable
class EventSink(Protocol):
    """Receives one event per attempted verification phase."""

    def emit(self, event: VerificationEvent) -> None:
        """Handle an event."""
        ...


class ErrorReporter(Protocol):
    """Receives exactly one report per hard failure."""

    def report(self, kind: ErrorKind, message: str, app_name: str) -> None:
        """Handle a hard failure."""
        ...


class LoggingEventSink:
    """Writes each event as a single log line."""

    def emit(self, event: VerificationEvent) -> None:
        status = "✅" if event.success else "❌"
        message = "%s %s %s for %s (expected=%s actual=%s)"
        args = (
            status,
            event.kind.value,
            event.algorithm,
            event.app,
            event.expected,
            event.actual,
        )
        if event.success:
            logger.debug(message, *args)
        else:
            logger.warning(message, *args)


class JsonLinesAuditSink:
    """Appends events to a JSON-lines audit file."""

    def __init__(self, path: Path) -> None:
        """Initialize the audit sink.

        Args:
            path: Audit log file; parent directories are created on demand

        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def emit(self, event: VerificationEvent) -> None:
        line = orjson.dumps(event.to_dict()) + b"\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "ab") as f:
                f.write(line)


class RecordingEventSink:
    """Keeps emitted events in memory."""

    def __init__(self) -> None:
        self.events: list[VerificationEvent] = []

    def emit(self, event: VerificationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[VerificationEvent]:
        """Return recorded events for one phase."""
        return [e for e in self.events if e.kind.value == kind]


class HookRegistry:
    """Fans every event out to registered sinks and callables.

    A failing hook is logged and skipped; it never aborts verification or
    stops later hooks from running.
    """

    def __init__(self, *hooks: EventSink | EventHook) -> None:
        self._hooks: list[EventSink | EventHook] = []
        for hook in hooks:
            self.register(hook)

    def register(self, hook: EventSink | EventHook) -> None:
        """Add a sink (object with ``emit``) or a plain callable.

        Raises:
            TypeError: If the hook is neither

        """
        if not isinstance(hook, EventSink) and not callable(hook):
            raise TypeError(f"Hook {hook!r} is not callable")
        self._hooks.append(hook)

    def unregister(self, hook: EventSink | EventHook) -> None:
        """Remove a previously registered hook if present."""
        if hook in self._hooks:
            self._hooks.remove(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    def emit(self, event: VerificationEvent) -> None:
        for hook in list(self._hooks):
            try:
                if isinstance(hook, EventSink):
                    hook.emit(event)
                else:
                    hook(event)
            except Exception as e:
                logger.warning(
                    "Hook %r failed for app '%s': %s", hook, event.app, e
                )


class LoggingErrorReporter:
    """Logs hard failures as ``[KIND] message (app: name)``."""

    def report(self, kind: ErrorKind, message: str, app_name: str) -> None:
        logger.error("[%s] %s (app: %s)", kind.value, message, app_name)


class RecordingErrorReporter:
    """Keeps reported failures in memory."""

    def __init__(self) -> None:
        self.reports: list[tuple[ErrorKind, str, str]] = []

    def report(self, kind: ErrorKind, message: str, app_name: str) -> None:
        self.reports.append((kind, message, app_name))

    @property
    def kinds(self) -> list[ErrorKind]:
        """Reported error kinds in order."""
        return [kind for kind, _, _ in self.reports]
