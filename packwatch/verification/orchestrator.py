"""Verification orchestrator.

Composes the checksum, header-digest and signature phases for one artifact:

    START -> CHECKSUM -> HEADER_DIGEST -> SIGNATURE -> PASS | FAIL

Phases run strictly in sequence and each can be disabled by the policy.
The checksum and signature phases fail closed: the first hard failure
reports exactly one error and ends the call. The header-digest phase is
advisory and only ever emits a warning event.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import aiohttp

from packwatch.config import GlobalConfig
from packwatch.constants import (
    AUDIT_LOG_FILE_NAME,
    DEFAULT_MAX_CONCURRENT_VERIFICATIONS,
    SENTINEL_MISSING,
    SENTINEL_NONE,
    SENTINEL_NOT_COMPUTED,
    SENTINEL_PROBE_ERROR,
    SENTINEL_RESOLVE_ERROR,
    SUPPORTED_HASH_ALGORITHMS,
)
from packwatch.exceptions import (
    ChecksumError,
    ErrorKind,
    NetworkError,
    PackwatchError,
)
from packwatch.logger import get_logger
from packwatch.models.artifact import Artifact
from packwatch.models.events import EventKind, VerificationEvent
from packwatch.models.policy import VerificationPolicy
from packwatch.services.fetcher import Fetcher, HttpFetcher
from packwatch.services.hooks import (
    ErrorReporter,
    EventSink,
    HookRegistry,
    JsonLinesAuditSink,
    LoggingErrorReporter,
    LoggingEventSink,
)
from packwatch.verification.checksum_resolver import ChecksumResolver
from packwatch.verification.gpg import (
    BackendFactory,
    ensure_dependencies,
    gnupg_backend_factory,
)
from packwatch.verification.hash_calculator import HashCalculator
from packwatch.verification.header_digest import parse_header_digest
from packwatch.verification.keyring import KeyringManager
from packwatch.verification.signature import SignatureVerifier

logger = get_logger(__name__)


class VerificationState(str, Enum):
    """Position of a verification call in its state machine."""

    START = "start"
    CHECKSUM = "checksum"
    HEADER_DIGEST = "header_digest"
    SIGNATURE = "signature"
    PASS = "pass"
    FAIL = "fail"


@dataclass(slots=True)
class VerificationReport:
    """Outcome of one verification call."""

    app_name: str
    passed: bool
    state: VerificationState
    failed_phase: VerificationState | None = None
    error_kind: ErrorKind | None = None
    error_message: str = ""
    events: list[VerificationEvent] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class VerificationJob:
    """Arguments of one ``verify`` call for batch verification."""

    policy: VerificationPolicy
    file_path: Path
    source_url: str
    app_name: str | None = None
    direct_checksum: str = ""


class _CallEvents:
    """Forwards events to the shared sink and keeps this call's copies."""

    def __init__(self, sink: EventSink) -> None:
        self.sink = sink
        self.events: list[VerificationEvent] = []

    def emit(self, event: VerificationEvent) -> None:
        self.events.append(event)
        self.sink.emit(event)


def split_digest(value: str, default_algorithm: str) -> tuple[str, str]:
    """Split an ``algorithm:hash`` digest, as published by release APIs.

    Values without a known algorithm prefix use ``default_algorithm``.
    """
    prefix, sep, rest = value.partition(":")
    if sep and prefix.strip().lower() in SUPPORTED_HASH_ALGORITHMS:
        return prefix.strip().lower(), rest.strip()
    return default_algorithm, value.strip()


class VerificationOrchestrator:
    """Public entry point of the verification core."""

    def __init__(
        self,
        resolver: ChecksumResolver,
        hash_calculator: HashCalculator,
        fetcher: Fetcher,
        signature_verifier: SignatureVerifier,
        sink: EventSink,
        reporter: ErrorReporter,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_VERIFICATIONS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            resolver: Resolves expected checksums
            hash_calculator: Computes local digests
            fetcher: Network collaborator used for the header probe
            signature_verifier: Runs the signature phase
            sink: Receives one event per attempted phase
            reporter: Receives one report per hard failure
            max_concurrent: Default concurrency of ``verify_many``

        """
        self.resolver = resolver
        self.hash_calculator = hash_calculator
        self.fetcher = fetcher
        self.signature_verifier = signature_verifier
        self.sink = sink
        self.reporter = reporter
        self.max_concurrent = max(1, max_concurrent)

    async def verify(
        self,
        policy: VerificationPolicy,
        file_path: str | Path,
        source_url: str,
        app_name: str | None = None,
        direct_checksum: str = "",
    ) -> bool:
        """Verify an artifact and return the verdict.

        Args:
            policy: Verification policy of the application
            file_path: Local path of the downloaded artifact
            source_url: URL the artifact was downloaded from
            app_name: Display name (defaults to the policy name)
            direct_checksum: Checksum already known to the caller

        Returns:
            True only if every attempted fail-closed phase passed

        """
        report = await self.run(
            policy, file_path, source_url, app_name, direct_checksum
        )
        return report.passed

    async def run(
        self,
        policy: VerificationPolicy,
        file_path: str | Path,
        source_url: str,
        app_name: str | None = None,
        direct_checksum: str = "",
    ) -> VerificationReport:
        """Verify an artifact and return a detailed report.

        Hard failures never propagate as exceptions; they are reported to
        the error reporter and reflected in the returned report.
        """
        artifact = Artifact(
            path=Path(file_path),
            download_url=source_url,
            app_name=app_name or policy.name,
            direct_checksum=direct_checksum or "",
        )
        events = _CallEvents(self.sink)
        state = VerificationState.START
        logger.debug(
            "🔍 Verifying %s for %s", artifact.path, artifact.app_name
        )

        try:
            if policy.skip_checksum:
                logger.debug("Checksum phase disabled for %s", policy.name)
            else:
                state = VerificationState.CHECKSUM
                await self._checksum_phase(policy, artifact, events)

            if policy.skip_header_digest:
                logger.debug(
                    "Header digest phase disabled for %s", policy.name
                )
            else:
                state = VerificationState.HEADER_DIGEST
                await self._header_digest_phase(artifact, events)

            if policy.signature_enabled:
                state = VerificationState.SIGNATURE
                await self.signature_verifier.verify(policy, artifact, events)
        except PackwatchError as e:
            message = str(e)
            self.reporter.report(e.kind, message, artifact.app_name)
            return VerificationReport(
                app_name=artifact.app_name,
                passed=False,
                state=VerificationState.FAIL,
                failed_phase=state,
                error_kind=e.kind,
                error_message=message,
                events=events.events,
            )

        logger.debug("✅ Verification passed for %s", artifact.app_name)
        return VerificationReport(
            app_name=artifact.app_name,
            passed=True,
            state=VerificationState.PASS,
            events=events.events,
        )

    def _event(
        self,
        kind: EventKind,
        artifact: Artifact,
        success: bool,
        algorithm: str,
        expected: str,
        actual: str,
    ) -> VerificationEvent:
        return VerificationEvent(
            kind=kind,
            success=success,
            algorithm=algorithm,
            expected=expected,
            actual=actual,
            file=str(artifact.path),
            url=artifact.download_url,
            app=artifact.app_name,
        )

    async def _checksum_phase(
        self,
        policy: VerificationPolicy,
        artifact: Artifact,
        sink: EventSink,
    ) -> None:
        """Resolve and compare the expected checksum.

        Raises:
            NetworkError: If the configured manifest cannot be fetched
            ChecksumError: If the checksum is missing while required, or
                does not match

        """
        algorithm = policy.checksum_algorithm.value

        def emit(success: bool, expected: str, actual: str) -> None:
            sink.emit(
                self._event(
                    EventKind.CHECKSUM,
                    artifact,
                    success,
                    algorithm,
                    expected,
                    actual,
                )
            )

        try:
            resolved = await self.resolver.resolve(policy, artifact)
        except NetworkError:
            emit(False, SENTINEL_RESOLVE_ERROR, SENTINEL_NOT_COMPUTED)
            raise

        if resolved is None:
            if policy.require_checksum:
                emit(False, SENTINEL_MISSING, SENTINEL_NOT_COMPUTED)
                raise ChecksumError(
                    "checksum missing and required", target=artifact.app_name
                )
            logger.debug("No checksum available for %s", artifact.app_name)
            emit(True, SENTINEL_NONE, SENTINEL_NOT_COMPUTED)
            return

        algorithm, expected = split_digest(resolved.value, algorithm)
        try:
            actual = await asyncio.to_thread(
                self.hash_calculator.compute_digest, artifact.path, algorithm
            )
        except (OSError, ValueError) as e:
            emit(False, expected, SENTINEL_NOT_COMPUTED)
            raise ChecksumError(
                f"cannot hash {artifact.path}: {e}", target=artifact.app_name
            ) from e

        if not self.hash_calculator.digests_match(actual, expected):
            emit(False, expected, actual)
            raise ChecksumError(
                f"expected {algorithm} {expected}, got {actual}",
                target=artifact.app_name,
            )

        logger.debug("✅ Checksum verified for %s", artifact.app_name)
        emit(True, expected, actual)

    async def _header_digest_phase(
        self, artifact: Artifact, sink: EventSink
    ) -> None:
        """Compare a server-advertised digest; never raises."""

        def emit(
            success: bool, algorithm: str, expected: str, actual: str
        ) -> None:
            sink.emit(
                self._event(
                    EventKind.HEADER_DIGEST,
                    artifact,
                    success,
                    algorithm,
                    expected,
                    actual,
                )
            )

        try:
            headers = await self.fetcher.probe_headers(artifact.download_url)
        except NetworkError as e:
            logger.warning(
                "⚠️  Header digest probe failed for %s: %s",
                artifact.app_name,
                e.message,
            )
            emit(False, "", SENTINEL_PROBE_ERROR, SENTINEL_NOT_COMPUTED)
            return

        digest = parse_header_digest(headers)
        if digest is None:
            logger.debug("No digest header for %s", artifact.download_url)
            emit(True, "", SENTINEL_NONE, SENTINEL_NOT_COMPUTED)
            return

        try:
            actual = await asyncio.to_thread(
                self.hash_calculator.compute_digest,
                artifact.path,
                digest.algorithm,
            )
        except OSError as e:
            logger.warning(
                "⚠️  Cannot hash %s for header digest: %s",
                artifact.path,
                e,
            )
            emit(
                False,
                digest.algorithm,
                digest.hex_value,
                SENTINEL_NOT_COMPUTED,
            )
            return

        if self.hash_calculator.digests_match(actual, digest.hex_value):
            logger.debug(
                "✅ %s header digest matches for %s",
                digest.header,
                artifact.app_name,
            )
            emit(True, digest.algorithm, digest.hex_value, actual)
            return

        logger.warning(
            "⚠️  %s header digest mismatch for %s (expected %s, got %s); "
            "continuing",
            digest.header,
            artifact.app_name,
            digest.hex_value,
            actual,
        )
        emit(False, digest.algorithm, digest.hex_value, actual)

    async def verify_many(
        self,
        jobs: Sequence[VerificationJob],
        max_concurrent: int | None = None,
    ) -> list[VerificationReport]:
        """Verify several artifacts concurrently.

        Args:
            jobs: Artifacts to verify
            max_concurrent: Concurrency limit (orchestrator default if None)

        Returns:
            One report per job, in job order

        Raises:
            Exception: The first error other than ``PackwatchError`` raised
                by a job, re-raised once every other job has finished

        """
        limit = max(1, max_concurrent or self.max_concurrent)
        semaphore = asyncio.Semaphore(limit)

        async def run_job(job: VerificationJob) -> VerificationReport:
            async with semaphore:
                return await self.run(
                    job.policy,
                    job.file_path,
                    job.source_url,
                    job.app_name,
                    job.direct_checksum,
                )

        results = await asyncio.gather(
            *(run_job(job) for job in jobs), return_exceptions=True
        )

        errors: list[BaseException] = []
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Verification of %s aborted: %s",
                    job.app_name or job.policy.name,
                    result,
                )
                errors.append(result)
        if errors:
            raise errors[0]
        return [
            report
            for report in results
            if isinstance(report, VerificationReport)
        ]


def create_orchestrator(
    session: aiohttp.ClientSession,
    config: GlobalConfig,
    sink: EventSink | None = None,
    reporter: ErrorReporter | None = None,
    backend_factory: BackendFactory | None = None,
) -> VerificationOrchestrator:
    """Wire a fully configured orchestrator from the global config.

    The GPG binary is checked up front so a missing dependency surfaces
    before any verification starts.

    Args:
        session: aiohttp session used for every network request
        config: Loaded global configuration
        sink: Event sink (default: log lines plus JSON-lines audit file)
        reporter: Error reporter (default: logs ``[KIND] message``)
        backend_factory: GPG backend factory (default: python-gnupg)

    Returns:
        Ready-to-use orchestrator

    Raises:
        MissingDependencyError: If the GPG binary is not installed

    """
    gpg_config = config["gpg"]
    directories = config["directory"]
    ensure_dependencies(gpg_config["binary"])

    if sink is None:
        sink = HookRegistry(
            LoggingEventSink(),
            JsonLinesAuditSink(
                Path(directories["audit"]) / AUDIT_LOG_FILE_NAME
            ),
        )
    reporter = reporter or LoggingErrorReporter()
    backend_factory = backend_factory or gnupg_backend_factory(
        gpg_config["binary"], config["network"]["max_time_seconds"]
    )

    fetcher = HttpFetcher(session, directories["cache"], config["network"])
    keyring_manager = KeyringManager(
        fetcher,
        backend_factory,
        tmp_dir=directories["tmp"],
        user_home=gpg_config["user_home"],
        keyserver=gpg_config["keyserver"],
    )
    return VerificationOrchestrator(
        resolver=ChecksumResolver(fetcher),
        hash_calculator=HashCalculator(),
        fetcher=fetcher,
        signature_verifier=SignatureVerifier(fetcher, keyring_manager, sink),
        sink=sink,
        reporter=reporter,
        max_concurrent=config["max_concurrent_verifications"],
    )
