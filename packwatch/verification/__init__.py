"""Artifact verification: checksums, header digests and GPG signatures."""

from packwatch.verification.checksum_parser import ChecksumManifestParser
from packwatch.verification.checksum_resolver import (
    ChecksumResolver,
    ChecksumSource,
    ResolvedChecksum,
)
from packwatch.verification.gpg import (
    GnuPGBackend,
    GPGBackend,
    GPGUnavailableError,
    SignatureCheck,
    ensure_dependencies,
)
from packwatch.verification.hash_calculator import HashCalculator
from packwatch.verification.header_digest import (
    HeaderDigest,
    parse_header_digest,
)
from packwatch.verification.keyring import EphemeralKeyring, KeyringManager
from packwatch.verification.orchestrator import (
    VerificationJob,
    VerificationOrchestrator,
    VerificationReport,
    VerificationState,
    create_orchestrator,
)
from packwatch.verification.signature import SignatureVerifier

__all__ = [
    "ChecksumManifestParser",
    "ChecksumResolver",
    "ChecksumSource",
    "EphemeralKeyring",
    "GPGBackend",
    "GPGUnavailableError",
    "GnuPGBackend",
    "HashCalculator",
    "HeaderDigest",
    "KeyringManager",
    "ResolvedChecksum",
    "SignatureCheck",
    "SignatureVerifier",
    "VerificationJob",
    "VerificationOrchestrator",
    "VerificationReport",
    "VerificationState",
    "create_orchestrator",
    "ensure_dependencies",
    "parse_header_digest",
]
