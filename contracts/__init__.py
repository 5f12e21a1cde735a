"""
Mailtools Contract Index
========================

AUTHORITY: This file is the SINGLE authoritative entrypoint for all
mailtools contracts. Import from here, not from individual contract files.
"""

from contracts.mailtools_contract import (
    DEFAULT_MAILBOX,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    ENV_PREFIX,
    # Test Case Index
    TEST_CASES,
    # Domain Types
    Attachment,
    AttachmentDecodeError,
    # Contracts (Protocols)
    AttachmentExtractorContract,
    AuthFailedError,
    CertificateMismatchError,
    ClimapContract,
    CommandFailedError,
    ConfigurationError,
    ConnectionFailedError,
    ImapSessionContract,
    ImapSettings,
    InvalidDurationError,
    MailboxNotFoundError,
    # Error Types
    MailtoolsError,
    MessageCacheContract,
    MessageParseError,
    MissingBoundaryError,
    NotConnectedError,
    UnsupportedContentTypeError,
    UnsupportedEncodingError,
)

__all__ = [
    # Constants
    "DEFAULT_MAILBOX",
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT",
    "ENV_PREFIX",
    # Domain Types
    "ImapSettings",
    "Attachment",
    # Error Types
    "MailtoolsError",
    "ConfigurationError",
    "ConnectionFailedError",
    "CertificateMismatchError",
    "AuthFailedError",
    "NotConnectedError",
    "CommandFailedError",
    "MailboxNotFoundError",
    "InvalidDurationError",
    "MessageParseError",
    "UnsupportedContentTypeError",
    "MissingBoundaryError",
    "UnsupportedEncodingError",
    "AttachmentDecodeError",
    # Contracts
    "ImapSessionContract",
    "AttachmentExtractorContract",
    "MessageCacheContract",
    "ClimapContract",
    # Test Traceability
    "TEST_CASES",
    # Functions
    "audit_contract_coverage",
]


def audit_contract_coverage() -> dict:
    """
    Audit which contract clauses have test coverage.

    Returns dict with:
    - covered: clauses with at least one test
    - uncovered: clauses with no tests
    - test_count: total tests defined
    """
    covered_clauses = set()
    for test_info in TEST_CASES.values():
        for clause in test_info.get("enforces", []):
            covered_clauses.add(clause)

    all_clauses = set()

    # Session clauses
    all_clauses.update(
        [
            "PRE-SESSION-01",
            "POST-SESSION-01",
            "POST-SESSION-02",
            "POST-SESSION-03",
            "POST-SESSION-04",
            "POST-SESSION-05",
            "POST-SESSION-06",
            "INV-SESSION-01",
            "INV-SESSION-02",
            "INV-SESSION-03",
            "INV-SESSION-04",
            "ERRORS: CONFIG_MISSING",
            "ERRORS: CONNECTION_FAILED",
            "ERRORS: CERTIFICATE_MISMATCH",
            "ERRORS: AUTH_FAILED",
            "ERRORS: NOT_CONNECTED",
            "ERRORS: COMMAND_FAILED",
            "ERRORS: MAILBOX_NOT_FOUND",
        ]
    )

    # Attachment clauses
    all_clauses.update(
        [
            "POST-MIME-01",
            "POST-MIME-02",
            "POST-MIME-03",
            "POST-MIME-04",
            "POST-MIME-05",
            "ERRORS: MESSAGE_PARSE",
            "ERRORS: UNSUPPORTED_CONTENT_TYPE",
            "ERRORS: MISSING_BOUNDARY",
            "ERRORS: UNSUPPORTED_ENCODING",
            "ERRORS: ATTACHMENT_DECODE",
        ]
    )

    # Cache clauses
    all_clauses.update(
        [
            "POST-CACHE-01",
            "POST-CACHE-02",
            "POST-CACHE-03",
            "INV-CACHE-01",
        ]
    )

    # CLI clauses
    all_clauses.update(
        [
            "PRE-CLI-01",
            "PRE-CLI-02",
            "POST-CLI-01",
            "POST-CLI-02",
            "POST-CLI-03",
            "POST-CLI-04",
        ]
    )

    uncovered = all_clauses - covered_clauses

    return {
        "covered": sorted(covered_clauses),
        "uncovered": sorted(uncovered),
        "test_count": len(TEST_CASES),
        "coverage_pct": round(len(covered_clauses & all_clauses) / len(all_clauses) * 100, 1),
    }
