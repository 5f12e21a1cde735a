"""
Mailtools Contract
==================

Command-line IMAP search/download utilities and a first-attachment extractor.

This contract defines the required behavior of all public interfaces.
Implementation SHALL perform ONLY declared behaviors.

AUTHORITY: This file is the SINGLE authoritative source for mailtools behavior.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


# =============================================================================
# DOMAIN TYPES
# =============================================================================

DEFAULT_PORT = 993
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAILBOX = "INBOX"
ENV_PREFIX = "CLIMAP_"


@dataclass(frozen=True)
class ImapSettings:
    """Connection settings held in memory only."""
    host: str
    user: str
    password: str
    port: int = DEFAULT_PORT
    tls_server_name: str | None = None
    base_dir: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        return (
            f"ImapSettings(host={self.host!r}, user={self.user!r}, password='***', "
            f"port={self.port!r}, tls_server_name={self.tls_server_name!r}, "
            f"base_dir={self.base_dir!r}, timeout={self.timeout!r})"
        )


@dataclass
class Attachment:
    """First file attachment of a multipart message."""
    filename: str
    length: int
    content: bytes
    encoding: str = ""


# =============================================================================
# ERROR TYPES
# =============================================================================

class MailtoolsError(Exception):
    """Base error for all mailtools operations."""
    code: str = "MAILTOOLS_ERROR"


class ConfigurationError(MailtoolsError):
    """
    ERRORS-CONFIG-01: Required environment variable unset, empty or malformed.

    RECOVERY: Fatal. Operator must export the named variable.
    """
    code = "CONFIG_MISSING"


class ConnectionFailedError(MailtoolsError):
    """
    ERRORS-SESSION-01: Network unreachable, host not found or TLS handshake failed.

    RECOVERY: Fatal. Check network connectivity and retry.
    """
    code = "CONNECTION_FAILED"


class CertificateMismatchError(ConnectionFailedError):
    """
    ERRORS-SESSION-02: Server certificate is valid, but for a different name.

    RECOVERY: Set <PREFIX>TLS_SERVERNAME to a name the certificate covers.
    """
    code = "CERTIFICATE_MISMATCH"


class AuthFailedError(MailtoolsError):
    """
    ERRORS-SESSION-03: Server rejected the configured credentials.

    RECOVERY: Fatal. Operator must update the stored credentials.
    """
    code = "AUTH_FAILED"


class NotConnectedError(MailtoolsError):
    """
    ERRORS-SESSION-04: Command issued before connect() or after logout().

    RECOVERY: Call init() first.
    """
    code = "NOT_CONNECTED"


class CommandFailedError(MailtoolsError):
    """
    ERRORS-SESSION-05: Server answered NO or BAD, or the connection dropped.

    Message format: "IMAP <COMMAND> error: <detail>".
    """
    code = "COMMAND_FAILED"


class MailboxNotFoundError(MailtoolsError):
    """
    ERRORS-SESSION-06: LIST returned no mailbox for the requested name.

    Message format: "Mailbox [<name>] not found".
    """
    code = "MAILBOX_NOT_FOUND"


class InvalidDurationError(MailtoolsError):
    """
    ERRORS-CRITERIA-01: Duration string is not of the form 72h, 1h30m, 90s ...
    """
    code = "INVALID_DURATION"


class MessageParseError(MailtoolsError):
    """
    ERRORS-MIME-01: Raw message or its multipart framing cannot be parsed.
    """
    code = "MESSAGE_PARSE"


class UnsupportedContentTypeError(MailtoolsError):
    """
    ERRORS-MIME-02: Top-level Content-Type is not multipart/*.

    Message format: "Unsupported top-level Content-Type [<type>]".
    """
    code = "UNSUPPORTED_CONTENT_TYPE"


class MissingBoundaryError(MailtoolsError):
    """
    ERRORS-MIME-03: Multipart Content-Type declares no boundary parameter.
    """
    code = "MISSING_BOUNDARY"


class UnsupportedEncodingError(MailtoolsError):
    """
    ERRORS-MIME-04: Attachment Content-Transfer-Encoding is not absent, base64 or quoted-printable.

    The undecoded attachment is available as ``attachment``.
    """
    code = "UNSUPPORTED_ENCODING"

    def __init__(self, message: str, attachment: Attachment | None = None) -> None:
        super().__init__(message)
        self.attachment = attachment


class AttachmentDecodeError(MailtoolsError):
    """
    ERRORS-MIME-05: base64 attachment payload is malformed.
    """
    code = "ATTACHMENT_DECODE"


# =============================================================================
# SESSION CONTRACT
# =============================================================================

@runtime_checkable
class ImapSessionContract(Protocol):
    """
    Thin wrapper around one authenticated IMAP connection.

    SEQUENCE (init):
    1. Dial host:port with implicit TLS (connect)
    2. NOOP to verify the connection answers (ping)
    3. LOGIN with configured credentials (login)

    PRE-SESSION-01: host, user and password are non-empty
    PRE-SESSION-02: Network connectivity to the IMAP server is available

    POST-SESSION-01: After init(), connected is True
    POST-SESSION-02: mailbox(name) leaves every LISTed match SELECTed read-only
    POST-SESSION-03: search() returns UIDs in server order
    POST-SESSION-04: message_by_uid() returns the raw BODY[] bytes or None
    POST-SESSION-05: headers_by_uid() returns the raw RFC822.HEADER bytes or None
    POST-SESSION-06: After logout(), connected is False

    INV-SESSION-01 (Credential Isolation): Password never appears in logs;
                    raw protocol logging is suppressed during LOGIN
    INV-SESSION-02 (Read-Only): Mailboxes are SELECTed read-only; no flags,
                    moves or deletes
    INV-SESSION-03 (Certificate Name): When tls_server_name is set, the
                    certificate is verified against it instead of host
    INV-SESSION-04 (Wrapped Errors): Library errors surface as MailtoolsError

    ERRORS:
    - CONNECTION_FAILED: Dial or TLS handshake failed
    - CERTIFICATE_MISMATCH: Certificate valid for another name (hint attached)
    - AUTH_FAILED: LOGIN rejected
    - NOT_CONNECTED: Command before connect
    - COMMAND_FAILED: NO/BAD response
    - MAILBOX_NOT_FOUND: LIST returned nothing
    """

    def init(self) -> None:
        """Connect, ping and login."""
        ...

    def mailbox(self, name: str) -> None:
        """Select a mailbox read-only."""
        ...

    def search(self, criteria: list) -> list[int]:
        """Return matching UIDs."""
        ...

    def message_by_uid(self, uid: int) -> bytes | None:
        """Return the raw message."""
        ...

    def logout(self) -> None:
        """Close the session."""
        ...


# =============================================================================
# ATTACHMENT EXTRACTOR CONTRACT
# =============================================================================

@runtime_checkable
class AttachmentExtractorContract(Protocol):
    """
    Function: decode_attachment(raw) -> Attachment | None

    PRE-MIME-01: raw is the full RFC 822 message as bytes

    POST-MIME-01: Returns the FIRST direct part carrying a filename
    POST-MIME-02: Returns None when no part carries a filename
    POST-MIME-03: base64 content is decoded after stripping all whitespace
    POST-MIME-04: Content without an encoding header is returned verbatim
    POST-MIME-05: length == len(content)

    INV-MIME-01 (Pure): No I/O, no logging of attachment bytes

    ERRORS:
    - MESSAGE_PARSE: Broken multipart framing
    - UNSUPPORTED_CONTENT_TYPE: Top-level type is not multipart/*
    - MISSING_BOUNDARY: No boundary parameter
    - UNSUPPORTED_ENCODING: Encoding other than none/base64/quoted-printable
    - ATTACHMENT_DECODE: Malformed base64
    """

    def __call__(self, raw: bytes) -> Attachment | None:
        ...


# =============================================================================
# MESSAGE CACHE CONTRACT
# =============================================================================

@runtime_checkable
class MessageCacheContract(Protocol):
    """
    Local store of raw messages under <base>/<user>/<mailbox>/<uid>.eml

    POST-CACHE-01: Existing file is returned without contacting the server
    POST-CACHE-02: Missing file is fetched and written before returning
    POST-CACHE-03: A fetch returning None writes nothing

    INV-CACHE-01 (No Invalidation): A cached file is never refreshed
    """

    def load_or_fetch(self, uid: int, fetch) -> tuple[bytes | None, bool]:
        ...


# =============================================================================
# CLIMAP CONTRACT
# =============================================================================

@runtime_checkable
class ClimapContract(Protocol):
    """
    CLI: climap [--mbox NAME] [--newer DURATION] [--subject TEXT] [--download]

    PRE-CLI-01: CLIMAP_HOST, CLIMAP_USER, CLIMAP_PASS are set
    PRE-CLI-02: CLIMAP_BASE is set when --download is given

    POST-CLI-01: Without --newer and --subject, exits 0 right after login
    POST-CLI-02: Criteria are SINCE <date> then SUBJECT <text>, as given
    POST-CLI-03: With --download every matching UID ends up on disk
    POST-CLI-04: Session is always logged out

    ERRORS:
    - Any MailtoolsError: logged, exit status 1
    """

    def __call__(self, argv: list[str] | None = None) -> int:
        ...


# =============================================================================
# TEST CASE INDEX
# =============================================================================

TEST_CASES = {
    # Config tests
    "test_settings_from_env": {
        "contract": "ImapSessionContract",
        "enforces": ["PRE-SESSION-01"],
    },
    "test_settings_missing_variable": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: CONFIG_MISSING"],
    },
    "test_settings_repr_hides_password": {
        "contract": "ImapSessionContract",
        "enforces": ["INV-SESSION-01"],
        "adversarial": True,
    },

    # Session tests
    "test_init_connects_pings_and_logs_in": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-01"],
    },
    "test_connect_failure": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: CONNECTION_FAILED"],
    },
    "test_certificate_mismatch_hint": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: CERTIFICATE_MISMATCH"],
    },
    "test_server_name_override": {
        "contract": "ImapSessionContract",
        "enforces": ["INV-SESSION-03"],
    },
    "test_login_rejected": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: AUTH_FAILED"],
    },
    "test_login_suppresses_protocol_logging": {
        "contract": "ImapSessionContract",
        "enforces": ["INV-SESSION-01"],
        "adversarial": True,
    },
    "test_command_before_connect": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: NOT_CONNECTED"],
    },
    "test_mailbox_selects_read_only": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-02", "INV-SESSION-02"],
    },
    "test_mailbox_not_found": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: MAILBOX_NOT_FOUND"],
    },
    "test_search_returns_uids": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-03"],
    },
    "test_search_failure_wrapped": {
        "contract": "ImapSessionContract",
        "enforces": ["ERRORS: COMMAND_FAILED", "INV-SESSION-04"],
    },
    "test_message_by_uid": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-04"],
    },
    "test_headers_by_uid": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-05"],
    },
    "test_logout_disconnects": {
        "contract": "ImapSessionContract",
        "enforces": ["POST-SESSION-06"],
    },

    # Attachment tests
    "test_first_attachment_base64": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["POST-MIME-01", "POST-MIME-03", "POST-MIME-05"],
    },
    "test_attachment_without_encoding": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["POST-MIME-04"],
    },
    "test_no_attachment_returns_none": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["POST-MIME-02"],
    },
    "test_not_multipart": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["ERRORS: UNSUPPORTED_CONTENT_TYPE"],
    },
    "test_missing_boundary": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["ERRORS: MISSING_BOUNDARY"],
    },
    "test_unsupported_encoding": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["ERRORS: UNSUPPORTED_ENCODING"],
    },
    "test_malformed_base64": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["ERRORS: ATTACHMENT_DECODE"],
    },
    "test_broken_framing": {
        "contract": "AttachmentExtractorContract",
        "enforces": ["ERRORS: MESSAGE_PARSE"],
    },

    # Cache tests
    "test_cached_file_skips_fetch": {
        "contract": "MessageCacheContract",
        "enforces": ["POST-CACHE-01", "INV-CACHE-01"],
    },
    "test_missing_file_is_fetched_and_written": {
        "contract": "MessageCacheContract",
        "enforces": ["POST-CACHE-02"],
    },
    "test_fetch_none_writes_nothing": {
        "contract": "MessageCacheContract",
        "enforces": ["POST-CACHE-03"],
    },

    # CLI tests
    "test_login_only_without_criteria": {
        "contract": "ClimapContract",
        "enforces": ["POST-CLI-01", "POST-CLI-04"],
    },
    "test_criteria_order": {
        "contract": "ClimapContract",
        "enforces": ["POST-CLI-02"],
    },
    "test_download_saves_messages": {
        "contract": "ClimapContract",
        "enforces": ["POST-CLI-03"],
    },
    "test_download_requires_base": {
        "contract": "ClimapContract",
        "enforces": ["PRE-CLI-02"],
    },
    "test_missing_host_exits_nonzero": {
        "contract": "ClimapContract",
        "enforces": ["PRE-CLI-01", "ERRORS: MAILTOOLS_ERROR"],
    },
}
