"""
IMAP Session Wrapper
====================

Thin session around one imapclient.IMAPClient: connect, ping, login,
select a mailbox, search and fetch by UID.

INVARIANTS:
- INV-SESSION-01: Password never logged; raw protocol logging is muted during LOGIN
- INV-SESSION-02: Mailboxes are selected read-only
- INV-SESSION-03: tls_server_name replaces host for certificate verification
- INV-SESSION-04: Library errors surface as MailtoolsError subclasses
"""

from __future__ import annotations

import contextlib
import logging
import ssl
from collections.abc import Iterator
from datetime import timedelta

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError

from contracts import (
    ENV_PREFIX,
    AuthFailedError,
    CertificateMismatchError,
    CommandFailedError,
    ConnectionFailedError,
    ImapSettings,
    MailboxNotFoundError,
    NotConnectedError,
)
from src.mailtools.config import settings_from_env
from src.mailtools.criteria import since_date

logger = logging.getLogger(__name__)

# Logger imapclient writes raw protocol lines to.
PROTOCOL_LOGGER = "imapclient.imaplib"


class ServerNameContext(ssl.SSLContext):
    """SSL context that verifies the certificate against a fixed server name."""

    server_name: str | None = None

    def wrap_socket(self, sock, *args, server_hostname=None, **kwargs):
        if self.server_name:
            server_hostname = self.server_name
        return super().wrap_socket(sock, *args, server_hostname=server_hostname, **kwargs)


def create_ssl_context(server_name: str | None = None) -> ssl.SSLContext:
    """Default client context, optionally pinned to server_name."""
    context = ServerNameContext(ssl.PROTOCOL_TLS_CLIENT)
    context.load_default_certs()
    context.server_name = server_name
    return context


@contextlib.contextmanager
def sensitive(action: str) -> Iterator[None]:
    """Mute raw protocol logging while action is in flight."""
    protocol_logger = logging.getLogger(PROTOCOL_LOGGER)
    previous = protocol_logger.level
    if protocol_logger.isEnabledFor(logging.DEBUG):
        logger.debug("Raw logging disabled during %s", action)
    protocol_logger.setLevel(logging.WARNING)
    try:
        yield
    finally:
        protocol_logger.setLevel(previous)


def _is_name_mismatch(error: BaseException) -> bool:
    if not isinstance(error, ssl.SSLCertVerificationError):
        return False
    detail = f"{getattr(error, 'verify_message', None) or ''} {error}".lower()
    return "hostname mismatch" in detail or "not valid for" in detail


class ImapSession:
    """
    One IMAP connection, used strictly read-only.

    This class intentionally does NOT implement store/copy/move/expunge.
    """

    def __init__(self, settings: ImapSettings, *, env_prefix: str = ENV_PREFIX) -> None:
        self.settings = settings
        self._env_prefix = env_prefix
        self._client: IMAPClient | None = None
        self.selected: str | None = None

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> ImapSession:
        """
        Gather settings from <prefix>* variables and return an initialized session.

        ERRORS:
        - ConfigurationError: required variable missing
        - CertificateMismatchError: message hints at <prefix>TLS_SERVERNAME
        """
        session = cls(settings_from_env(prefix), env_prefix=prefix)
        session.init()
        return session

    @property
    def connected(self) -> bool:
        """Check if connected to server."""
        return self._client is not None

    def __enter__(self) -> ImapSession:
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.logout()

    def connect(self) -> None:
        """
        Reach out to the server. Does not log in.

        POST: connected is True

        ERRORS:
        - CertificateMismatchError: certificate valid for another name
        - ConnectionFailedError: dial or handshake failed
        """
        settings = self.settings
        try:
            self._client = IMAPClient(
                settings.host,
                port=settings.port,
                ssl=True,
                ssl_context=create_ssl_context(settings.tls_server_name),
                timeout=settings.timeout,
            )
        except ssl.SSLCertVerificationError as e:
            if _is_name_mismatch(e):
                raise CertificateMismatchError(
                    f"{e}; HINT: set {self._env_prefix}TLS_SERVERNAME to work "
                    "around certificate domain mismatches"
                ) from e
            raise ConnectionFailedError(f"Failed to connect: {e}") from e
        except (OSError, IMAPClientError) as e:
            raise ConnectionFailedError(f"Failed to connect: {e}") from e
        logger.debug("Connected to %s:%s", settings.host, settings.port)

    def _require_connection(self) -> IMAPClient:
        """Ensure connected, raise NotConnectedError if not."""
        if self._client is None:
            raise NotConnectedError("Not connected to IMAP server")
        return self._client

    def _check(self, command: str, func, *args, **kwargs):
        """Run a library call, wrapping failures as CommandFailedError."""
        try:
            return func(*args, **kwargs)
        except (IMAPClientError, OSError, UnicodeError) as e:
            raise CommandFailedError(f"IMAP {command} error: {e}") from e

    def ping(self) -> None:
        """Run a NOOP to test the server connection."""
        client = self._require_connection()
        self._check("NOOP", client.noop)

    def login(self) -> None:
        """
        Authenticate with the configured credentials.

        ERRORS:
        - AuthFailedError: server rejected the credentials
        """
        client = self._require_connection()
        try:
            with sensitive("LOGIN"):
                client.login(self.settings.user, self.settings.password)
        except LoginError as e:
            raise AuthFailedError(f"Authentication failed for {self.settings.user}: {e}") from e
        except (IMAPClientError, OSError) as e:
            raise CommandFailedError(f"IMAP LOGIN error: {e}") from e

    def init(self) -> None:
        """Connect (unless already connected), ping, then login."""
        if self._client is None:
            self.connect()
        self.ping()
        self.login()

    def mailbox(self, name: str) -> None:
        """
        Select every mailbox LIST returns for name, read-only.

        ERRORS:
        - MailboxNotFoundError: LIST returned nothing
        - CommandFailedError: LIST or SELECT failed
        """
        client = self._require_connection()
        listed = self._check("LIST", client.list_folders, "", name)
        if not listed:
            raise MailboxNotFoundError(f"Mailbox [{name}] not found")
        for _flags, _delimiter, box_name in listed:
            self._check("SELECT", client.select_folder, box_name, readonly=True)
            self.selected = box_name
        logger.debug("Selected %s", self.selected)

    def since(self, duration: timedelta | str) -> list:
        """SINCE criterion for messages newer than duration."""
        return ["SINCE", since_date(duration)]

    def search(self, criteria: list | None = None) -> list[int]:
        """Return UIDs matching criteria, in server order."""
        client = self._require_connection()
        charset = None
        if criteria and any(isinstance(c, str) and not c.isascii() for c in criteria):
            charset = "UTF-8"
        uids = self._check("SEARCH", client.search, criteria or "ALL", charset=charset)
        return list(uids)

    def message_by_uid(self, uid: int) -> bytes | None:
        """Raw message bytes for uid."""
        return self.part_by_uid(uid, "BODY[]")

    def headers_by_uid(self, uid: int) -> bytes | None:
        """Raw header block for uid."""
        return self.part_by_uid(uid, "RFC822.HEADER")

    def part_by_uid(self, uid: int, part: str) -> bytes | None:
        """
        FETCH one data item for one UID.

        POST: Returns None when the server sent nothing for uid or part
        """
        client = self._require_connection()
        response = self._check("FETCH", client.fetch, [uid], [part])
        data = response.get(uid)
        if not data:
            return None
        return data.get(part.encode("ascii"))

    def logout(self) -> None:
        """Log out and drop the client. Errors during LOGOUT are logged only."""
        if self._client is None:
            return
        try:
            self._client.logout()
        except (IMAPClientError, OSError) as e:
            logger.warning("IMAP LOGOUT error: %s", e)
        finally:
            self._client = None
            self.selected = None
