"""
IMAP Session Tests
==================

Verify ImapSession against ImapSessionContract with a mocked IMAPClient.
Every test cites the contract clauses it enforces.
"""

import logging
import ssl
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from imapclient.exceptions import IMAPClientError, LoginError

from contracts import (
    AuthFailedError,
    CertificateMismatchError,
    CommandFailedError,
    ConnectionFailedError,
    ImapSettings,
    MailboxNotFoundError,
    NotConnectedError,
)
from src.mailtools.imap_session import (
    PROTOCOL_LOGGER,
    ImapSession,
    ServerNameContext,
    create_ssl_context,
)


@pytest.fixture
def session(mock_imap_client, settings):
    """Initialized session over the mocked client."""
    session = ImapSession(settings)
    session.init()
    return session


# =============================================================================
# CONNECT / LOGIN
# =============================================================================

class TestSessionStartup:
    """Tests for connect, ping and login."""

    def test_init_connects_pings_and_logs_in(self, mock_imap_client, settings):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-01
        """
        session = ImapSession(settings)
        session.init()

        assert session.connected is True
        client = mock_imap_client.return_value
        args, kwargs = mock_imap_client.call_args
        assert args == ("imap.example.com",)
        assert kwargs["port"] == 993
        assert kwargs["ssl"] is True
        assert kwargs["timeout"] == 10.0
        client.noop.assert_called_once_with()
        client.login.assert_called_once_with("test@example.com", "secret123")

    def test_init_reuses_existing_connection(self, mock_imap_client, settings):
        session = ImapSession(settings)
        session.connect()
        session.init()

        assert mock_imap_client.call_count == 1

    def test_connect_failure(self, settings):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: CONNECTION_FAILED
        """
        with patch("src.mailtools.imap_session.IMAPClient") as mock:
            mock.side_effect = ConnectionRefusedError("Connection refused")

            session = ImapSession(settings)
            with pytest.raises(ConnectionFailedError, match="Connection refused"):
                session.init()
            assert session.connected is False

    def test_certificate_mismatch_hint(self, settings):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: CERTIFICATE_MISMATCH
        """
        with patch("src.mailtools.imap_session.IMAPClient") as mock:
            mock.side_effect = ssl.SSLCertVerificationError(
                1,
                "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: "
                "Hostname mismatch, certificate is not valid for 'imap.example.com'.",
            )

            session = ImapSession(settings)
            with pytest.raises(CertificateMismatchError) as exc_info:
                session.connect()

        assert "set CLIMAP_TLS_SERVERNAME" in str(exc_info.value)
        assert isinstance(exc_info.value, ConnectionFailedError)

    def test_certificate_untrusted_is_plain_connection_failure(self, settings):
        with patch("src.mailtools.imap_session.IMAPClient") as mock:
            mock.side_effect = ssl.SSLCertVerificationError(
                1,
                "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: "
                "self-signed certificate",
            )

            session = ImapSession(settings)
            with pytest.raises(ConnectionFailedError) as exc_info:
                session.connect()

        assert not isinstance(exc_info.value, CertificateMismatchError)

    def test_server_name_override(self, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: INV-SESSION-03
        """
        settings = ImapSettings(
            host="10.0.0.5",
            user="test@example.com",
            password="secret123",
            tls_server_name="mail.example.com",
        )
        ImapSession(settings).connect()

        context = mock_imap_client.call_args.kwargs["ssl_context"]
        assert isinstance(context, ServerNameContext)
        assert context.server_name == "mail.example.com"

        sock = MagicMock()
        with patch.object(ssl.SSLContext, "wrap_socket") as wrap:
            context.wrap_socket(sock, server_hostname="10.0.0.5")
        wrap.assert_called_once_with(sock, server_hostname="mail.example.com")

    def test_default_context_keeps_host(self):
        context = create_ssl_context()
        assert context.server_name is None
        assert context.check_hostname is True
        assert context.verify_mode == ssl.CERT_REQUIRED

        sock = MagicMock()
        with patch.object(ssl.SSLContext, "wrap_socket") as wrap:
            context.wrap_socket(sock, server_hostname="imap.example.com")
        wrap.assert_called_once_with(sock, server_hostname="imap.example.com")

    def test_ping_failure(self, mock_imap_client, settings):
        mock_imap_client.return_value.noop.side_effect = IMAPClientError("BYE")

        session = ImapSession(settings)
        with pytest.raises(CommandFailedError, match="IMAP NOOP error: BYE"):
            session.init()
        mock_imap_client.return_value.login.assert_not_called()

    def test_login_rejected(self, mock_imap_client, settings):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: AUTH_FAILED
        """
        mock_imap_client.return_value.login.side_effect = LoginError(
            "[AUTHENTICATIONFAILED] Invalid credentials"
        )

        session = ImapSession(settings)
        with pytest.raises(AuthFailedError) as exc_info:
            session.init()
        assert "secret123" not in str(exc_info.value)

    def test_login_suppresses_protocol_logging(self, mock_imap_client, settings, caplog):
        """
        Contract: ImapSessionContract
        Enforces: INV-SESSION-01
        Adversarial: True
        """
        protocol_logger = logging.getLogger(PROTOCOL_LOGGER)
        protocol_logger.setLevel(logging.DEBUG)
        levels_during_login = []

        def fake_login(user, password):
            levels_during_login.append(protocol_logger.level)
            protocol_logger.debug("> a001 LOGIN %s %s", user, password)
            return b"LOGIN completed"

        mock_imap_client.return_value.login.side_effect = fake_login

        with caplog.at_level(logging.DEBUG):
            ImapSession(settings).init()

        assert levels_during_login == [logging.WARNING]
        assert protocol_logger.level == logging.DEBUG
        assert "secret123" not in caplog.text
        protocol_logger.setLevel(logging.NOTSET)

    def test_command_before_connect(self, settings):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: NOT_CONNECTED
        """
        session = ImapSession(settings)
        with pytest.raises(NotConnectedError):
            session.search(["ALL"])
        with pytest.raises(NotConnectedError):
            session.ping()

    def test_context_manager_logs_out(self, mock_imap_client, settings):
        with ImapSession(settings) as session:
            assert session.connected is True
        assert session.connected is False
        mock_imap_client.return_value.logout.assert_called_once_with()

    def test_from_env(self, mock_imap_client, monkeypatch):
        monkeypatch.setenv("MAILX_HOST", "imap.example.org")
        monkeypatch.setenv("MAILX_USER", "ops")
        monkeypatch.setenv("MAILX_PASS", "hunter2")

        session = ImapSession.from_env("MAILX_")

        assert session.connected is True
        assert session.settings.host == "imap.example.org"
        mock_imap_client.return_value.login.assert_called_once_with("ops", "hunter2")

    def test_from_env_hint_uses_prefix(self, monkeypatch):
        monkeypatch.setenv("MAILX_HOST", "imap.example.org")
        monkeypatch.setenv("MAILX_USER", "ops")
        monkeypatch.setenv("MAILX_PASS", "hunter2")

        with patch("src.mailtools.imap_session.IMAPClient") as mock:
            mock.side_effect = ssl.SSLCertVerificationError(
                1, "certificate verify failed: Hostname mismatch"
            )
            with pytest.raises(CertificateMismatchError, match="MAILX_TLS_SERVERNAME"):
                ImapSession.from_env("MAILX_")


# =============================================================================
# MAILBOX / SEARCH / FETCH
# =============================================================================

class TestSessionCommands:
    """Tests for mailbox selection, search and fetch."""

    def test_mailbox_selects_read_only(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-02, INV-SESSION-02
        """
        client = mock_imap_client.return_value
        session.mailbox("INBOX")

        client.list_folders.assert_called_once_with("", "INBOX")
        client.select_folder.assert_called_once_with("INBOX", readonly=True)
        assert session.selected == "INBOX"

    def test_mailbox_selects_every_listed_match(self, session, mock_imap_client):
        client = mock_imap_client.return_value
        client.list_folders.return_value = [
            ([], b"/", "Archive/2025"),
            ([], b"/", "Archive/2026"),
        ]

        session.mailbox("Archive/%")

        assert [c.args[0] for c in client.select_folder.call_args_list] == [
            "Archive/2025",
            "Archive/2026",
        ]
        assert session.selected == "Archive/2026"

    def test_mailbox_not_found(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: MAILBOX_NOT_FOUND
        """
        mock_imap_client.return_value.list_folders.return_value = []

        with pytest.raises(MailboxNotFoundError, match=r"Mailbox \[Nope\] not found"):
            session.mailbox("Nope")
        mock_imap_client.return_value.select_folder.assert_not_called()

    def test_select_failure_wrapped(self, session, mock_imap_client):
        mock_imap_client.return_value.select_folder.side_effect = IMAPClientError(
            "NO [NONEXISTENT] Unknown Mailbox"
        )

        with pytest.raises(CommandFailedError, match="IMAP SELECT error"):
            session.mailbox("INBOX")

    def test_search_returns_uids(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-03
        """
        criteria = ["SINCE", date(2026, 10, 1), "SUBJECT", "report"]

        assert session.search(criteria) == [100, 200, 300]
        mock_imap_client.return_value.search.assert_called_once_with(criteria, charset=None)

    def test_search_empty_criteria_means_all(self, session, mock_imap_client):
        session.search([])
        mock_imap_client.return_value.search.assert_called_once_with("ALL", charset=None)

    def test_search_failure_wrapped(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: ERRORS: COMMAND_FAILED, INV-SESSION-04
        """
        mock_imap_client.return_value.search.side_effect = IMAPClientError(
            "BAD Could not parse command"
        )

        with pytest.raises(CommandFailedError) as exc_info:
            session.search(["SUBJECT", "x"])
        assert str(exc_info.value) == "IMAP SEARCH error: BAD Could not parse command"

    def test_search_non_ascii_subject_uses_utf8(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-03
        """
        criteria = ["SINCE", date(2026, 10, 1), "SUBJECT", "Café résumé"]

        assert session.search(criteria) == [100, 200, 300]
        mock_imap_client.return_value.search.assert_called_once_with(criteria, charset="UTF-8")

    def test_search_encoding_failure_wrapped(self, session, mock_imap_client):
        mock_imap_client.return_value.search.side_effect = UnicodeEncodeError(
            "ascii", "caf\u00e9", 3, 4, "ordinal not in range(128)"
        )

        with pytest.raises(CommandFailedError, match="IMAP SEARCH error"):
            session.search(["SUBJECT", "x"])

    def test_since(self, session):
        with patch("src.mailtools.criteria.datetime") as mock_dt:
            mock_dt.now.return_value = datetime(2026, 10, 18, 9, 30)
            assert session.since(timedelta(days=2)) == ["SINCE", date(2026, 10, 16)]

    def test_message_by_uid(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-04
        """
        client = mock_imap_client.return_value
        client.fetch.return_value = {200: {b"SEQ": 2, b"BODY[]": b"raw message"}}

        assert session.message_by_uid(200) == b"raw message"
        client.fetch.assert_called_once_with([200], ["BODY[]"])

    def test_headers_by_uid(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-05
        """
        client = mock_imap_client.return_value
        client.fetch.return_value = {300: {b"RFC822.HEADER": b"Subject: hi\r\n\r\n"}}

        assert session.headers_by_uid(300) == b"Subject: hi\r\n\r\n"
        client.fetch.assert_called_once_with([300], ["RFC822.HEADER"])

    def test_part_by_uid_missing(self, session, mock_imap_client):
        mock_imap_client.return_value.fetch.return_value = {}
        assert session.message_by_uid(404) is None

    def test_fetch_failure_wrapped(self, session, mock_imap_client):
        mock_imap_client.return_value.fetch.side_effect = IMAPClientError("NO fetch failed")

        with pytest.raises(CommandFailedError, match="IMAP FETCH error"):
            session.message_by_uid(1)

    def test_logout_disconnects(self, session, mock_imap_client):
        """
        Contract: ImapSessionContract
        Enforces: POST-SESSION-06
        """
        session.logout()

        assert session.connected is False
        assert session.selected is None
        mock_imap_client.return_value.logout.assert_called_once_with()

    def test_logout_error_still_disconnects(self, session, mock_imap_client):
        mock_imap_client.return_value.logout.side_effect = OSError("socket closed")

        session.logout()

        assert session.connected is False
        session.logout()
