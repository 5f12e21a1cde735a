"""Shared fixtures: settings, a mocked IMAPClient and sample messages."""

import base64
from unittest.mock import MagicMock, patch

import pytest

from contracts import ImapSettings

ZIP_BYTES = b"PK\x03\x04\x14\x00\x00\x00\x08\x00 fake zip archive contents \xff\xfe"


@pytest.fixture
def settings():
    """Valid test settings."""
    return ImapSettings(
        host="imap.example.com",
        user="test@example.com",
        password="secret123",
    )


@pytest.fixture
def mock_imap_client():
    """Mock IMAPClient for testing without a real IMAP server."""
    with patch("src.mailtools.imap_session.IMAPClient") as mock:
        client = MagicMock()
        mock.return_value = client

        client.noop.return_value = (b"NOOP completed", [])
        client.login.return_value = b"LOGIN completed"
        client.list_folders.return_value = [([b"\\HasNoChildren"], b"/", "INBOX")]
        client.select_folder.return_value = {b"EXISTS": 3, b"UIDVALIDITY": 12345}
        client.search.return_value = [100, 200, 300]

        yield mock


@pytest.fixture
def zip_bytes():
    return ZIP_BYTES


@pytest.fixture
def multipart_email():
    """Multipart message: a text part followed by a base64 zip attachment."""
    encoded = base64.encodebytes(ZIP_BYTES)
    return (
        b"From: Sender <sender@example.com>\r\n"
        b"To: Recipient <recipient@example.com>\r\n"
        b"Subject: Daily report\r\n"
        b"Date: Mon, 13 Jan 2026 10:00:00 +0000\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="XYZ-boundary"\r\n'
        b"\r\n"
        b"--XYZ-boundary\r\n"
        b'Content-Type: text/plain; charset="utf-8"\r\n'
        b"\r\n"
        b"Report attached.\r\n"
        b"--XYZ-boundary\r\n"
        b"Content-Type: application/zip\r\n"
        b'Content-Disposition: attachment; filename="report.zip"\r\n'
        b"Content-Transfer-Encoding: base64\r\n"
        b"\r\n" + encoded.replace(b"\n", b"\r\n") +
        b"--XYZ-boundary--\r\n"
    )


@pytest.fixture
def plain_email():
    """Single-part text message."""
    return b"""From: Sender <sender@example.com>
To: Recipient <recipient@example.com>
Subject: Test Subject
Date: Mon, 13 Jan 2026 10:00:00 +0000
Message-ID: <abc123@example.com>
Content-Type: text/plain; charset="utf-8"

This is a test email body.
"""
