"""
MIME Attachment Extraction
==========================

Pulls the first file attachment out of a multipart message.

Only the direct children of the top-level multipart are examined. A part
counts as an attachment when it carries a filename (Content-Disposition
filename, or Content-Type name). Its body is decoded according to the
declared Content-Transfer-Encoding:

- absent: returned verbatim
- base64: whitespace stripped, then decoded
- quoted-printable: decoded
- anything else: UnsupportedEncodingError (undecoded attachment attached)

INV-MIME-01: No I/O and no logging of attachment bytes.
"""

from __future__ import annotations

import base64
import binascii
import email
import email.message
import quopri
import re
import secrets
from email import errors
from email.header import decode_header

from contracts import (
    Attachment,
    AttachmentDecodeError,
    MessageParseError,
    MissingBoundaryError,
    UnsupportedContentTypeError,
    UnsupportedEncodingError,
)

_WHITESPACE = re.compile(rb"\s+")

BOUNDARY_ENTROPY_BYTES = 45


def generate_boundary() -> str:
    """Random multipart boundary: 45 random bytes, base64-encoded (60 chars)."""
    return base64.b64encode(secrets.token_bytes(BOUNDARY_ENTROPY_BYTES)).decode("ascii")


def _decode_filename(filename: str) -> str:
    """Decode RFC 2047 encoded-words in a filename."""
    decoded_parts = []
    for part, charset in decode_header(filename):
        if isinstance(part, bytes):
            decoded_parts.append(part.decode(charset or "utf-8", errors="replace"))
        else:
            decoded_parts.append(part)
    return "".join(decoded_parts)


def _raw_body(part: email.message.Message) -> bytes:
    """Part body exactly as transported, before any transfer decoding."""
    payload = part.get_payload(decode=False)
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    return payload.encode("ascii", "surrogateescape")


def _decode_content(content: bytes, encoding: str) -> bytes:
    if encoding == "":
        return content
    if encoding == "base64":
        try:
            return base64.b64decode(_WHITESPACE.sub(b"", content), validate=True)
        except binascii.Error as e:
            raise AttachmentDecodeError(f"Invalid base64 attachment content: {e}") from e
    if encoding == "quoted-printable":
        return quopri.decodestring(content)
    raise UnsupportedEncodingError(f"Unsupported Content-Transfer-Encoding [{encoding}]")


def decode_attachment(raw: bytes) -> Attachment | None:
    """
    Return the first attachment in a multipart MIME message, or None.

    ERRORS:
    - MessageParseError: no Content-Type, or broken multipart framing
    - UnsupportedContentTypeError: top-level type is not multipart/*
    - MissingBoundaryError: no boundary parameter
    - UnsupportedEncodingError: encoding other than none/base64/quoted-printable
    - AttachmentDecodeError: malformed base64
    """
    msg = email.message_from_bytes(raw)

    if msg.get("Content-Type") is None:
        raise MessageParseError("No Content-Type header in message")

    mtype = msg.get_content_type()
    if not mtype.startswith("multipart/"):
        raise UnsupportedContentTypeError(f"Unsupported top-level Content-Type [{mtype}]")

    if msg.get_boundary() is None:
        raise MissingBoundaryError("No boundary in Content-Type!")

    parts = msg.get_payload()
    if not isinstance(parts, list):
        raise MessageParseError("Multipart boundary not found in message body")
    for defect in msg.defects:
        if isinstance(defect, errors.CloseBoundaryNotFoundDefect):
            raise MessageParseError("Multipart closing boundary not found in message body")

    for part in parts:
        if part.is_multipart():
            continue
        # TODO: require that filenames match a configurable pattern
        filename = part.get_filename()
        if not filename:
            continue

        encoding = str(part.get("Content-Transfer-Encoding", "")).strip().lower()
        content = _raw_body(part)
        attachment = Attachment(
            filename=_decode_filename(filename),
            length=len(content),
            content=content,
            encoding=encoding,
        )
        try:
            attachment.content = _decode_content(content, encoding)
        except UnsupportedEncodingError as e:
            e.attachment = attachment
            raise
        attachment.length = len(attachment.content)
        return attachment

    return None
