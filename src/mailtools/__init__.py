"""
Mailtools
=========

Command-line IMAP search/download utilities and a first-attachment
extractor for multipart email.
"""

__version__ = "0.1.0"

from src.mailtools.attachments import decode_attachment, generate_boundary
from src.mailtools.cache import MessageStore
from src.mailtools.config import settings_from_env
from src.mailtools.criteria import build_criteria, parse_duration, since_date
from src.mailtools.imap_session import ImapSession

__all__ = [
    "ImapSession",
    "MessageStore",
    "settings_from_env",
    "build_criteria",
    "parse_duration",
    "since_date",
    "decode_attachment",
    "generate_boundary",
]
