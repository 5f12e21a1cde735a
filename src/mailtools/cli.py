"""
Command-line Tools
==================

climap     Log in to an IMAP mailbox, search it and optionally download
           matching messages, reporting the first attachment of each.
mimeattach Extract the first attachment from a saved .eml file.

Connection settings come from CLIMAP_* environment variables, optionally
loaded from a .env file. Message bodies and passwords are never logged.
"""

from __future__ import annotations

import argparse
import logging
import sys
from email.parser import BytesHeaderParser
from pathlib import Path

from dotenv import load_dotenv

from contracts import (
    DEFAULT_MAILBOX,
    ENV_PREFIX,
    AttachmentDecodeError,
    MailtoolsError,
    MessageParseError,
    MissingBoundaryError,
    UnsupportedContentTypeError,
    UnsupportedEncodingError,
)
from src.mailtools.attachments import decode_attachment
from src.mailtools.cache import MessageStore
from src.mailtools.config import settings_from_env
from src.mailtools.criteria import build_criteria
from src.mailtools.imap_session import ImapSession

LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"

logger = logging.getLogger("climap")

_SKIPPABLE = (
    MessageParseError,
    UnsupportedContentTypeError,
    MissingBoundaryError,
    UnsupportedEncodingError,
    AttachmentDecodeError,
)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def format_bytes(size: int) -> str:
    """Human readable SI size: 999 B, 1.5 kB, 83 MB."""
    value = float(size)
    for unit in ("B", "kB", "MB", "GB", "TB", "PB"):
        if value < 1000 or unit == "PB":
            break
        value /= 1000
    if unit == "B":
        return f"{size} B"
    if value < 10:
        return f"{value:.1f} {unit}"
    return f"{value:.0f} {unit}"


def _log_content_type(raw: bytes) -> None:
    headers = BytesHeaderParser().parsebytes(raw)
    logger.info("Content-Type: %s", headers.get_content_type())
    for key, value in headers.get_params(header="Content-Type", failobj=[])[1:]:
        logger.info("%s = %s", key, value)


def report_attachment(uid: int, raw: bytes) -> None:
    """Log the first attachment of a downloaded message."""
    _log_content_type(raw)
    try:
        attachment = decode_attachment(raw)
    except _SKIPPABLE as e:
        logger.warning("  no attachment read for uid %d: %s", uid, e)
        return
    if attachment is None:
        logger.info("  no attachment in uid %d", uid)
        return
    logger.info("found attachment: %s", attachment.filename)
    logger.info("read %s from %s", format_bytes(attachment.length), attachment.filename)


def build_climap_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="climap",
        description="Search an IMAP mailbox and optionally download matching messages.",
        epilog=(
            f"Environment: {ENV_PREFIX}HOST, {ENV_PREFIX}USER, {ENV_PREFIX}PASS "
            f"(required), {ENV_PREFIX}BASE (with --download), {ENV_PREFIX}PORT, "
            f"{ENV_PREFIX}TLS_SERVERNAME, {ENV_PREFIX}TIMEOUT."
        ),
    )
    parser.add_argument("--mbox", default=DEFAULT_MAILBOX, help="mailbox name")
    parser.add_argument(
        "--newer", default="", help="message received date must be more recent (e.g. 72h)"
    )
    parser.add_argument(
        "--subject", default="", help="message must contain substring in subject"
    )
    parser.add_argument(
        "--download", action="store_true", help="should matching messages be downloaded"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def run_climap(args: argparse.Namespace) -> int:
    """
    Run one climap invocation.

    POST-CLI-01: Without --newer and --subject, returns 0 right after login
    POST-CLI-04: Session is always logged out
    """
    has_newer = bool(args.newer)
    has_subject = bool(args.subject)

    settings = settings_from_env(ENV_PREFIX, require_base=args.download)
    # Parse the duration before touching the network.
    criteria = build_criteria(newer=args.newer or None, subject=args.subject or None)

    session = ImapSession(settings)
    try:
        session.init()
        logger.info("Login successful for %s at %s", settings.user, settings.host)

        if not has_subject and not has_newer:
            return 0

        session.mailbox(args.mbox)

        store = None
        if args.download:
            store = MessageStore(settings.base_dir, settings.user, session.selected)
            store.ensure_directory()

        uids = session.search(criteria)
        logger.info("search returned %d elements:", len(uids))
        for idx, uid in enumerate(uids):
            logger.info("- uid=%d (%d/%d)", uid, idx, len(uids))
            if store is None:
                continue
            raw, _cached = store.load_or_fetch(uid, session.message_by_uid)
            if raw is not None:
                report_attachment(uid, raw)
        return 0
    finally:
        session.logout()


def main(argv: list[str] | None = None) -> int:
    """Entry point for climap."""
    args = build_climap_parser().parse_args(argv)
    configure_logging(args.verbose)
    load_dotenv()
    try:
        return run_climap(args)
    except MailtoolsError as e:
        logger.error("%s", e)
        return 1


def build_mimeattach_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mimeattach",
        description="Extract the first attachment of a saved multipart message.",
    )
    parser.add_argument("message", type=Path, help="path to an .eml file")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="directory to write the decoded attachment into",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def mimeattach_main(argv: list[str] | None = None) -> int:
    """Entry point for mimeattach."""
    args = build_mimeattach_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        raw = args.message.read_bytes()
    except OSError as e:
        logger.error("%s", e)
        return 1

    try:
        attachment = decode_attachment(raw)
    except MailtoolsError as e:
        logger.error("%s: %s", args.message, e)
        return 1

    if attachment is None:
        logger.error("%s: no attachment found", args.message)
        return 1

    print(f"{attachment.filename}\t{format_bytes(attachment.length)}")

    if args.output is not None:
        args.output.mkdir(parents=True, exist_ok=True)
        # Never let a filename escape the output directory.
        target = args.output / Path(attachment.filename).name
        target.write_bytes(attachment.content)
        logger.info("wrote %s", target)
    return 0


if __name__ == "__main__":
    sys.exit(main())
