"""Local store of raw messages, one <uid>.eml file per message."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


class MessageStore:
    """
    Raw messages under <base>/<user>/<mailbox>.

    A cached file is never refreshed; there is no locking and no
    partial-write recovery.
    """

    def __init__(self, base_dir: str | Path, user: str, mailbox: str) -> None:
        self.directory = Path(base_dir) / user / mailbox

    def ensure_directory(self) -> Path:
        """Create the mailbox directory; an existing one is fine."""
        self.directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        return self.directory

    def path_for(self, uid: int) -> Path:
        return self.directory / f"{uid}.eml"

    def load_or_fetch(
        self, uid: int, fetch: Callable[[int], bytes | None]
    ) -> tuple[bytes | None, bool]:
        """
        Return (message bytes, cached) for uid.

        POST-CACHE-01: Existing file is read, fetch is not called
        POST-CACHE-02: Missing file is fetched and written
        POST-CACHE-03: fetch returning None writes nothing
        """
        path = self.path_for(uid)
        if path.is_file():
            logger.info("  file cached for uid %d: %s", uid, path)
            return path.read_bytes(), True

        raw = fetch(uid)
        if raw is None:
            logger.warning("  server returned no data for uid %d", uid)
            return None, False

        with open(path, "wb") as f:
            f.write(raw)
        logger.info("  saved %d bytes for uid %d", len(raw), uid)
        return raw, False
