"""Temp store for batch archives, keyed by ticket id."""

import os
import re
import time
from pathlib import Path
from typing import Optional
from uuid import uuid4

import aiofiles.os

from fileserve.config import get_settings
from fileserve.utils.logging_config import get_logger

logger = get_logger(__name__)

_TICKET_STRIP = re.compile(r"[^0-9A-Za-z_]")
CLAIM_SUFFIX = ".claimed"


class TicketNotFoundError(LookupError):
    """No artifact exists for the given ticket id."""


def sanitize_ticket_id(raw: str | None) -> str:
    """Drop every character outside ``[0-9A-Za-z_]``."""
    return _TICKET_STRIP.sub("", raw or "")


class TempStore:
    """
    Directory of short-lived artifacts.

    A ticket's artifact lives at ``<directory>/<ticket_id>`` until it is
    claimed for delivery, at which point it is atomically renamed so that
    no second consumer can find it.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def new_ticket(self) -> str:
        """Allocate a fresh ticket id (no artifact is created yet)."""
        while True:
            ticket_id = uuid4().hex
            if not (self.directory / ticket_id).exists():
                return ticket_id

    def path_for(self, ticket_id: str) -> Path:
        clean = sanitize_ticket_id(ticket_id)
        if not clean:
            raise TicketNotFoundError("Empty ticket id")
        return self.directory / clean

    def claim(self, ticket_id: str) -> Path:
        """Atomically take ownership of a ticket's artifact.

        Raises:
            TicketNotFoundError: unknown ticket, or already claimed.
        """
        source = self.path_for(ticket_id)
        claimed = self.directory / f"{source.name}.{uuid4().hex[:8]}{CLAIM_SUFFIX}"
        try:
            os.rename(source, claimed)
        except FileNotFoundError as e:
            raise TicketNotFoundError(f"Ticket not found: {source.name}") from e
        return claimed

    def discard(self, path: Path) -> None:
        """Delete an artifact inside the store; missing files are ignored."""
        path = Path(path)
        if path.parent.resolve() != self.directory.resolve():
            raise ValueError(f"Refusing to delete outside temp store: {path}")
        path.unlink(missing_ok=True)

    async def discard_async(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass

    def purge_older_than(self, max_age_seconds: float) -> int:
        """Remove artifacts (claimed or not) older than ``max_age_seconds``."""
        cutoff = time.time() - max_age_seconds
        removed = 0
        for entry in self.directory.iterdir():
            if not entry.is_file():
                continue
            try:
                if entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info("Purged %d stale temp artifact(s) from %s", removed, self.directory)
        return removed


# Singleton
_temp_store: Optional[TempStore] = None


def get_temp_store() -> TempStore:
    global _temp_store
    if _temp_store is None:
        _temp_store = TempStore(get_settings().get_tmp_dir())
    return _temp_store
