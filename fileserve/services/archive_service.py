"""Two-phase batch archive service.

Phase one builds a ZIP into the temp store and hands back a ticket id;
phase two streams the finished archive once and deletes it.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, Sequence

import aiofiles
import aiofiles.os
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from fileserve.config import DeliveryConfig, get_settings
from fileserve.services.archiver import ZipArchiver
from fileserve.services.storage import ScopedStorage, get_storage
from fileserve.services.temp_store import (
    TempStore,
    TicketNotFoundError,
    get_temp_store,
    sanitize_ticket_id,
)
from fileserve.utils.headers import make_disposition
from fileserve.utils.logging_config import get_logger
from fileserve.utils.streaming import ByteWindowStream

logger = get_logger(__name__)


class ArchiveItem(BaseModel):
    type: Literal["file", "dir"]
    path: str


class ArchiveBuildError(Exception):
    """The archive could not be built; no ticket was issued."""


class ArchiveTicketService:
    """Builds archives into the temp store and issues tickets for them."""

    def __init__(
        self,
        storage: ScopedStorage,
        temp_store: TempStore,
        compression_level: int = 6,
        max_age_seconds: Optional[float] = None,
    ):
        self.storage = storage
        self.temp_store = temp_store
        self.compression_level = compression_level
        self.max_age_seconds = max_age_seconds

    async def create_and_populate(self, items: Sequence[ArchiveItem]) -> str:
        """
        Build an archive from ``items`` (in order) and return its ticket id.

        The whole archive is written before this returns.

        Raises:
            ArchiveBuildError: an item could not be added or the archive
                could not be written. The partial artifact is removed.
        """
        ticket_id = self.temp_store.new_ticket()
        await run_in_threadpool(self._build, ticket_id, list(items))
        logger.info("Archive ticket %s created with %d item(s)", ticket_id, len(items))
        return ticket_id

    def _build(self, ticket_id: str, items: list[ArchiveItem]) -> None:
        if self.max_age_seconds is not None:
            # Unfetched tickets and interrupted deliveries leave artifacts behind.
            self.temp_store.purge_older_than(self.max_age_seconds)

        target = self.temp_store.path_for(ticket_id)
        archiver = ZipArchiver(self.storage, compression_level=self.compression_level)
        try:
            archiver.create_archive(target)
            for item in items:
                if item.type == "dir":
                    archiver.add_directory(item.path)
                elif item.type == "file":
                    archiver.add_file(item.path)
            archiver.close_archive()
        except Exception as e:
            logger.exception("Archive ticket %s failed", ticket_id)
            self._abort(archiver, target)
            raise ArchiveBuildError(f"Failed to build archive: {e}") from e

    def _abort(self, archiver: ZipArchiver, target: Path) -> None:
        try:
            if archiver.is_open:
                archiver.close_archive()
        except Exception:
            logger.debug("Closing aborted archive failed", exc_info=True)
        finally:
            self.temp_store.discard(target)


@dataclass
class ArchiveDownload:
    ticket_id: str
    headers: dict[str, str]
    body: ByteWindowStream


class ArchiveDeliveryService:
    """Streams a finished archive exactly once, then deletes it."""

    def __init__(self, temp_store: TempStore, config: DeliveryConfig):
        self.temp_store = temp_store
        self.config = config

    def build_headers(self, size: Optional[int]) -> dict[str, str]:
        headers = {
            "Content-Disposition": make_disposition(
                "attachment", self.config.default_archive_name, "archive.zip"
            ),
            "Content-Type": "application/octet-stream",
            "Content-Transfer-Encoding": "binary",
        }
        if size is not None:
            headers["Content-Length"] = str(size)
        return headers

    async def deliver(self, raw_ticket_id: str) -> ArchiveDownload:
        """
        Claim the archive behind a ticket and prepare it for streaming.

        The artifact is removed when the returned body is exhausted or
        closed, including on client disconnect.

        Raises:
            TicketNotFoundError: unknown, malformed or already delivered ticket.
        """
        ticket_id = sanitize_ticket_id(raw_ticket_id)
        claimed = self.temp_store.claim(ticket_id)

        try:
            size = (await aiofiles.os.stat(claimed)).st_size
            stream = await aiofiles.open(claimed, "rb")
        except FileNotFoundError as e:
            raise TicketNotFoundError(f"Ticket not found: {ticket_id}") from e
        except OSError:
            await self.temp_store.discard_async(claimed)
            raise

        async def _cleanup() -> None:
            await self.temp_store.discard_async(claimed)
            logger.info("Archive ticket %s streamed and removed", ticket_id)

        body = ByteWindowStream(
            stream,
            start_offset=0,
            length=None,
            chunk_size=self.config.chunk_size,
            on_close=_cleanup,
        )
        return ArchiveDownload(ticket_id=ticket_id, headers=self.build_headers(size), body=body)


# Singletons
_ticket_service: Optional[ArchiveTicketService] = None
_delivery_service: Optional[ArchiveDeliveryService] = None


def get_archive_ticket_service() -> ArchiveTicketService:
    global _ticket_service
    if _ticket_service is None:
        _ticket_service = ArchiveTicketService(
            get_storage(),
            get_temp_store(),
            compression_level=get_settings().archive_compression_level,
            max_age_seconds=get_settings().ticket_max_age_minutes * 60,
        )
    return _ticket_service


def get_archive_delivery_service() -> ArchiveDeliveryService:
    global _delivery_service
    if _delivery_service is None:
        _delivery_service = ArchiveDeliveryService(
            get_temp_store(), get_settings().delivery_config()
        )
    return _delivery_service
