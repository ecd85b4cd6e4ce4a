"""API Router for file downloads and batch archives."""

from typing import List

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from fileserve.services.archive_service import (
    ArchiveBuildError,
    ArchiveItem,
    get_archive_delivery_service,
    get_archive_ticket_service,
)
from fileserve.services.download_service import get_download_service
from fileserve.services.storage import StorageError
from fileserve.services.temp_store import TicketNotFoundError
from fileserve.utils.logging_config import get_logger
from fileserve.utils.streaming import ClosingStreamingResponse

logger = get_logger(__name__)

router = APIRouter()


class BatchDownloadRequest(BaseModel):
    items: List[ArchiveItem] = Field(default_factory=list)


class BatchDownloadResponse(BaseModel):
    uniqid: str


@router.get("/download")
async def download(request: Request, path: str = Query("")):
    """
    Stream a single file from storage.
    Supports Range header (single range) for resume and seeking.
    """
    service = get_download_service()

    try:
        file_download = await service.open_download(path, request.headers.get("range"))
    except StorageError as e:
        # Never leak resolution details to the client.
        logger.warning("Download of %r rejected: %s", path, e)
        return RedirectResponse(
            url=service.config.fallback_redirect_url,
            status_code=status.HTTP_302_FOUND,
        )

    return ClosingStreamingResponse(
        file_download.body,
        status_code=file_download.plan.status_code,
        headers=file_download.headers,
    )


@router.post("/batchdownload", response_model=BatchDownloadResponse)
async def batch_download_create(request: BatchDownloadRequest):
    """Build an archive from the selected items and return its ticket."""
    service = get_archive_ticket_service()
    try:
        ticket_id = await service.create_and_populate(request.items)
    except ArchiveBuildError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="Archive could not be created",
        )
    return BatchDownloadResponse(uniqid=ticket_id)


@router.get("/batchdownload")
async def batch_download_start(uniqid: str = Query("")):
    """Stream a previously created archive once, then delete it."""
    service = get_archive_delivery_service()
    try:
        archive_download = await service.deliver(uniqid)
    except TicketNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archive not found")

    logger.info("Delivering archive ticket %s", archive_download.ticket_id)

    return ClosingStreamingResponse(
        archive_download.body,
        status_code=status.HTTP_200_OK,
        headers=archive_download.headers,
    )
