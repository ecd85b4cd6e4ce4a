"""Single file download service with Range support."""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

from fileserve.config import DeliveryConfig, get_settings
from fileserve.services.storage import FileHandle, ScopedStorage, StorageError, get_storage
from fileserve.utils.headers import guess_content_type, make_disposition
from fileserve.utils.logging_config import get_logger
from fileserve.utils.ranges import DeliveryPlan, MalformedRangeError, full_content_plan, resolve_range
from fileserve.utils.streaming import ByteWindowStream

logger = get_logger(__name__)


class PathDecodeError(StorageError):
    """The encoded path is not valid base64 / UTF-8."""


def decode_path(encoded: str) -> str:
    """Decode a base64 path (standard or URL-safe alphabet, padding optional)."""
    data = encoded.strip()
    data += "=" * (-len(data) % 4)
    try:
        return base64.b64decode(data, altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise PathDecodeError(f"Undecodable path: {encoded!r}") from e


def encode_path(relpath: str) -> str:
    return base64.b64encode(relpath.encode("utf-8")).decode("ascii")


@dataclass
class FileDownload:
    plan: DeliveryPlan
    headers: dict[str, str]
    body: ByteWindowStream


class SingleFileDownloadService:
    """Resolves an encoded path and prepares a (possibly partial) stream."""

    def __init__(self, storage: ScopedStorage, config: DeliveryConfig):
        self.storage = storage
        self.config = config

    def plan_for(self, total_size: int, range_header: Optional[str]) -> DeliveryPlan:
        """Resolve the Range header, falling back to full content when it is malformed."""
        try:
            return resolve_range(total_size, range_header)
        except MalformedRangeError as e:
            logger.debug("Ignoring Range header, serving full content: %s", e)
            return full_content_plan(total_size)

    def build_headers(self, handle: FileHandle, plan: DeliveryPlan) -> dict[str, str]:
        disposition = "inline" if self.config.is_inline(handle.extension) else "attachment"
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Type": guess_content_type(handle.filename),
            "Content-Disposition": make_disposition(disposition, handle.filename, "file"),
            "Content-Transfer-Encoding": "binary",
            "Content-Length": str(plan.length),
        }
        if plan.is_partial:
            headers["Content-Range"] = plan.content_range()
        return headers

    async def open_download(self, encoded_path: str, range_header: Optional[str] = None) -> FileDownload:
        """
        Open the file behind ``encoded_path`` and prepare its delivery.

        The returned body owns the file handle and closes it when the
        stream ends or is closed.

        Raises:
            StorageError: the path cannot be decoded, resolved or opened.
        """
        relpath = decode_path(encoded_path)
        handle = await self.storage.open_stream(relpath)
        try:
            plan = self.plan_for(handle.size, range_header)
            headers = self.build_headers(handle, plan)
            body = ByteWindowStream(
                handle.stream,
                start_offset=plan.start_offset,
                length=plan.length,
                chunk_size=self.config.chunk_size,
            )
        except Exception:
            await handle.close()
            raise

        logger.info(
            "Serving %s: status=%d offset=%d length=%d total=%d",
            relpath,
            plan.status_code,
            plan.start_offset,
            plan.length,
            plan.total_size,
        )
        return FileDownload(plan=plan, headers=headers, body=body)


# Singleton
_download_service: Optional[SingleFileDownloadService] = None


def get_download_service() -> SingleFileDownloadService:
    global _download_service
    if _download_service is None:
        _download_service = SingleFileDownloadService(
            get_storage(), get_settings().delivery_config()
        )
    return _download_service
