"""
Image attachment ingestion: validation, size limiting, optional staging to a
temporary file, and guaranteed cleanup.
"""
import asyncio
import uuid
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

import aiohttp

from .exceptions import AttachmentTooLarge, FileProcessingError, UnsupportedAttachment
from .types import Attachment, ImagePayload
from .utils.logging import get_logger

logger = get_logger(__name__)

DOWNLOAD_CHUNK_SIZE = 8192
_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/heic": ".heic",
    "image/heif": ".heif",
}


def normalize_mime_type(content_type: Optional[str]) -> str:
    """``"image/JPEG; charset=binary"`` -> ``"image/jpeg"``."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


@dataclass
class AttachmentJob:
    """One in-flight image. ``staged_path`` is set while a temp file exists."""

    attachment: Attachment
    mime_type: str
    staged_path: Optional[Path] = None
    measured_size: int = 0


class AttachmentIngestionPipeline:
    """Turns a chat attachment into an ``ImagePayload`` or a user-facing rejection."""

    def __init__(
        self,
        supported_types: Iterable[str],
        max_bytes: int = 3 * 1024 * 1024,
        stage_to_disk: bool = False,
        temp_dir: Path = Path("temp"),
        download_timeout: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.supported_types = frozenset(normalize_mime_type(t) for t in supported_types)
        self.max_bytes = max_bytes
        self.stage_to_disk = stage_to_disk
        self.temp_dir = Path(temp_dir)
        self.download_timeout = download_timeout
        self._session = session

    @classmethod
    def from_config(cls, config: dict) -> "AttachmentIngestionPipeline":
        return cls(
            supported_types=config["SUPPORTED_IMAGE_TYPES"],
            max_bytes=config["MAX_ATTACHMENT_BYTES"],
            stage_to_disk=config.get("ATTACHMENT_STAGE_TO_DISK", False),
            temp_dir=config.get("TEMP_DIR", Path("temp")),
            download_timeout=config.get("DOWNLOAD_TIMEOUT_SECONDS", 15.0),
        )

    def is_supported(self, attachment: Optional[Attachment]) -> bool:
        return (
            attachment is not None
            and normalize_mime_type(attachment.content_type) in self.supported_types
        )

    def validate(self, attachment: Optional[Attachment]) -> str:
        """Checks that need no download. Returns the normalized MIME type."""
        if attachment is None:
            raise UnsupportedAttachment("no attachment to ingest")

        mime_type = normalize_mime_type(attachment.content_type)
        if mime_type not in self.supported_types:
            raise UnsupportedAttachment(f"unsupported MIME type {mime_type or 'unknown'!r}")

        if attachment.size is not None and attachment.size > self.max_bytes:
            raise AttachmentTooLarge(attachment.size, self.max_bytes)
        return mime_type

    @asynccontextmanager
    async def ingest(self, attachment: Optional[Attachment]) -> AsyncIterator[ImagePayload]:
        """
        Yield the attachment's bytes for the duration of the backend call.

        Any staged file is removed when the block exits, whether the payload
        was rejected, the caller's backend call failed, or everything succeeded.
        """
        mime_type = self.validate(attachment)
        job = AttachmentJob(attachment=attachment, mime_type=mime_type)
        try:
            if self.stage_to_disk:
                job.staged_path = self._staging_path(mime_type)
                await self._retrieve_to_file(job)
                job.measured_size = job.staged_path.stat().st_size
                self._check_size(job)
                data = job.staged_path.read_bytes()
            else:
                data = await self._retrieve_to_memory(job)
                job.measured_size = len(data)
                self._check_size(job)

            logger.info(
                f"Attachment accepted: {attachment.filename or attachment.url[:60]} "
                f"({job.measured_size} bytes, {mime_type})",
                extra={"subsys": "media", "event": "attachment.accepted"},
            )
            yield ImagePayload(data=data, mime_type=mime_type)
        finally:
            self._cleanup(job)

    def _check_size(self, job: AttachmentJob) -> None:
        if job.measured_size > self.max_bytes:
            raise AttachmentTooLarge(job.measured_size, self.max_bytes)

    def _staging_path(self, mime_type: str) -> Path:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        return self.temp_dir / f"attachment-{uuid.uuid4().hex}{_EXTENSIONS.get(mime_type, '')}"

    async def _retrieve_to_memory(self, job: AttachmentJob) -> bytes:
        if job.attachment.data is not None:
            return bytes(job.attachment.data)
        buffer = bytearray()
        async with aclosing(self.fetch(job.attachment)) as stream:
            async for piece in stream:
                buffer.extend(piece)
        return bytes(buffer)

    async def _retrieve_to_file(self, job: AttachmentJob) -> None:
        with open(job.staged_path, "wb") as f:
            if job.attachment.data is not None:
                f.write(job.attachment.data)
                return
            async with aclosing(self.fetch(job.attachment)) as stream:
                async for piece in stream:
                    f.write(piece)

    async def fetch(self, attachment: Attachment) -> AsyncIterator[bytes]:
        """Stream the attachment body, aborting as soon as it passes the ceiling."""
        timeout = aiohttp.ClientTimeout(total=self.download_timeout)
        session = self._session
        owns_session = session is None
        if owns_session:
            session = aiohttp.ClientSession(timeout=timeout)

        try:
            async with session.get(attachment.url, timeout=timeout) as response:
                if response.status != 200:
                    raise FileProcessingError(
                        f"HTTP {response.status} downloading {attachment.url[:60]}"
                    )

                content_length = response.headers.get("Content-Length")
                if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
                    raise AttachmentTooLarge(int(content_length), self.max_bytes)

                downloaded = 0
                async for piece in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                    downloaded += len(piece)
                    if downloaded > self.max_bytes:
                        raise AttachmentTooLarge(downloaded, self.max_bytes)
                    yield piece
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FileProcessingError(f"Download failed for {attachment.url[:60]}: {e}") from e
        finally:
            if owns_session:
                await session.close()

    def _cleanup(self, job: AttachmentJob) -> None:
        path, job.staged_path = job.staged_path, None
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
            logger.debug(
                f"Removed staged attachment {path.name}",
                extra={"subsys": "media", "event": "attachment.cleanup"},
            )
        except OSError as e:
            logger.error(f"Failed to remove staged attachment {path}: {e}")
