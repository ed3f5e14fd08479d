"""Media upload collaborators."""

from __future__ import annotations

import asyncio
import logging
import shutil
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from convo_sync import constants
from convo_sync.models.message import MediaRef
from convo_sync.settings import get_settings
from convo_sync.utils.ids import generate_document_id

LOG = logging.getLogger(__name__)


class MediaUploader(ABC):
    """Turns local media into a remotely reachable URL."""

    @abstractmethod
    async def upload(self, media: MediaRef) -> Optional[str]:
        """Return the uploaded URL, or None when the upload failed."""


class HttpMediaUploader(MediaUploader):
    """Posts media as multipart form data and reads ``{"url": ...}`` back."""

    def __init__(
        self,
        upload_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.upload_url = upload_url or settings.upload_url
        self.timeout = timeout if timeout is not None else settings.upload_timeout
        self._transport = transport
        if not self.upload_url:
            raise ValueError("An upload URL is required (set CONVO_SYNC_UPLOAD_URL).")

    async def upload(self, media: MediaRef) -> Optional[str]:
        try:
            content = await asyncio.to_thread(media.path.read_bytes)
        except OSError:
            LOG.warning("Cannot read media %s for upload", media.path, exc_info=True)
            return None

        files = {"file": (media.path.name, content)}
        data = {"type": media.type.value}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.upload_url, files=files, data=data)
            response.raise_for_status()
            url = response.json().get("url")
        except (httpx.HTTPError, ValueError, AttributeError):
            LOG.warning("Upload of %s failed", media.path, exc_info=True)
            return None
        if not isinstance(url, str) or not url:
            LOG.warning("Upload of %s returned no url", media.path)
            return None
        return url


class LocalMediaUploader(MediaUploader):
    """Copies media into the runtime media directory and returns a file URL."""

    async def upload(self, media: MediaRef) -> Optional[str]:
        target_dir = constants.MEDIA_DIR
        target = target_dir / f"{generate_document_id()}{media.path.suffix}"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, media.path, target)
        except OSError:
            LOG.warning("Cannot store media %s", media.path, exc_info=True)
            return None
        return target.resolve().as_uri()
