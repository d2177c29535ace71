"""Thumbnail publishing with primary/fallback hosts."""
from pathlib import Path
from typing import Optional
import logging

from ..models import UploadFile
from ..protocols import IUploadClient
from ..utils.events import EventEmitter, Outcome

logger = logging.getLogger(__name__)


class FallbackThumbnailPublisher:
    """
    Publishes a thumbnail blob, trying the image host first.

    Any primary failure moves on to the content-addressed store. Each tier
    is tried once; a fallback failure propagates to the caller.
    """

    def __init__(
        self,
        primary: IUploadClient,
        fallback: IUploadClient,
        events: Optional[EventEmitter] = None,
    ):
        """
        Initialize publisher.

        Args:
            primary: Signed image-host client
            fallback: Content-addressed store client
            events: Phase event emitter
        """
        self._primary = primary
        self._fallback = fallback
        self._events = events or EventEmitter()

    @staticmethod
    def thumbnail_name(video_name: str) -> str:
        return f"{Path(video_name).name}_thumbnail.jpg"

    async def publish(
        self,
        blob: bytes,
        video_name: str,
        account: Optional[str],
        attachment_id: str = "",
    ) -> str:
        file = UploadFile(self.thumbnail_name(video_name), blob, "image/jpeg")

        await self._events.publish(attachment_id, "thumbnail.primary", Outcome.STARTED)
        try:
            url = await self._primary.upload(file, account)
            logger.info(f"[thumbnail] uploaded to image host: {url}")
            await self._events.publish(attachment_id, "thumbnail.primary", Outcome.SUCCEEDED, url)
            return url
        except Exception as e:
            logger.warning(f"[thumbnail] image host failed, trying fallback: {e}")
            await self._events.publish(attachment_id, "thumbnail.primary", Outcome.FAILED, str(e))

        await self._events.publish(attachment_id, "thumbnail.fallback", Outcome.STARTED)
        try:
            url = await self._fallback.upload(file)
        except Exception as e:
            logger.error(f"[thumbnail] fallback upload failed: {e}")
            await self._events.publish(attachment_id, "thumbnail.fallback", Outcome.FAILED, str(e))
            raise

        logger.info(f"[thumbnail] uploaded to fallback store: {url}")
        await self._events.publish(attachment_id, "thumbnail.fallback", Outcome.SUCCEEDED, url)
        return url
