"""Video attachment workflow: video upload and thumbnail pipeline, settled together."""
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from ..errors import ComposerError, PartialAttachmentFailure, describe_exception
from ..models import AttachmentResult
from ..services.embed_api import EmbedAPIClient, extract_video_id
from ..services.thumbnail import ThumbnailExtractor
from ..services.video import ResumableVideoUploader
from ..utils.events import EventEmitter, Outcome
from .thumbnail_publisher import FallbackThumbnailPublisher

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Runs the video upload and the thumbnail pipeline concurrently.

    Both branches always settle before a decision is made. The video is
    mandatory; the thumbnail and its assignment are best-effort.
    """

    def __init__(
        self,
        video_uploader: ResumableVideoUploader,
        extractor: ThumbnailExtractor,
        publisher: FallbackThumbnailPublisher,
        embed_api: EmbedAPIClient,
        events: Optional[EventEmitter] = None,
    ):
        self._video = video_uploader
        self._extractor = extractor
        self._publisher = publisher
        self._embed_api = embed_api
        self._events = events or EventEmitter()

    async def _thumbnail_pipeline(self, path: Path, owner: str, attachment_id: str) -> str:
        blob = await self._extractor.extract(path, attachment_id)
        return await self._publisher.publish(blob, path.name, owner, attachment_id)

    async def upload_video(
        self,
        path: Path,
        owner: str,
        attachment_id: str,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> AttachmentResult:
        path = Path(path)
        logger.info(f"[attachment] {attachment_id}: starting video upload and thumbnail for {path.name}")

        video_result, thumbnail_result = await asyncio.gather(
            self._video.upload(path, owner, progress_callback, attachment_id),
            self._thumbnail_pipeline(path, owner, attachment_id),
            return_exceptions=True,
        )

        if isinstance(video_result, BaseException):
            if not isinstance(video_result, Exception):
                raise video_result
            logger.error(f"[attachment] {attachment_id}: video upload failed: {video_result}")
            await self._events.publish(attachment_id, "attachment.settled", Outcome.FAILED, str(video_result))
            user_message = video_result.user_message if isinstance(video_result, ComposerError) else None
            return AttachmentResult.fail(
                attachment_id, path.name, describe_exception(video_result), user_message
            )

        if isinstance(thumbnail_result, BaseException):
            if not isinstance(thumbnail_result, Exception):
                raise thumbnail_result
            warning = PartialAttachmentFailure(f"thumbnail failed: {describe_exception(thumbnail_result)}")
            logger.warning(f"[attachment] {attachment_id}: {warning} (video still works)")
            await self._events.publish(attachment_id, "attachment.settled", Outcome.SUCCEEDED, str(warning))
            return AttachmentResult.partial(attachment_id, path.name, video_result, str(warning))

        assigned = await self._assign_thumbnail(attachment_id, video_result, thumbnail_result)
        await self._events.publish(attachment_id, "attachment.settled", Outcome.SUCCEEDED, video_result)
        return AttachmentResult.ok(
            attachment_id, path.name, video_result,
            thumbnail_url=thumbnail_result, thumbnail_assigned=assigned,
        )

    async def _assign_thumbnail(self, attachment_id: str, embed_reference: str, thumbnail_url: str) -> bool:
        video_id = extract_video_id(embed_reference)
        if not video_id:
            logger.error(f"[attachment] could not extract video id from {embed_reference}")
            await self._events.publish(attachment_id, "thumbnail.assign", Outcome.SKIPPED, embed_reference)
            return False

        await self._events.publish(attachment_id, "thumbnail.assign", Outcome.STARTED, video_id)
        try:
            await self._embed_api.set_thumbnail(video_id, thumbnail_url)
        except ComposerError as e:
            logger.warning(f"[attachment] failed to set thumbnail (video still works): {e}")
            await self._events.publish(attachment_id, "thumbnail.assign", Outcome.FAILED, str(e))
            return False

        await self._events.publish(attachment_id, "thumbnail.assign", Outcome.SUCCEEDED, video_id)
        return True
