"""Core composer - owns the draft and coordinates attach, remove and submit."""
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import httpx

from ..errors import ComposerError, PartialAttachmentFailure, ValidationError, describe_exception
from ..models import (
    AttachmentResult,
    ComposerConfig,
    Draft,
    NewComment,
    PublishResult,
    UploadKind,
    UploadTask,
)
from ..protocols import IContainerLookup, ILedger, ISigner
from ..services.api_client import HTTPAPIClient
from ..services.container import SnapsContainerLookup
from ..services.embed_api import EmbedAPIClient
from ..services.image_host import ImageHostClient
from ..services.ipfs import IpfsClient
from ..services.thumbnail import ThumbnailExtractor
from ..services.video import ResumableVideoUploader
from ..use_cases.assemble import PostAssembler
from ..use_cases.publish import PublishCoordinator, make_permlink
from ..utils.events import EventEmitter, Outcome
from ..utils.retry import RetryPolicy
from .image_batch import ImageBatchUploader
from .thumbnail_publisher import FallbackThumbnailPublisher
from .video_attachment import UploadOrchestrator

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def build_upload_orchestrator(
    http: httpx.AsyncClient,
    config: ComposerConfig,
    signer: Optional[ISigner] = None,
    events: Optional[EventEmitter] = None,
    extractor: Optional[ThumbnailExtractor] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> UploadOrchestrator:
    """Wire the video/thumbnail pipeline on one shared HTTP client."""
    events = events or EventEmitter()
    image_host = ImageHostClient(http, signer, config.image_host_url)
    ipfs = IpfsClient(http, config.ipfs_add_url, config.ipfs_gateway_url)
    return UploadOrchestrator(
        video_uploader=ResumableVideoUploader(http, config, retry_policy, events),
        extractor=extractor or ThumbnailExtractor(
            offset=config.thumbnail_offset, quality=config.thumbnail_quality, events=events
        ),
        publisher=FallbackThumbnailPublisher(image_host, ipfs, events),
        embed_api=EmbedAPIClient(HTTPAPIClient(http, config.embed_api_url), config.api_key),
        events=events,
    )


class SnapComposer:
    """
    Post composer: draft state plus the upload and publish pipeline.

    Attachments are either images/GIF or a single video, never both.
    Background uploads only write their own task records; the composer
    folds results into the draft when they settle, and drops results for
    attachments removed in the meantime.

    Usage:
        async with SnapComposer("alice", ledger, signer=signer) as composer:
            composer.set_text("hello #world")
            await composer.attach_video(Path("clip.mp4"))
            result = await composer.submit()
    """

    def __init__(
        self,
        author: Optional[str],
        ledger: ILedger,
        config: Optional[ComposerConfig] = None,
        *,
        signer: Optional[ISigner] = None,
        parent_author: str = "",
        parent_permlink: Optional[str] = None,
        on_new_comment: Optional[Callable[[NewComment], None]] = None,
        events: Optional[EventEmitter] = None,
        http: Optional[httpx.AsyncClient] = None,
        container_lookup: Optional[IContainerLookup] = None,
        extractor: Optional[ThumbnailExtractor] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize composer with dependencies.

        Args:
            author: Logged-in account (None when logged out)
            ledger: Ledger collaborator that signs and broadcasts
            config: Hosts and ledger constants (defaults from environment)
            signer: Image-host signing collaborator
            parent_author: Author replied to ("" for top-level snaps)
            parent_permlink: Permlink replied to (container tag for top-level snaps)
            on_new_comment: Called with the published comment for local display
            http: Shared HTTP client (created in __aenter__ when omitted)
        """
        self._author = author
        self._ledger = ledger
        self._config = config or ComposerConfig.from_env()
        self._signer = signer
        self._parent_author = parent_author
        self._parent_permlink = parent_permlink or self._config.container_tag
        self._on_new_comment = on_new_comment
        self._events = events or EventEmitter()
        self._external_http = http
        self._external_lookup = container_lookup
        self._extractor = extractor
        self._retry_policy = retry_policy
        self._clock = clock

        self._draft = Draft()
        self._video_task: Optional[UploadTask] = None
        self._image_tasks: List[UploadTask] = []
        self._submitting = False

        # Services (initialized in __aenter__)
        self._http: Optional[httpx.AsyncClient] = None
        self._orchestrator: Optional[UploadOrchestrator] = None
        self._images: Optional[ImageBatchUploader] = None
        self._assembler: Optional[PostAssembler] = None
        self._coordinator: Optional[PublishCoordinator] = None

    async def __aenter__(self):
        """Initialize services."""
        self._http = self._external_http or httpx.AsyncClient(timeout=None)
        config = self._config

        self._orchestrator = build_upload_orchestrator(
            self._http, config, self._signer, self._events, self._extractor, self._retry_policy
        )
        self._images = ImageBatchUploader(
            ImageHostClient(self._http, self._signer, config.image_host_url), self._events
        )
        lookup = self._external_lookup or SnapsContainerLookup(
            HTTPAPIClient(self._http, config.hive_api_url), config.container_account
        )
        self._assembler = PostAssembler(config, lookup)
        self._coordinator = PublishCoordinator(self._ledger, config, self._events)
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._http is not None and self._external_http is None:
            await self._http.aclose()
        self._http = None

    # --- state views -------------------------------------------------

    @property
    def draft(self) -> Draft:
        return self._draft

    @property
    def events(self) -> EventEmitter:
        return self._events

    @property
    def video_task(self) -> Optional[UploadTask]:
        return self._video_task

    @property
    def video_progress(self) -> int:
        return self._video_task.progress if self._video_task else 0

    @property
    def video_embed(self) -> Optional[str]:
        task = self._video_task
        return task.result if task and task.result else None

    @property
    def image_tasks(self) -> List[UploadTask]:
        return list(self._image_tasks)

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    # --- user actions ------------------------------------------------

    def set_text(self, text: str) -> None:
        self._draft.text = text or ""

    def attach_images(self, paths: Sequence[Path]) -> None:
        if self._draft.has_video:
            raise ValidationError("Remove the video before adding images.")
        self._draft.images.extend(Path(p) for p in paths)

    def remove_image(self, index: int) -> None:
        if not 0 <= index < len(self._draft.images):
            raise ValidationError(f"No image at position {index + 1}.")
        del self._draft.images[index]

    def select_gif(self, url: str) -> None:
        if self._draft.has_video:
            raise ValidationError("Remove the video before adding a GIF.")
        self._draft.gif_url = url

    def clear_gif(self) -> None:
        self._draft.gif_url = None

    async def attach_video(self, path: Path) -> AttachmentResult:
        """
        Attach a video and upload it (with thumbnail) right away.

        On failure the video attachment is reset entirely.
        """
        if not self._author:
            raise ValidationError("You must be logged in to upload a video.")
        if self._draft.has_media:
            raise ValidationError("Remove images and GIFs before adding a video.")
        if self._draft.has_video:
            raise ValidationError("Only one video can be attached.")
        assert self._orchestrator is not None, "SnapComposer not initialized. Use 'async with' context."

        path = Path(path)
        attachment_id = _new_id()
        self._draft.video = path
        self._video_task = UploadTask(attachment_id, UploadKind.VIDEO).start().advance(1)

        def _progress(percent: int) -> None:
            task = self._video_task
            if task is not None and task.task_id == attachment_id and task.is_running:
                self._video_task = task.advance(percent)

        result = await self._orchestrator.upload_video(path, self._author, attachment_id, _progress)

        task = self._video_task
        if task is None or task.task_id != attachment_id:
            logger.info(f"[composer] video {attachment_id} was removed during upload; result discarded")
            return result

        if result.success:
            self._video_task = task.succeed(result.embed_reference)
        else:
            self._reset_video()
        return result

    def remove_video(self) -> None:
        """Drop the video; an in-flight transfer finishes but its result is ignored."""
        self._reset_video()

    def discard(self) -> None:
        self._reset()

    # --- submit ------------------------------------------------------

    def _validate_submit(self) -> None:
        if not self._author:
            raise ValidationError("You must be logged in to post.")
        if self._draft.is_empty:
            raise ValidationError(
                "Please enter some text, upload an image, select a gif, or upload a video before posting."
            )
        if self._video_task is not None and not self._video_task.is_settled:
            raise ValidationError("Please wait for the video upload to finish.")
        if self._submitting:
            raise ValidationError("A post is already being submitted.")

    async def submit(self) -> PublishResult:
        """
        Upload images, assemble and publish the draft.

        Raises:
            ValidationError: draft cannot be submitted (nothing was sent)
        """
        self._validate_submit()
        assert self._coordinator is not None, "SnapComposer not initialized. Use 'async with' context."

        self._submitting = True
        permlink = make_permlink(self._clock(), self._config.unique_permlinks)
        try:
            image_urls = await self._upload_images()
            try:
                record = await self._assembler.assemble(
                    author=self._author,
                    permlink=permlink,
                    parent_author=self._parent_author,
                    parent_permlink=self._parent_permlink,
                    text=self._draft.text,
                    video_embed=self.video_embed,
                    image_urls=image_urls,
                    gif_url=self._draft.gif_url,
                )
            except ComposerError as e:
                logger.error(f"[composer] could not assemble post: {e}")
                await self._events.publish(permlink, "publish", Outcome.FAILED, str(e))
                return PublishResult.fail(permlink, str(e), f"Error posting: {e.user_message}")

            if not record.body:
                # every attachment failed and there is no text left to post
                error = PartialAttachmentFailure("all attachments failed to upload; nothing to post")
                logger.error(f"[composer] {error}")
                await self._events.publish(permlink, "publish", Outcome.FAILED, str(error))
                return PublishResult.fail(permlink, str(error), error.user_message)

            result = await self._coordinator.publish(record)
            if result.success:
                self._reset()
                if self._on_new_comment is not None:
                    try:
                        self._on_new_comment(result.comment)
                    except Exception as e:
                        logger.error(f"[composer] on_new_comment callback failed: {describe_exception(e)}")
            return result
        finally:
            self._submitting = False
            self._image_tasks = []

    async def _upload_images(self) -> List[str]:
        paths = list(self._draft.images)
        if not paths:
            return []
        assert self._images is not None

        task_ids = [_new_id() for _ in paths]
        self._image_tasks = [UploadTask(task_id, UploadKind.IMAGE) for task_id in task_ids]

        def _on_task(index: int, task: UploadTask) -> None:
            if index < len(self._image_tasks) and self._image_tasks[index].task_id == task.task_id:
                self._image_tasks[index] = task

        settled = await self._images.upload_all(paths, self._author, task_ids, _on_task)
        urls = ImageBatchUploader.hosted_urls(settled)
        if len(urls) < len(paths):
            logger.warning(f"[composer] {len(paths) - len(urls)} image(s) failed and were left out")
        return urls

    # --- state resets ------------------------------------------------

    def _reset_video(self) -> None:
        self._draft.video = None
        self._video_task = None

    def _reset(self) -> None:
        self._draft.clear()
        self._video_task = None
        self._image_tasks = []
