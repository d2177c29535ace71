"""
Models for the composer pipeline.

Attachment and publish results are immutable dataclasses; the draft is the
only mutable record and is touched exclusively by composer action handlers.
"""
import json
import mimetypes
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class UploadKind(Enum):
    """What an upload task carries."""
    IMAGE = "image"
    VIDEO = "video"
    THUMBNAIL = "thumbnail"


class TaskStatus(Enum):
    """Lifecycle of a single upload task."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadTask:
    """
    Explicit state record for one upload.

    Illegal combinations are rejected at construction, so a task can never
    be succeeded with outstanding progress or failed with a result.
    Transitions return new records.
    """
    task_id: str
    kind: UploadKind
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    result: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress out of range: {self.progress}")
        if self.status == TaskStatus.SUCCEEDED:
            if not self.result or self.error is not None or self.progress != 100:
                raise ValueError("succeeded task needs a result, no error and full progress")
        elif self.status == TaskStatus.FAILED:
            if not self.error or self.result is not None or self.progress != 0:
                raise ValueError("failed task needs an error, no result and zero progress")
        else:
            if self.result is not None or self.error is not None:
                raise ValueError(f"{self.status.value} task cannot carry a result or error")
            if self.status == TaskStatus.PENDING and self.progress != 0:
                raise ValueError("pending task cannot report progress")

    @property
    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    @property
    def is_settled(self) -> bool:
        return self.status in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)

    def start(self) -> "UploadTask":
        if self.status != TaskStatus.PENDING:
            raise ValueError(f"cannot start a {self.status.value} task")
        return replace(self, status=TaskStatus.RUNNING, progress=0)

    def advance(self, percent: int) -> "UploadTask":
        """Raise progress; never moves backwards."""
        if self.status != TaskStatus.RUNNING:
            raise ValueError(f"cannot report progress on a {self.status.value} task")
        percent = max(0, min(100, int(percent)))
        if percent <= self.progress:
            return self
        return replace(self, progress=percent)

    def succeed(self, result: str) -> "UploadTask":
        if self.status != TaskStatus.RUNNING:
            raise ValueError(f"cannot complete a {self.status.value} task")
        return replace(self, status=TaskStatus.SUCCEEDED, progress=100, result=result)

    def fail(self, reason: str) -> "UploadTask":
        if self.is_settled:
            raise ValueError(f"cannot fail a {self.status.value} task")
        return replace(self, status=TaskStatus.FAILED, progress=0, error=reason or "unknown error")


class AttachmentStatus(Enum):
    """Outcome of an orchestrated attachment upload."""
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"  # Video ok but thumbnail failed


@dataclass(frozen=True)
class AttachmentResult:
    """Immutable result of a video attachment upload."""
    attachment_id: str
    filename: str
    status: AttachmentStatus = AttachmentStatus.SUCCESS
    embed_reference: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_assigned: bool = False
    error: Optional[str] = None
    user_message: Optional[str] = None

    @property
    def success(self) -> bool:
        """Video is usable (thumbnail is best-effort)."""
        return self.status != AttachmentStatus.FAILED

    @classmethod
    def ok(cls, attachment_id: str, filename: str, embed_reference: str,
           thumbnail_url: str = None, thumbnail_assigned: bool = False):
        return cls(
            attachment_id=attachment_id,
            filename=filename,
            status=AttachmentStatus.SUCCESS,
            embed_reference=embed_reference,
            thumbnail_url=thumbnail_url,
            thumbnail_assigned=thumbnail_assigned,
        )

    @classmethod
    def fail(cls, attachment_id: str, filename: str, error: str, user_message: str = None):
        return cls(
            attachment_id=attachment_id,
            filename=filename,
            status=AttachmentStatus.FAILED,
            error=error,
            user_message=user_message or "Failed to upload video. Please try again.",
        )

    @classmethod
    def partial(cls, attachment_id: str, filename: str, embed_reference: str, error: str):
        return cls(
            attachment_id=attachment_id,
            filename=filename,
            status=AttachmentStatus.PARTIAL,
            embed_reference=embed_reference,
            error=error,
        )


@dataclass(frozen=True)
class UploadFile:
    """In-memory file handed to an upload client."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Path, content_type: str = None) -> "UploadFile":
        path = Path(path)
        guessed = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(filename=path.name, content=path.read_bytes(), content_type=guessed)


@dataclass
class Draft:
    """
    User draft: text plus either images/GIF or a single video.

    Mutated only by composer action handlers.
    """
    text: str = ""
    images: List[Path] = field(default_factory=list)
    gif_url: Optional[str] = None
    video: Optional[Path] = None

    @property
    def has_media(self) -> bool:
        return bool(self.images) or self.gif_url is not None

    @property
    def has_video(self) -> bool:
        return self.video is not None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.has_media and not self.has_video

    def clear(self) -> None:
        self.text = ""
        self.images = []
        self.gif_url = None
        self.video = None


@dataclass(frozen=True)
class PostRecord:
    """Assembled post; immutable once built."""
    author: str
    permlink: str
    parent_author: str
    parent_permlink: str
    body: str
    tags: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    video_embed: Optional[str] = None
    app: str = "mycommunity"
    title: str = ""

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"app": self.app, "tags": list(self.tags), "images": list(self.images)}

    @property
    def json_metadata(self) -> str:
        return json.dumps(self.metadata)


@dataclass(frozen=True)
class NewComment:
    """Minimal record for optimistic local display after publishing."""
    author: str
    permlink: str
    body: str


@dataclass(frozen=True)
class LedgerResponse:
    """What the ledger collaborator reports for a broadcast."""
    success: bool
    error: Optional[str] = None
    tx_id: Optional[str] = None


@dataclass(frozen=True)
class PublishResult:
    """Immutable result of a publish attempt."""
    success: bool
    permlink: str
    comment: Optional[NewComment] = None
    operations: Tuple[Any, ...] = ()
    error: Optional[str] = None
    user_message: Optional[str] = None

    @classmethod
    def ok(cls, comment: NewComment, operations=()):
        return cls(success=True, permlink=comment.permlink, comment=comment,
                   operations=tuple(operations))

    @classmethod
    def fail(cls, permlink: str, error: str, user_message: str, operations=()):
        return cls(
            success=False,
            permlink=permlink,
            operations=tuple(operations),
            error=error,
            user_message=user_message,
        )


@dataclass(frozen=True)
class ComposerConfig:
    """Immutable configuration for hosts, ledger constants and media handling."""
    # Image host (signed uploads)
    image_host_url: str = "https://images.hive.blog"
    # Content-addressed fallback for thumbnails
    ipfs_add_url: str = "http://65.21.201.94:5002/api/v0/add"
    ipfs_gateway_url: str = "https://ipfs.3speak.tv"
    # Video host
    video_upload_url: str = "https://embed.3speak.tv/uploads"
    embed_api_url: str = "https://embed.3speak.tv"
    api_key: Optional[str] = None
    frontend_app: str = "snapie"
    short_form: bool = True
    chunk_size: int = 5 * 1024 * 1024
    retry_delays: Tuple[float, ...] = (0, 3, 5, 10, 20)
    # Thumbnail capture
    thumbnail_offset: float = 0.5
    thumbnail_quality: int = 90
    # Ledger
    hive_api_url: str = "https://api.hive.blog"
    container_account: str = "peak.snaps"
    container_tag: str = "snaps"
    community_tag: str = ""
    app_name: str = "mycommunity"
    beneficiary_account: str = "snapie"
    beneficiary_weight: int = 1000  # parts per 10000
    max_accepted_payout: str = "1000000.000 HBD"
    percent_hbd: int = 10000
    unique_permlinks: bool = False

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, environ=None, **overrides) -> "ComposerConfig":
        """Build config from process environment (explicit overrides win)."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        mapping = {
            "THREESPEAK_API_KEY": "api_key",
            "HIVE_COMMUNITY_TAG": "community_tag",
            "IMAGE_HOST_URL": "image_host_url",
            "IPFS_ADD_URL": "ipfs_add_url",
            "IPFS_GATEWAY_URL": "ipfs_gateway_url",
            "HIVE_API_URL": "hive_api_url",
        }
        for env_name, attr in mapping.items():
            value = env.get(env_name)
            if value:
                values[attr] = value.strip()
        values.update(overrides)
        return cls(**values)
