"""
Snapcomposer - attachment upload and post assembly for short-form posts.

Turns a draft (text plus images, a GIF, or one video) into a published
ledger entry, coordinating the uploads it depends on.

Usage:
    from snapcomposer import SnapComposer, ComposerConfig

    async with SnapComposer("alice", ledger, signer=signer) as composer:
        composer.set_text("first clip #snaps")
        result = await composer.attach_video(Path("clip.mp4"))
        if result.success:
            published = await composer.submit()
"""
from .models import (
    AttachmentResult,
    AttachmentStatus,
    ComposerConfig,
    Draft,
    LedgerResponse,
    NewComment,
    PostRecord,
    PublishResult,
    TaskStatus,
    UploadFile,
    UploadKind,
    UploadTask,
)
from .errors import (
    ComposerError,
    ContainerLookupError,
    CredentialMissing,
    MissingEmbedReference,
    PartialAttachmentFailure,
    PublishFailure,
    ThumbnailExtractionError,
    TransportError,
    UploadRejected,
    ValidationError,
)
from .orchestrator import (
    FallbackThumbnailPublisher,
    ImageBatchUploader,
    SnapComposer,
    UploadOrchestrator,
    build_upload_orchestrator,
)
from .use_cases import PostAssembler, PublishCoordinator, extract_hashtags, make_permlink
from .utils import EventEmitter, RetryPolicy, UploadEvent

__version__ = "0.3.0"
__all__ = [
    # Main
    "SnapComposer",
    "UploadOrchestrator",
    "build_upload_orchestrator",
    "FallbackThumbnailPublisher",
    "ImageBatchUploader",
    "PostAssembler",
    "PublishCoordinator",
    "extract_hashtags",
    "make_permlink",
    # Models
    "AttachmentResult",
    "AttachmentStatus",
    "ComposerConfig",
    "Draft",
    "LedgerResponse",
    "NewComment",
    "PostRecord",
    "PublishResult",
    "TaskStatus",
    "UploadFile",
    "UploadKind",
    "UploadTask",
    # Errors
    "ComposerError",
    "ContainerLookupError",
    "CredentialMissing",
    "MissingEmbedReference",
    "PartialAttachmentFailure",
    "PublishFailure",
    "ThumbnailExtractionError",
    "TransportError",
    "UploadRejected",
    "ValidationError",
    # Utils
    "EventEmitter",
    "RetryPolicy",
    "UploadEvent",
]
