"""Orchestrator package - coordinates attachment and publish workflows."""
from .core import SnapComposer, build_upload_orchestrator
from .image_batch import ImageBatchUploader
from .thumbnail_publisher import FallbackThumbnailPublisher
from .video_attachment import UploadOrchestrator

__all__ = [
    "SnapComposer",
    "build_upload_orchestrator",
    "ImageBatchUploader",
    "FallbackThumbnailPublisher",
    "UploadOrchestrator",
]
