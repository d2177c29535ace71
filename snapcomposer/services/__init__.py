"""Services for the composer pipeline."""
from .api_client import HTTPAPIClient
from .container import SnapsContainerLookup
from .embed_api import EmbedAPIClient, extract_video_id
from .image_host import ImageHostClient
from .ipfs import IpfsClient
from .thumbnail import FFmpegFrameSource, ThumbnailExtractor, ThumbnailState
from .upload_client import UploadClient
from .video import ResumableVideoUploader

__all__ = [
    "HTTPAPIClient",
    "SnapsContainerLookup",
    "EmbedAPIClient",
    "extract_video_id",
    "ImageHostClient",
    "IpfsClient",
    "FFmpegFrameSource",
    "ThumbnailExtractor",
    "ThumbnailState",
    "UploadClient",
    "ResumableVideoUploader",
]
