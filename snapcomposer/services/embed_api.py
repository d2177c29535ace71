"""Video host embed API: thumbnail assignment and embed reference parsing."""
import logging
from typing import Optional
from urllib.parse import parse_qs, urlparse

from ..errors import CredentialMissing
from .api_client import HTTPAPIClient

logger = logging.getLogger(__name__)


def extract_video_id(embed_reference: str) -> Optional[str]:
    """
    Short id of an embed URL.

    ``https://play.3speak.tv/watch?v=owner/i2znmy5h`` -> ``i2znmy5h``.
    """
    try:
        query = parse_qs(urlparse(embed_reference).query)
    except ValueError:
        return None
    values = query.get("v")
    if not values:
        return None
    parts = values[0].split("/")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1]


class EmbedAPIClient:
    """Calls on the video host's embed API, authenticated by API key."""

    def __init__(self, api: HTTPAPIClient, api_key: Optional[str]):
        self._api = api
        self._api_key = api_key

    async def set_thumbnail(self, video_id: str, thumbnail_url: str) -> None:
        """
        Associate a hosted thumbnail with a video.

        Raises:
            CredentialMissing: no API key configured (no request is made)
            UploadRejected / TransportError: host refused or unreachable
        """
        if not self._api_key:
            raise CredentialMissing("3Speak API key not configured")

        await self._api.post(
            f"/video/{video_id}/thumbnail",
            json={"thumbnail_url": thumbnail_url},
            headers={"X-API-Key": self._api_key},
        )
        logger.info(f"[embed] thumbnail set for {video_id}")
