"""
Content-addressed fallback host.

The add endpoint answers with newline-delimited JSON, one object per
processed entry; the last line describes the uploaded file.
"""
import json
import logging
from typing import Optional

import httpx

from ..errors import UploadRejected
from ..models import UploadFile
from .upload_client import ProgressCallback, UploadClient

logger = logging.getLogger(__name__)


def parse_add_response(text: str) -> str:
    """Return the ``Hash`` field of the last NDJSON line."""
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        raise ValueError("empty add response")
    result = json.loads(lines[-1])
    content_hash = result.get("Hash")
    if not content_hash:
        raise ValueError(f"no Hash in add response: {lines[-1]}")
    return content_hash


class IpfsClient(UploadClient):
    """Uploads to an IPFS add endpoint and returns a gateway URL."""

    def __init__(self, http: httpx.AsyncClient, add_url: str, gateway_url: str):
        super().__init__(http)
        self._add_url = add_url
        self._gateway_url = gateway_url.rstrip("/")

    def gateway_url(self, content_hash: str) -> str:
        return f"{self._gateway_url}/ipfs/{content_hash}"

    async def upload(
        self,
        file: UploadFile,
        destination: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        url = destination or self._add_url
        response = await self._post_multipart(url, file, progress_callback)
        try:
            content_hash = parse_add_response(response.text)
        except ValueError as exc:
            raise UploadRejected(response.status_code, str(exc), url=url) from exc

        hosted = self.gateway_url(content_hash)
        logger.info(f"[ipfs] uploaded {file.filename}: {hosted}")
        return hosted
