"""
Image Host Service - signed uploads to the ledger's own image host.

Each upload is authorized by a signature over the file bytes, obtained
from the external signing collaborator, and posted to
``<host>/<account>/<signature>``.
"""
import logging
from typing import Optional

import httpx

from ..errors import CredentialMissing, TransportError, UploadRejected
from ..models import UploadFile
from ..protocols import ISigner
from .upload_client import ProgressCallback, UploadClient

logger = logging.getLogger(__name__)


class ImageHostClient(UploadClient):
    """Uploads images and thumbnails; ``destination`` is the signing account."""

    def __init__(self, http: httpx.AsyncClient, signer: Optional[ISigner], base_url: str):
        super().__init__(http)
        self._signer = signer
        self._base_url = base_url.rstrip("/")

    async def upload(
        self,
        file: UploadFile,
        destination: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> str:
        if self._signer is None:
            raise CredentialMissing("no image signer configured")
        if not destination:
            raise CredentialMissing("image upload needs a signing account")

        try:
            signature = await self._signer.sign_image(file.content)
        except Exception as exc:
            raise TransportError(f"could not sign {file.filename}: {exc}") from exc

        url = f"{self._base_url}/{destination}/{signature}"
        logger.debug(f"[image] uploading {file.filename} ({len(file.content)} bytes)")
        response = await self._post_multipart(url, file, progress_callback)

        try:
            hosted = response.json().get("url")
        except ValueError:
            hosted = None
        if not hosted:
            raise UploadRejected(response.status_code, f"no url in response: {response.text}", url=url)

        logger.info(f"[image] uploaded {file.filename}: {hosted}")
        return hosted
