"""HTTP upload adapter shared by the image-host and content-addressed clients."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Dict, Optional

import httpx

from ..errors import TransportError, UploadRejected
from ..models import UploadFile
from ..protocols import IUploadClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

PROGRESS_CHUNK = 64 * 1024


class UploadClient(IUploadClient):
    """
    Single multipart upload against one host.

    Reports per-call progress as a 0-100 integer and never retries:
    failures surface as ``TransportError`` or ``UploadRejected``.
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    async def _post_multipart(
        self,
        url: str,
        file: UploadFile,
        progress_callback: Optional[ProgressCallback] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        request = self._http.build_request(
            "POST",
            url,
            files={"file": (file.filename, file.content, file.content_type)},
        )
        body = request.read()
        total = len(body)

        async def _stream() -> AsyncIterator[bytes]:
            sent = 0
            last = -1
            for start in range(0, total, PROGRESS_CHUNK):
                chunk = body[start:start + PROGRESS_CHUNK]
                sent += len(chunk)
                percent = int(sent * 100 / total + 0.5) if total else 100
                if progress_callback and percent != last:
                    progress_callback(percent)
                    last = percent
                yield chunk

        send_headers = {
            "Content-Type": request.headers["Content-Type"],
            "Content-Length": str(total),
        }
        if headers:
            send_headers.update(headers)

        if progress_callback:
            progress_callback(0)
        try:
            response = await self._http.post(url, content=_stream(), headers=send_headers)
        except httpx.TransportError as exc:
            raise TransportError(f"upload to {url} failed: {exc}") from exc

        if not response.is_success:
            raise UploadRejected(response.status_code, response.text, url=url)
        return response
