"""
Video Service - chunked, resumable upload to the streaming host.

Speaks the tus 1.0.0 protocol over httpx: a creation POST returns the
upload URL, PATCH requests append chunks, and after a transport failure
a HEAD request re-syncs the server offset so the transfer resumes
instead of restarting from byte zero. The host announces the embed
reference in an ``X-Embed-URL`` response header.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx

from ..errors import CredentialMissing, MissingEmbedReference, TransportError, UploadRejected
from ..models import ComposerConfig
from ..utils.events import EventEmitter, Outcome
from ..utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

TUS_VERSION = "1.0.0"
EMBED_HEADER = "X-Embed-URL"

ProgressCallback = Callable[[int], None]


def encode_metadata(metadata: Dict[str, str]) -> str:
    """tus ``Upload-Metadata``: comma separated ``key base64(value)`` pairs."""
    pairs = []
    for key, value in metadata.items():
        encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
        pairs.append(f"{key} {encoded}")
    return ",".join(pairs)


def is_retryable(exc: BaseException) -> bool:
    """Transport failures, server errors and tus lock conflicts are retried."""
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, UploadRejected):
        return exc.status_code >= 500 or exc.status_code in (409, 423)
    return False


@dataclass
class _TusSession:
    total: int
    upload_url: Optional[str] = None
    offset: int = 0
    embed_reference: Optional[str] = None
    reported: int = -1


class ResumableVideoUploader:
    """
    Uploads one video and returns its embed reference.

    Usage:
        uploader = ResumableVideoUploader(http, config)
        embed = await uploader.upload(Path("clip.mp4"), owner="alice")
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        config: Optional[ComposerConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._http = http
        self._config = config or ComposerConfig()
        self._retry = retry_policy or RetryPolicy(self._config.retry_delays)
        self._events = events or EventEmitter()

    def _metadata(self, path: Path, owner: str) -> Dict[str, str]:
        return {
            "filename": path.name,
            "owner": owner or "",
            "frontend_app": self._config.frontend_app,
            "short": "true" if self._config.short_form else "false",
        }

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {"Tus-Resumable": TUS_VERSION, "X-API-Key": self._config.api_key or ""}
        headers.update(extra)
        return headers

    async def upload(
        self,
        path: Path,
        owner: str,
        progress_callback: Optional[ProgressCallback] = None,
        attachment_id: str = "",
    ) -> str:
        """
        Upload video file.

        Raises:
            CredentialMissing: no API key (no network call is made)
            TransportError / UploadRejected: transfer failed after all attempts
            MissingEmbedReference: transfer finished without an embed header
        """
        if not self._config.has_api_key:
            raise CredentialMissing("3Speak API key not configured")

        path = Path(path)
        session = _TusSession(total=path.stat().st_size)
        logger.info(f"[video] uploading {path.name} ({session.total} bytes) for @{owner}")
        await self._events.publish(attachment_id, "video.upload", Outcome.STARTED, path.name)

        async def _attempt(attempt: int) -> None:
            await self._transfer(session, path, owner, progress_callback)

        async def _on_retry(attempt: int, delay: float, exc: BaseException) -> None:
            await self._events.publish(
                attachment_id, "video.retry", Outcome.STARTED,
                f"attempt {attempt} in {delay:g}s after: {exc}",
            )

        try:
            await self._retry.run(_attempt, should_retry=is_retryable, on_retry=_on_retry)
        except Exception as exc:
            await self._events.publish(attachment_id, "video.upload", Outcome.FAILED, str(exc))
            raise

        if not session.embed_reference:
            await self._events.publish(attachment_id, "video.upload", Outcome.FAILED, "no embed reference")
            raise MissingEmbedReference(f"transfer of {path.name} finished without {EMBED_HEADER} header")

        logger.info(f"[video] uploaded {path.name}: {session.embed_reference}")
        await self._events.publish(attachment_id, "video.upload", Outcome.SUCCEEDED, session.embed_reference)
        return session.embed_reference

    async def _transfer(
        self,
        session: _TusSession,
        path: Path,
        owner: str,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        if session.upload_url is None:
            await self._create(session, path, owner)
        else:
            await self._resync(session)
        self._report(session, progress_callback)

        with open(path, "rb") as fh:
            while session.offset < session.total:
                fh.seek(session.offset)
                chunk = await asyncio.to_thread(fh.read, self._config.chunk_size)
                if not chunk:
                    raise TransportError(f"{path.name} shrank during upload at byte {session.offset}")
                response = await self._request(
                    session,
                    "PATCH",
                    session.upload_url,
                    headers=self._headers(**{
                        "Upload-Offset": str(session.offset),
                        "Content-Type": "application/offset+octet-stream",
                    }),
                    content=chunk,
                )
                session.offset = self._server_offset(response, session.offset + len(chunk))
                self._report(session, progress_callback)

    async def _create(self, session: _TusSession, path: Path, owner: str) -> None:
        response = await self._request(
            session,
            "POST",
            self._config.video_upload_url,
            headers=self._headers(**{
                "Upload-Length": str(session.total),
                "Upload-Metadata": encode_metadata(self._metadata(path, owner)),
            }),
        )
        location = response.headers.get("Location")
        if not location:
            raise UploadRejected(response.status_code, "creation response without Location", url=self._config.video_upload_url)
        session.upload_url = str(httpx.URL(self._config.video_upload_url).join(location))
        session.offset = 0
        logger.debug(f"[video] upload created at {session.upload_url}")

    async def _resync(self, session: _TusSession) -> None:
        response = await self._request(session, "HEAD", session.upload_url, headers=self._headers())
        session.offset = self._server_offset(response, session.offset)
        logger.info(f"[video] resuming at byte {session.offset}/{session.total}")

    @staticmethod
    def _server_offset(response: httpx.Response, fallback: int) -> int:
        value = response.headers.get("Upload-Offset")
        try:
            return int(value) if value is not None else fallback
        except ValueError:
            return fallback

    async def _request(self, session: _TusSession, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        embed = response.headers.get(EMBED_HEADER)
        if embed:
            session.embed_reference = embed

        if not response.is_success:
            raise UploadRejected(response.status_code, response.text, url=url)
        return response

    @staticmethod
    def _report(session: _TusSession, progress_callback: Optional[ProgressCallback]) -> None:
        if session.total:
            percent = int(session.offset * 100 / session.total + 0.5)
        else:
            percent = 100
        if percent > session.reported:
            session.reported = percent
            if progress_callback:
                progress_callback(percent)
