"""
Thumbnail Service - Single Responsibility: capture one still frame from a video.

State machine per job: loading -> seeking -> captured -> encoded, or
failed from any state. Frames are decoded with the system ``ffmpeg`` /
``ffprobe`` binaries and re-encoded to JPEG with Pillow.
"""
from __future__ import annotations

import asyncio
import io
import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from PIL import Image

from ..errors import ThumbnailExtractionError, describe_exception
from ..protocols import IFrameSource
from ..utils.events import EventEmitter, Outcome

logger = logging.getLogger(__name__)

VideoInput = Union[str, Path, bytes]

# seeking this close to the end returns no frame on most containers
END_MARGIN = 0.05


class ThumbnailState(Enum):
    LOADING = "loading"
    SEEKING = "seeking"
    CAPTURED = "captured"
    ENCODED = "encoded"
    FAILED = "failed"


class FFmpegFrameSource(IFrameSource):
    """Frame source backed by ffprobe/ffmpeg subprocesses."""

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe"):
        self._ffmpeg = ffmpeg
        self._ffprobe = ffprobe

    def probe_command(self, path: Path) -> list[str]:
        return [
            self._ffprobe,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height,duration:format=duration",
            "-of", "json",
            str(path),
        ]

    def frame_command(self, path: Path, offset: float) -> list[str]:
        return [
            self._ffmpeg,
            "-v", "error",
            "-ss", f"{offset:.3f}",
            "-i", str(path),
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "png",
            "-",
        ]

    async def _run(self, cmd: list[str]) -> bytes:
        logger.debug("[thumbnail] running: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise RuntimeError(f"{cmd[0]} not found on PATH; cannot decode video") from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="ignore").strip()
            raise RuntimeError(f"{cmd[0]} exited with code {proc.returncode}: {detail[:300]}")
        return stdout

    @staticmethod
    def parse_probe(output: bytes) -> Dict[str, Any]:
        data = json.loads(output or b"{}")
        streams = data.get("streams") or []
        if not streams:
            return {"width": 0, "height": 0, "duration": 0.0}
        stream = streams[0]
        duration = stream.get("duration") or (data.get("format") or {}).get("duration") or 0
        return {
            "width": int(stream.get("width") or 0),
            "height": int(stream.get("height") or 0),
            "duration": float(duration),
        }

    async def probe(self, path: Path) -> Dict[str, Any]:
        return self.parse_probe(await self._run(self.probe_command(path)))

    async def read_frame(self, path: Path, offset: float) -> bytes:
        return await self._run(self.frame_command(path, offset))


class VideoHandle:
    """
    Temporary handle on the video source.

    In-memory videos are spilled to a temp file that lives until
    ``release()``; paths are used as-is.
    """

    def __init__(self, source: VideoInput, suffix: str = ".mp4"):
        self.released = False
        self._owned = False
        if isinstance(source, (bytes, bytearray)):
            fd, name = tempfile.mkstemp(prefix="thumb_", suffix=suffix)
            with os.fdopen(fd, "wb") as fh:
                fh.write(source)
            self.path = Path(name)
            self._owned = True
        else:
            self.path = Path(source)

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        if self._owned:
            self.path.unlink(missing_ok=True)


class ThumbnailExtractor:
    """
    Captures a JPEG still at a fixed offset into a video.

    Videos shorter than the offset are captured near their last frame;
    if even that yields nothing the first frame is used.
    """

    def __init__(
        self,
        frame_source: Optional[IFrameSource] = None,
        offset: float = 0.5,
        quality: int = 90,
        events: Optional[EventEmitter] = None,
    ):
        self._source = frame_source or FFmpegFrameSource()
        self._offset = offset
        self._quality = quality
        self._events = events or EventEmitter()

    def seek_offset(self, duration: float) -> float:
        if duration and duration < self._offset + END_MARGIN:
            return max(duration - END_MARGIN, 0.0)
        return self._offset

    async def _enter(self, attachment_id: str, state: ThumbnailState) -> ThumbnailState:
        await self._events.publish(attachment_id, f"thumbnail.{state.value}", Outcome.STARTED)
        return state

    async def extract(self, video: VideoInput, attachment_id: str = "") -> bytes:
        """
        Capture one still frame as JPEG bytes.

        Raises:
            ThumbnailExtractionError: decode, rasterize or encode failure
        """
        handle = VideoHandle(video)
        state = ThumbnailState.LOADING
        try:
            await self._enter(attachment_id, state)
            info = await self._source.probe(handle.path)
            if info.get("width", 0) <= 0 or info.get("height", 0) <= 0:
                raise ThumbnailExtractionError(state.value, "video has no decodable frame")

            state = await self._enter(attachment_id, ThumbnailState.SEEKING)
            offset = self.seek_offset(float(info.get("duration") or 0))
            frame = await self._source.read_frame(handle.path, offset)
            if not frame and offset > 0:
                logger.info(f"[thumbnail] no frame at {offset:.3f}s, using first frame")
                frame = await self._source.read_frame(handle.path, 0.0)
            if not frame:
                raise ThumbnailExtractionError(state.value, "decoder returned no frame")

            state = await self._enter(attachment_id, ThumbnailState.CAPTURED)
            surface = self._rasterize(frame, info)

            # encoded is terminal: only reached once the JPEG exists
            blob = await asyncio.to_thread(self._encode, surface)
            state = ThumbnailState.ENCODED
            logger.info(f"[thumbnail] captured {surface.width}x{surface.height} at {offset:.3f}s, {len(blob)} bytes")
            await self._events.publish(attachment_id, "thumbnail.encoded", Outcome.SUCCEEDED, f"{len(blob)} bytes")
            return blob
        except ThumbnailExtractionError as exc:
            await self._fail(attachment_id, exc)
            raise
        except Exception as exc:
            error = ThumbnailExtractionError(state.value, describe_exception(exc))
            await self._fail(attachment_id, error)
            raise error from exc
        finally:
            handle.release()

    async def _fail(self, attachment_id: str, error: ThumbnailExtractionError) -> None:
        logger.warning(f"[thumbnail] {error}")
        await self._events.publish(attachment_id, "thumbnail.failed", Outcome.FAILED, error.reason)

    @staticmethod
    def _rasterize(frame: bytes, info: Dict[str, Any]) -> Image.Image:
        """Draw the decoded frame on an RGB surface at native resolution."""
        decoded = Image.open(io.BytesIO(frame))
        decoded.load()
        size = decoded.size
        surface = Image.new("RGB", size)
        surface.paste(decoded.convert("RGB"), (0, 0))
        if size != (info.get("width"), info.get("height")):
            logger.debug(f"[thumbnail] decoded size {size} differs from stream size (rotation metadata)")
        return surface

    def _encode(self, surface: Image.Image) -> bytes:
        buffer = io.BytesIO()
        surface.save(buffer, format="JPEG", quality=self._quality)
        return buffer.getvalue()
