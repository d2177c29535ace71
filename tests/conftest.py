"""Shared fixtures for composer tests."""
import io
from typing import Any, Dict, List

import pytest
from PIL import Image

from snapcomposer.models import ComposerConfig
from snapcomposer.protocols import IFrameSource
from snapcomposer.utils.events import EventEmitter


def png_bytes(width: int = 64, height: int = 36, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeFrameSource(IFrameSource):
    """Frame source that serves a solid PNG and records what it was asked."""

    def __init__(self, width=64, height=36, duration=3.0, frame=None, empty_offsets=()):
        self.info = {"width": width, "height": height, "duration": duration}
        if frame is None:
            # Pillow cannot write a 0x0 image; a stream without video yields no frame
            frame = png_bytes(width, height) if width > 0 and height > 0 else b""
        self.frame = frame
        self.empty_offsets = set(empty_offsets)
        self.probed: List[Any] = []
        self.reads: List[float] = []
        self.existed_during_read: List[bool] = []

    async def probe(self, path) -> Dict[str, Any]:
        self.probed.append(path)
        return dict(self.info)

    async def read_frame(self, path, offset: float) -> bytes:
        self.reads.append(offset)
        self.existed_during_read.append(path.exists())
        if offset in self.empty_offsets:
            return b""
        return self.frame


@pytest.fixture
def config():
    return ComposerConfig(api_key="test-key", community_tag="hive-178315", chunk_size=4)


@pytest.fixture
def events():
    return EventEmitter()


@pytest.fixture
def recorded(events):
    seen = []
    events.on(EventEmitter.ALL, seen.append)
    return seen
