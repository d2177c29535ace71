"""Tests for thumbnail extraction."""
import io
import json

import pytest
from PIL import Image

from snapcomposer.errors import ThumbnailExtractionError
from snapcomposer.services.thumbnail import FFmpegFrameSource, ThumbnailExtractor, VideoHandle

from .conftest import FakeFrameSource


def _phases(recorded):
    return [(e.phase, e.outcome) for e in recorded]


class TestThumbnailExtractor:
    """Test the capture state machine with a fake decoder."""

    @pytest.mark.asyncio
    async def test_captures_jpeg_at_native_resolution(self, events, recorded):
        source = FakeFrameSource(width=64, height=36)
        extractor = ThumbnailExtractor(source, events=events)

        blob = await extractor.extract(b"fake video bytes", "a1")

        image = Image.open(io.BytesIO(blob))
        assert image.format == "JPEG"
        assert image.size == (64, 36)
        assert source.reads == [0.5]
        assert _phases(recorded) == [
            ("thumbnail.loading", "started"),
            ("thumbnail.seeking", "started"),
            ("thumbnail.captured", "started"),
            ("thumbnail.encoded", "succeeded"),
        ]
        assert all(e.attachment_id == "a1" for e in recorded)

    @pytest.mark.asyncio
    async def test_short_video_seeks_near_end(self):
        source = FakeFrameSource(duration=0.3)
        extractor = ThumbnailExtractor(source)

        await extractor.extract(b"video")

        assert source.reads == [pytest.approx(0.25)]

    @pytest.mark.asyncio
    async def test_falls_back_to_first_frame(self):
        source = FakeFrameSource(empty_offsets=[0.5])
        extractor = ThumbnailExtractor(source)

        blob = await extractor.extract(b"video")

        assert blob
        assert source.reads == [0.5, 0.0]

    @pytest.mark.asyncio
    async def test_no_video_stream_fails_while_loading(self, events, recorded):
        source = FakeFrameSource(width=0, height=0)
        extractor = ThumbnailExtractor(source, events=events)

        with pytest.raises(ThumbnailExtractionError) as exc_info:
            await extractor.extract(b"audio only")

        assert exc_info.value.state == "loading"
        assert source.reads == []
        assert recorded[-1].phase == "thumbnail.failed"
        assert recorded[-1].outcome == "failed"

    @pytest.mark.asyncio
    async def test_empty_decoder_output_fails_while_seeking(self):
        source = FakeFrameSource(empty_offsets=[0.5, 0.0])
        extractor = ThumbnailExtractor(source)

        with pytest.raises(ThumbnailExtractionError) as exc_info:
            await extractor.extract(b"video")

        assert exc_info.value.state == "seeking"

    @pytest.mark.asyncio
    async def test_undecodable_frame_fails_while_captured(self):
        source = FakeFrameSource(frame=b"not an image")
        extractor = ThumbnailExtractor(source)

        with pytest.raises(ThumbnailExtractionError) as exc_info:
            await extractor.extract(b"video")

        assert exc_info.value.state == "captured"

    @pytest.mark.asyncio
    async def test_encode_failure_never_reaches_encoded(self, events, recorded, monkeypatch):
        extractor = ThumbnailExtractor(FakeFrameSource(), events=events)

        def broken_encode(surface):
            raise OSError("encoder unavailable")

        monkeypatch.setattr(extractor, "_encode", broken_encode)

        with pytest.raises(ThumbnailExtractionError) as exc_info:
            await extractor.extract(b"video", "a1")

        assert exc_info.value.state == "captured"
        assert "encoder unavailable" in exc_info.value.reason
        assert "thumbnail.encoded" not in [e.phase for e in recorded]
        assert recorded[-1].phase == "thumbnail.failed"

    @pytest.mark.asyncio
    async def test_temp_file_released_on_success_and_failure(self):
        ok_source = FakeFrameSource()
        await ThumbnailExtractor(ok_source).extract(b"video")
        assert ok_source.existed_during_read == [True]
        assert not ok_source.probed[0].exists()

        bad_source = FakeFrameSource(frame=b"garbage")
        with pytest.raises(ThumbnailExtractionError):
            await ThumbnailExtractor(bad_source).extract(b"video")
        assert not bad_source.probed[0].exists()

    @pytest.mark.asyncio
    async def test_path_input_is_not_deleted(self, tmp_path):
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"video")

        await ThumbnailExtractor(FakeFrameSource()).extract(video)

        assert video.exists()

    def test_seek_offset(self):
        extractor = ThumbnailExtractor(FakeFrameSource())
        assert extractor.seek_offset(10.0) == 0.5
        assert extractor.seek_offset(0.0) == 0.5
        assert extractor.seek_offset(0.02) == 0.0


class TestVideoHandle:
    def test_release_is_idempotent(self):
        handle = VideoHandle(b"data")
        assert handle.path.read_bytes() == b"data"
        handle.release()
        handle.release()
        assert handle.released
        assert not handle.path.exists()


class TestFFmpegFrameSource:
    def test_commands(self, tmp_path):
        source = FFmpegFrameSource()
        video = tmp_path / "clip.mp4"

        probe = source.probe_command(video)
        frame = source.frame_command(video, 0.5)

        assert probe[0] == "ffprobe"
        assert probe[-1] == str(video)
        assert frame[0] == "ffmpeg"
        assert frame[frame.index("-ss") + 1] == "0.500"
        assert frame[frame.index("-frames:v") + 1] == "1"

    def test_parse_probe(self):
        output = json.dumps({
            "streams": [{"width": 1080, "height": 1920}],
            "format": {"duration": "12.5"},
        }).encode()

        assert FFmpegFrameSource.parse_probe(output) == {
            "width": 1080, "height": 1920, "duration": 12.5,
        }

    def test_parse_probe_without_streams(self):
        assert FFmpegFrameSource.parse_probe(b'{"streams": []}')["width"] == 0

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        source = FFmpegFrameSource(ffprobe="snapcomposer-no-such-ffprobe")
        with pytest.raises(RuntimeError, match="not found"):
            await source.probe(tmp_path / "clip.mp4")
