"""Tests for thumbnail publishing and the video attachment workflow."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from snapcomposer.errors import (
    CredentialMissing,
    MissingEmbedReference,
    ThumbnailExtractionError,
    TransportError,
    UploadRejected,
)
from snapcomposer.models import AttachmentStatus
from snapcomposer.orchestrator.thumbnail_publisher import FallbackThumbnailPublisher
from snapcomposer.orchestrator.video_attachment import UploadOrchestrator

EMBED = "https://play.3speak.tv/watch?v=alice/i2znmy5h"
THUMB = "https://images.hive.blog/DQm/clip.mp4_thumbnail.jpg"


def _client(result=None, error=None):
    client = MagicMock()
    client.upload = AsyncMock(return_value=result, side_effect=error)
    return client


class TestFallbackThumbnailPublisher:
    """Test primary/fallback tiering."""

    @pytest.mark.asyncio
    async def test_primary_success_skips_fallback(self):
        primary = _client(THUMB)
        fallback = _client("https://ipfs.3speak.tv/ipfs/Qm")
        publisher = FallbackThumbnailPublisher(primary, fallback)

        url = await publisher.publish(b"jpeg", "clip.mp4", "alice")

        assert url == THUMB
        file, account = primary.upload.await_args.args
        assert file.filename == "clip.mp4_thumbnail.jpg"
        assert file.content_type == "image/jpeg"
        assert account == "alice"
        fallback.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_primary_failure_uses_fallback_once(self, events, recorded):
        primary = _client(error=UploadRejected(500, "boom"))
        fallback = _client("https://ipfs.3speak.tv/ipfs/Qm")
        publisher = FallbackThumbnailPublisher(primary, fallback, events)

        url = await publisher.publish(b"jpeg", "clip.mp4", "alice", "a1")

        assert url == "https://ipfs.3speak.tv/ipfs/Qm"
        primary.upload.assert_awaited_once()
        fallback.upload.assert_awaited_once()
        assert [(e.phase, e.outcome) for e in recorded] == [
            ("thumbnail.primary", "started"),
            ("thumbnail.primary", "failed"),
            ("thumbnail.fallback", "started"),
            ("thumbnail.fallback", "succeeded"),
        ]

    @pytest.mark.asyncio
    async def test_missing_signer_falls_back(self):
        primary = _client(error=CredentialMissing("no image signer configured"))
        fallback = _client("https://ipfs.3speak.tv/ipfs/Qm")

        url = await FallbackThumbnailPublisher(primary, fallback).publish(b"jpeg", "clip.mp4", None)

        assert url == "https://ipfs.3speak.tv/ipfs/Qm"

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self):
        primary = _client(error=TransportError("down"))
        fallback = _client(error=UploadRejected(502, "gateway"))
        publisher = FallbackThumbnailPublisher(primary, fallback)

        with pytest.raises(UploadRejected):
            await publisher.publish(b"jpeg", "clip.mp4", "alice")

        fallback.upload.assert_awaited_once()


class TestUploadOrchestrator:
    """Test settle-all decisions for one video attachment."""

    @pytest.fixture
    def video_uploader(self):
        uploader = MagicMock()
        uploader.upload = AsyncMock(return_value=EMBED)
        return uploader

    @pytest.fixture
    def extractor(self):
        extractor = MagicMock()
        extractor.extract = AsyncMock(return_value=b"jpeg")
        return extractor

    @pytest.fixture
    def publisher(self):
        publisher = MagicMock()
        publisher.publish = AsyncMock(return_value=THUMB)
        return publisher

    @pytest.fixture
    def embed_api(self):
        api = MagicMock()
        api.set_thumbnail = AsyncMock(return_value=None)
        return api

    @pytest.fixture
    def orchestrator(self, video_uploader, extractor, publisher, embed_api, events):
        return UploadOrchestrator(video_uploader, extractor, publisher, embed_api, events)

    @pytest.mark.asyncio
    async def test_both_succeed_assigns_thumbnail(self, orchestrator, embed_api, tmp_path):
        result = await orchestrator.upload_video(tmp_path / "clip.mp4", "alice", "a1")

        assert result.status == AttachmentStatus.SUCCESS
        assert result.embed_reference == EMBED
        assert result.thumbnail_url == THUMB
        assert result.thumbnail_assigned is True
        embed_api.set_thumbnail.assert_awaited_once_with("i2znmy5h", THUMB)

    @pytest.mark.asyncio
    async def test_video_failure_fails_even_with_thumbnail(
        self, orchestrator, video_uploader, publisher, embed_api, tmp_path
    ):
        video_uploader.upload.side_effect = MissingEmbedReference("no header")

        result = await orchestrator.upload_video(tmp_path / "clip.mp4", "alice", "a1")

        assert result.success is False
        assert result.status == AttachmentStatus.FAILED
        assert result.user_message == "Failed to upload video. Please try again."
        publisher.publish.assert_awaited_once()
        embed_api.set_thumbnail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_thumbnail_failure_is_partial(self, orchestrator, extractor, publisher, embed_api, tmp_path):
        extractor.extract.side_effect = ThumbnailExtractionError("loading", "no frame")

        result = await orchestrator.upload_video(tmp_path / "clip.mp4", "alice", "a1")

        assert result.success is True
        assert result.status == AttachmentStatus.PARTIAL
        assert result.embed_reference == EMBED
        assert "no frame" in result.error
        publisher.publish.assert_not_awaited()
        embed_api.set_thumbnail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_assignment_failure_is_not_fatal(self, orchestrator, embed_api, tmp_path):
        embed_api.set_thumbnail.side_effect = CredentialMissing("no key")

        result = await orchestrator.upload_video(tmp_path / "clip.mp4", "alice", "a1")

        assert result.status == AttachmentStatus.SUCCESS
        assert result.thumbnail_url == THUMB
        assert result.thumbnail_assigned is False

    @pytest.mark.asyncio
    async def test_unparseable_embed_skips_assignment(
        self, orchestrator, video_uploader, embed_api, recorded, tmp_path
    ):
        video_uploader.upload.return_value = "https://play.3speak.tv/watch"

        result = await orchestrator.upload_video(tmp_path / "clip.mp4", "alice", "a1")

        assert result.success is True
        assert result.thumbnail_assigned is False
        embed_api.set_thumbnail.assert_not_awaited()
        assert ("thumbnail.assign", "skipped") in [(e.phase, e.outcome) for e in recorded]

    @pytest.mark.asyncio
    async def test_branches_receive_attachment_context(
        self, orchestrator, video_uploader, extractor, publisher, tmp_path
    ):
        callback = MagicMock()
        path = tmp_path / "clip.mp4"

        await orchestrator.upload_video(path, "alice", "a1", callback)

        video_uploader.upload.assert_awaited_once_with(path, "alice", callback, "a1")
        extractor.extract.assert_awaited_once_with(path, "a1")
        publisher.publish.assert_awaited_once_with(b"jpeg", "clip.mp4", "alice", "a1")
