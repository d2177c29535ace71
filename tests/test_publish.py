"""Tests for ledger publishing."""
import json
import re
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from snapcomposer.models import LedgerResponse, PostRecord
from snapcomposer.use_cases.publish import PublishCoordinator, make_permlink

EMBED = "https://play.3speak.tv/watch?v=alice/i2znmy5h"


def _record(video_embed=None):
    return PostRecord(
        author="alice",
        permlink="20240501t123045123z",
        parent_author="",
        parent_permlink="snap-container-42",
        body="hello",
        tags=("hive-178315", "snaps"),
        video_embed=video_embed,
    )


@pytest.fixture
def ledger():
    ledger = MagicMock()
    ledger.broadcast = AsyncMock(return_value=LedgerResponse(success=True, tx_id="abc"))
    return ledger


class TestMakePermlink:
    def test_format(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
        assert make_permlink(moment) == "20240501t123045123z"

    def test_lowercase_alphanumeric(self):
        permlink = make_permlink(datetime.now(timezone.utc))
        assert re.fullmatch(r"[a-z0-9]+", permlink)

    def test_distinct_millisecond_timestamps_differ(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        assert make_permlink(moment) != make_permlink(moment + timedelta(milliseconds=1))

    def test_same_millisecond_collides(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        assert make_permlink(moment) == make_permlink(moment + timedelta(microseconds=400))

    def test_naive_datetime_treated_as_utc(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123000)
        assert make_permlink(moment) == "20240501t123045123z"

    def test_unique_suffix(self):
        moment = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        permlink = make_permlink(moment, unique=True)
        assert permlink.startswith("20240501t123045123z")
        assert len(permlink) == len("20240501t123045123z") + 4


class TestPublishCoordinator:
    """Test operation shape and ledger outcomes."""

    def test_plain_post_is_one_operation(self, ledger):
        operations = PublishCoordinator(ledger).build_operations(_record())

        assert len(operations) == 1
        name, payload = operations[0]
        assert name == "comment"
        assert payload["author"] == "alice"
        assert payload["parent_permlink"] == "snap-container-42"
        assert payload["title"] == ""
        assert json.loads(payload["json_metadata"])["tags"] == ["hive-178315", "snaps"]

    def test_video_post_adds_beneficiary(self, ledger):
        operations = PublishCoordinator(ledger).build_operations(_record(EMBED))

        assert [name for name, _ in operations] == ["comment", "comment_options"]
        options = operations[1][1]
        assert options["permlink"] == operations[0][1]["permlink"]
        assert options["max_accepted_payout"] == "1000000.000 HBD"
        assert options["percent_hbd"] == 10000
        assert options["extensions"] == [
            [0, {"beneficiaries": [{"account": "snapie", "weight": 1000}]}]
        ]

    @pytest.mark.asyncio
    async def test_publish_success(self, ledger, events, recorded):
        result = await PublishCoordinator(ledger, events=events).publish(_record(EMBED))

        assert result.success is True
        assert result.comment.permlink == "20240501t123045123z"
        assert result.comment.body == "hello"
        assert len(result.operations) == 2
        ledger.broadcast.assert_awaited_once()
        assert [(e.phase, e.outcome) for e in recorded] == [
            ("publish", "started"),
            ("publish", "succeeded"),
        ]

    @pytest.mark.asyncio
    async def test_ledger_rejection(self, ledger):
        ledger.broadcast.return_value = LedgerResponse(success=False, error="missing posting authority")

        result = await PublishCoordinator(ledger).publish(_record())

        assert result.success is False
        assert "missing posting authority" in result.error
        assert result.user_message == "Failed to post. Please try again."

    @pytest.mark.asyncio
    async def test_ledger_exception(self, ledger):
        ledger.broadcast.side_effect = RuntimeError("keychain closed")

        result = await PublishCoordinator(ledger).publish(_record())

        assert result.success is False
        assert "keychain closed" in result.error
        assert result.comment is None
