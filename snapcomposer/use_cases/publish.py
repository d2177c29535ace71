"""Use case: write an assembled post to the ledger."""
from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import PublishFailure, describe_exception
from ..models import ComposerConfig, NewComment, PostRecord, PublishResult
from ..protocols import ILedger, Operation
from ..utils.events import EventEmitter, Outcome

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def make_permlink(moment: datetime, unique: bool = False) -> str:
    """
    Permlink from a UTC timestamp at millisecond resolution.

    ``2024-05-01T12:30:45.123Z`` -> ``20240501t123045123z``. Two submissions
    in the same millisecond collide unless ``unique`` adds a random suffix;
    two submissions in the same second but different milliseconds do not.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    stamp = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    permlink = _NON_ALNUM.sub("", stamp).lower()
    if unique:
        permlink = f"{permlink}{secrets.token_hex(2)}"
    return permlink


class PublishCoordinator:
    """
    Chooses the ledger write shape and submits it.

    Posts carrying a video are monetized: the content operation is paired
    with an options operation that routes a fixed reward share to the
    platform account.
    """

    def __init__(self, ledger: ILedger, config: Optional[ComposerConfig] = None,
                 events: Optional[EventEmitter] = None):
        self._ledger = ledger
        self._config = config or ComposerConfig()
        self._events = events or EventEmitter()

    def content_operation(self, record: PostRecord) -> Operation:
        return (
            "comment",
            {
                "parent_author": record.parent_author,
                "parent_permlink": record.parent_permlink,
                "author": record.author,
                "permlink": record.permlink,
                "title": record.title,
                "body": record.body,
                "json_metadata": record.json_metadata,
            },
        )

    def options_operation(self, record: PostRecord) -> Operation:
        beneficiaries: List[Dict[str, Any]] = [
            {"account": self._config.beneficiary_account, "weight": self._config.beneficiary_weight}
        ]
        return (
            "comment_options",
            {
                "author": record.author,
                "permlink": record.permlink,
                "max_accepted_payout": self._config.max_accepted_payout,
                "percent_hbd": self._config.percent_hbd,
                "allow_votes": True,
                "allow_curation_rewards": True,
                "extensions": [[0, {"beneficiaries": beneficiaries}]],
            },
        )

    def build_operations(self, record: PostRecord) -> List[Operation]:
        operations = [self.content_operation(record)]
        if record.video_embed:
            operations.append(self.options_operation(record))
        return operations

    async def publish(self, record: PostRecord) -> PublishResult:
        operations = self.build_operations(record)
        logger.info(
            f"[publish] @{record.author}/{record.permlink}: {len(operations)} operation(s)"
        )
        await self._events.publish(record.permlink, "publish", Outcome.STARTED, f"{len(operations)} ops")

        try:
            response = await self._ledger.broadcast(operations)
        except Exception as e:
            error = PublishFailure(f"broadcast raised: {describe_exception(e)}")
        else:
            if response.success:
                logger.info(f"[publish] published @{record.author}/{record.permlink}")
                await self._events.publish(record.permlink, "publish", Outcome.SUCCEEDED, response.tx_id)
                comment = NewComment(author=record.author, permlink=record.permlink, body=record.body)
                return PublishResult.ok(comment, operations)
            error = PublishFailure(f"ledger rejected: {response.error or 'no reason given'}")

        logger.error(f"[publish] @{record.author}/{record.permlink} failed: {error}")
        await self._events.publish(record.permlink, "publish", Outcome.FAILED, str(error))
        return PublishResult.fail(record.permlink, str(error), error.user_message, operations)
