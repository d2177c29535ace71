"""
Container lookup - resolves the current container post for top-level snaps.

Snaps are replies to the latest post of a container account; that post's
permlink is read from the ledger's RPC node.
"""
import logging

from ..errors import ContainerLookupError
from .api_client import HTTPAPIClient

logger = logging.getLogger(__name__)


class SnapsContainerLookup:
    """Reads ``bridge.get_account_posts`` for the container account."""

    def __init__(self, api: HTTPAPIClient, account: str = "peak.snaps"):
        self._api = api
        self._account = account

    def build_request(self) -> dict:
        return {
            "jsonrpc": "2.0",
            "method": "bridge.get_account_posts",
            "params": {"sort": "posts", "account": self._account, "limit": 1},
            "id": 1,
        }

    async def latest_permlink(self) -> str:
        response = await self._api.post("", json=self.build_request())
        payload = response.json()
        if payload.get("error"):
            raise ContainerLookupError(f"RPC error: {payload['error']}")

        posts = payload.get("result") or []
        if not posts or not posts[0].get("permlink"):
            raise ContainerLookupError(f"no container post for @{self._account}")

        permlink = posts[0]["permlink"]
        logger.debug(f"[container] latest @{self._account} container: {permlink}")
        return permlink
