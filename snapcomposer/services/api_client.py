"""HTTP adapter for JSON API operations (embed API, ledger RPC node)."""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..errors import TransportError, UploadRejected


class HTTPAPIClient:
    """
    JSON client bound to one base URL on a shared ``httpx.AsyncClient``.

    Does not retry and sets no timeout of its own: calls wait on the
    underlying transport.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
    ):
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._headers = dict(headers or {})

    def url(self, endpoint: str) -> str:
        if not endpoint:
            return self._base_url
        return f"{self._base_url}/{endpoint.lstrip('/')}"

    async def post(self, endpoint: str, json: Dict, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        url = self.url(endpoint)
        merged = {**self._headers, **(headers or {})}
        try:
            response = await self._http.post(url, json=json, headers=merged)
        except httpx.TransportError as exc:
            raise TransportError(f"POST {url} failed: {exc}") from exc

        if not response.is_success:
            try:
                error_detail: Any = response.json()
            except ValueError:
                error_detail = response.text
            raise UploadRejected(response.status_code, str(error_detail), url=url)

        return response
