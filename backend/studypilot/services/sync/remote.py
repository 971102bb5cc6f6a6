"""
Remote delta source.

Fetches everything that changed on the server since a given sync
timestamp. The response body has the SyncableContent wire shape.
"""

import logging
from typing import Dict, Optional, Protocol, runtime_checkable

import httpx

from studypilot.core.config import settings
from studypilot.schemas.sync import SyncableContent

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteDeltaSource(Protocol):
    async def fetch_since(self, timestamp: int) -> SyncableContent:
        """Return all content updated after ``timestamp`` (epoch ms)."""
        ...


class HttpDeltaSource:
    """
    RemoteDeltaSource over HTTP.

    POSTs ``{"lastSync": timestamp}`` to ``{base_url}/api/sync`` with a
    bearer token. Non-2xx responses and malformed bodies raise; the
    coordinator turns any exception into a failed SyncResult.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.SYNC_API_URL).rstrip("/")
        self.auth_token = auth_token if auth_token is not None else settings.SYNC_AUTH_TOKEN
        self.timeout = timeout if timeout is not None else settings.SYNC_REQUEST_TIMEOUT_SECONDS
        self._client = client

    @property
    def sync_url(self) -> str:
        return f"{self.base_url}/api/sync"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def fetch_since(self, timestamp: int) -> SyncableContent:
        payload = {"lastSync": timestamp}
        logger.debug(f"Fetching remote delta since {timestamp}")

        if self._client is not None:
            response = await self._client.post(
                self.sync_url, json=payload, headers=self._headers(), timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.sync_url, json=payload, headers=self._headers())

        response.raise_for_status()
        return SyncableContent.model_validate(response.json())
