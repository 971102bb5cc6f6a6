"""
Network reachability.

The sync coordinator asks a ReachabilityOracle before touching the network
so an offline device leaves its snapshot alone instead of recording a
failed fetch.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from studypilot.core.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class ReachabilityOracle(Protocol):
    async def is_connected(self) -> bool:
        """Return True if the network is currently reachable."""
        ...


class HttpReachabilityOracle:
    """
    Reachability check by HEAD request.

    Any HTTP response counts as connected; transport errors and timeouts
    count as offline.
    """

    def __init__(
        self,
        check_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.check_url = check_url or settings.CONNECTIVITY_CHECK_URL
        self.timeout = timeout if timeout is not None else settings.CONNECTIVITY_TIMEOUT_SECONDS
        self._client = client

    async def is_connected(self) -> bool:
        try:
            if self._client is not None:
                await self._client.head(self.check_url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await client.head(self.check_url)
        except httpx.HTTPError as e:
            logger.info(f"Connectivity check failed: {e.__class__.__name__}: {e}")
            return False
        return True
