"""
Keepalive delivery for batches when no beacon sender is available.
"""
import logging

import httpx

logger = logging.getLogger(__name__)


class KeepaliveTransport:
    """
    POSTs JSON batches over a persistent httpx client.

    The monitor runs each post as its own task, so delivery continues after
    the flush that started it has returned.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def post(self, url: str, payload: str) -> httpx.Response:
        response = await self._get_client().post(
            url,
            content=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return response

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
