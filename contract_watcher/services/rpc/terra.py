"""
Terra RPC Client

httpx client for the Terra FCD (which also proxies the LCD block endpoints).
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger


class TerraRpcClient:
    """
    Example:
        ```python
        rpc = TerraRpcClient("https://fcd.terra.dev")
        head = await rpc.get_latest_height()
        page = await rpc.get_transactions("terra10nmm...", offset=None, limit=100)
        ```
    """

    def __init__(self, url: str, request_timeout: int = 30, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.url, timeout=request_timeout)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = await self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def get_latest_height(self) -> int:
        data = await self._get("/blocks/latest")
        return int(data['block']['header']['height'])

    async def get_transactions(
        self,
        address: str,
        offset: Optional[int] = None,
        limit: int = 100
    ) -> Dict[str, Any]:
        """
        One page of transactions touching `address`, newest first.

        Returns:
            {'txs': [...], 'next': offset of the following page or None}
        """
        params: Dict[str, Any] = {'account': address, 'limit': limit}
        if offset:
            params['offset'] = offset
        data = await self._get("/v1/txs", params=params)
        return {'txs': data.get('txs') or [], 'next': data.get('next')}

    async def close(self):
        await self.client.aclose()
        logger.debug(f"TerraRpcClient closed ({self.url})")
