"""
Aptos RPC Client

httpx client for the Aptos node REST API (v1).
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger


class AptosRpcClient:
    """
    Example:
        ```python
        rpc = AptosRpcClient("https://fullnode.mainnet.aptoslabs.com")
        head = await rpc.get_block_height()
        block = await rpc.get_block_by_height(head)
        ```
    """

    def __init__(self, url: str, request_timeout: int = 30, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self.client = client or httpx.AsyncClient(base_url=self.url, timeout=request_timeout)

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def get_block_height(self) -> int:
        ledger = await self._get("/v1")
        return int(ledger['block_height'])

    async def get_block_by_height(self, height: int, with_transactions: bool = True) -> Dict[str, Any]:
        return await self._get(
            f"/v1/blocks/by_height/{height}",
            params={'with_transactions': str(with_transactions).lower()},
        )

    async def close(self):
        await self.client.aclose()
        logger.debug(f"AptosRpcClient closed ({self.url})")
