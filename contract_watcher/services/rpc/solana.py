"""
Solana RPC Client

Async adapter over solana-py returning plain dicts so watchers never depend
on solders response types.
"""

import json
from typing import Any, Dict, List, Optional

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.pubkey import Pubkey
from solders.signature import Signature


class SolanaRpcClient:
    """
    Example:
        ```python
        rpc = SolanaRpcClient("https://api.mainnet-beta.solana.com")
        slot = await rpc.get_slot()
        page = await rpc.get_signatures_for_address(program_id, limit=100)
        tx = await rpc.get_transaction(page[0]['signature'])
        ```
    """

    def __init__(self, url: str, request_timeout: int = 30):
        self.url = url
        self.client = AsyncClient(url, commitment=Finalized, timeout=request_timeout)

    async def get_slot(self) -> int:
        resp = await self.client.get_slot(commitment=Finalized)
        return resp.value

    async def get_signatures_for_address(
        self,
        address: str,
        before: Optional[str] = None,
        until: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Signatures touching `address`, newest first, strictly between `until` and `before`"""
        resp = await self.client.get_signatures_for_address(
            Pubkey.from_string(address),
            before=Signature.from_string(before) if before else None,
            until=Signature.from_string(until) if until else None,
            limit=limit,
            commitment=Finalized,
        )
        return [
            {
                'signature': str(item.signature),
                'slot': item.slot,
                'err': None if item.err is None else str(item.err),
                'block_time': item.block_time,
            }
            for item in resp.value
        ]

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """JSON-encoded transaction with status meta, or None if unknown"""
        resp = await self.client.get_transaction(
            Signature.from_string(signature),
            encoding="json",
            commitment=Finalized,
            max_supported_transaction_version=0,
        )
        if resp.value is None:
            return None
        return json.loads(resp.to_json()).get('result')

    async def close(self):
        await self.client.close()
        logger.debug(f"SolanaRpcClient closed ({self.url})")
