"""
EVM RPC Client

Thin async adapter over web3.py for EVM-family chains:
- Chain head by block tag (latest, safe, finalized)
- Blocks with full transactions
- Logs for a set of addresses over a block range
- Transactions and receipts
"""

from typing import Any, Dict, Iterable, List, Optional

from aiohttp import ClientTimeout
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.middleware import ExtraDataToPOAMiddleware
from loguru import logger


def to_hex(value: Any) -> str:
    """Normalize HexBytes/bytes/str to a lowercase 0x-prefixed string"""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value).lower()
    return text if text.startswith("0x") else "0x" + text


class EvmRpcClient:
    """
    Web3 client bound to one chain endpoint.

    Example:
        ```python
        rpc = EvmRpcClient("https://rpc.ankr.com/eth")
        head = await rpc.get_block_number("finalized")
        logs = await rpc.get_logs(head - 10, head, ["0x3ee1..."])
        ```
    """

    def __init__(self, url: str, request_timeout: int = 30):
        self.url = url
        provider = AsyncHTTPProvider(url, request_kwargs={'timeout': ClientTimeout(total=request_timeout)})
        self.w3 = AsyncWeb3(provider)

        # Some chains (BSC, Polygon, Celo) put extra data in block headers
        self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    async def get_block_number(self, block_tag: str = "latest") -> int:
        if block_tag == "latest":
            return await self.w3.eth.block_number
        block = await self.w3.eth.get_block(block_tag)
        return block['number']

    async def get_block(self, block_number: int, full_transactions: bool = True) -> Dict[str, Any]:
        return await self.w3.eth.get_block(block_number, full_transactions=full_transactions)

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        addresses: Iterable[str],
        topics: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        filter_params: Dict[str, Any] = {
            'fromBlock': from_block,
            'toBlock': to_block,
            'address': [AsyncWeb3.to_checksum_address(a) for a in addresses],
        }
        if topics:
            filter_params['topics'] = topics
        return await self.w3.eth.get_logs(filter_params)

    async def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return await self.w3.eth.get_transaction(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any]:
        return await self.w3.eth.get_transaction_receipt(tx_hash)

    async def close(self):
        """Close connections and cleanup"""
        if hasattr(self.w3.provider, 'disconnect'):
            await self.w3.provider.disconnect()
        logger.debug(f"EvmRpcClient closed ({self.url})")
