"""
Shared fixtures and in-memory chain fakes.

The fakes mimic the return shapes of the RPC adapters in
contract_watcher.services.rpc so watchers run unmodified against them.
"""

from typing import Any, Dict, List, Optional

import pytest

from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.services.builder import WatcherFactory
from contract_watcher.services.checkpoint import MemoryCheckpointStore
from contract_watcher.services.rpc import RetryPolicy

# Wormhole token bridge on Ethereum
ETH_BRIDGE = "0x3ee18B2214AFF97000D974cf647E7C347E8fa585"
OTHER_CONTRACT = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1"
COMPLETE_TRANSFER = "0xc6878519"


class FakeEvmRpc:
    """EVM chain with a fixed head, logs, transactions and blocks"""

    def __init__(
        self,
        head: int,
        logs: Optional[List[Dict[str, Any]]] = None,
        transactions: Optional[Dict[str, Dict[str, Any]]] = None,
        blocks: Optional[Dict[int, Dict[str, Any]]] = None,
        receipts: Optional[Dict[str, Dict[str, Any]]] = None
    ):
        self.head = head
        self.logs = logs or []
        self.transactions = transactions or {}
        self.blocks = blocks or {}
        self.receipts = receipts or {}

        self.log_queries: List[tuple] = []
        self.head_tags: List[str] = []
        self.closed = False

    async def get_block_number(self, block_tag: str = "latest") -> int:
        self.head_tags.append(block_tag)
        return self.head

    async def get_logs(self, from_block, to_block, addresses, topics=None):
        self.log_queries.append((from_block, to_block))
        wanted = {a.lower() for a in addresses}
        return [
            log for log in self.logs
            if from_block <= log['blockNumber'] <= to_block and log['address'].lower() in wanted
        ]

    async def get_transaction(self, tx_hash: str):
        return self.transactions[tx_hash]

    async def get_block(self, number: int, full_transactions: bool = True):
        return self.blocks.get(number, {'number': number, 'timestamp': 1700000000, 'transactions': []})

    async def get_transaction_receipt(self, tx_hash: str):
        return self.receipts.get(tx_hash, {'status': 1})

    async def close(self):
        self.closed = True


def evm_log(block: int, index: int, tx_hash: str, address: str = ETH_BRIDGE) -> Dict[str, Any]:
    return {
        'address': address,
        'blockNumber': block,
        'logIndex': index,
        'transactionHash': tx_hash,
        'blockHash': f"0x{block:064x}",
        'topics': ["0x" + "ab" * 32],
        'data': "0x",
    }


def tx_hash_for(block: int, n: int = 0) -> str:
    return f"0x{block:060x}{n:04x}"


class FakeSolanaRpc:
    """Solana program history: signatures newest first plus transactions"""

    def __init__(self, slot: int, signatures: List[Dict[str, Any]], transactions: Dict[str, Any]):
        self.slot = slot
        self.signatures = signatures
        self.transactions = transactions
        self.pages = 0

    async def get_slot(self) -> int:
        return self.slot

    async def get_signatures_for_address(self, address, before=None, until=None, limit=100):
        self.pages += 1
        items = self.signatures
        names = [s['signature'] for s in items]
        if until is not None and until in names:
            items = items[:names.index(until)]
        if before is not None:
            position = [s['signature'] for s in items].index(before)
            items = items[position + 1:]
        return items[:limit]

    async def get_transaction(self, signature):
        return self.transactions.get(signature)


class FakeTerraRpc:
    """FCD transaction index: pages of txs newest first with a `next` offset"""

    def __init__(self, height: int, pages: List[Dict[str, Any]]):
        self.height = height
        self.pages = pages
        self.offsets: List[Optional[int]] = []

    async def get_latest_height(self) -> int:
        return self.height

    async def get_transactions(self, address, offset=None, limit=100):
        self.offsets.append(offset)
        if offset is None:
            return self.pages[0]
        for page in self.pages:
            if page.get('offset') == offset:
                return page
        return {'txs': [], 'next': None}


class FakeAptosRpc:
    def __init__(self, height: int, blocks: Dict[int, Dict[str, Any]]):
        self.height = height
        self.blocks = blocks
        self.fetched: List[int] = []

    async def get_block_height(self) -> int:
        return self.height

    async def get_block_by_height(self, height: int, with_transactions: bool = True):
        self.fetched.append(height)
        return self.blocks.get(height, {'block_height': str(height), 'transactions': []})


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def store():
    return MemoryCheckpointStore()


@pytest.fixture
def fast_retry():
    """Three attempts, 10ms apart"""
    return RetryPolicy(attempts=3, delay=0.01)


@pytest.fixture
def build_watcher(store, token, fast_retry):
    """Build a watcher through the factory around a fake RPC client"""

    def _build(config, rpc):
        factory = WatcherFactory(store, token, retry_policy=fast_retry, rpc_factory=lambda _: rpc)
        return factory.create(config).watcher

    return _build
