"""
EVM Watchers

Two strategies for EVM-compatible chains:
- EvmWatcher: log-based, one eth_getLogs call per range for every monitored
  address, with an optional method-selector check on the emitting transaction
- EvmStandardWatcher: block-scan, walks every block in the range with full
  transactions and matches on the `to` address and method selector
"""

from typing import Dict, List, Optional

from contract_watcher.models.events import NormalizedEvent
from contract_watcher.models.watcher import ChainFamily
from contract_watcher.services.rpc.evm import to_hex
from contract_watcher.services.watchers.base import ChainWatcher


def method_selector(data) -> str:
    """First four bytes of calldata as a lowercase 0x-prefixed string"""
    hex_data = to_hex(data) or "0x"
    return hex_data[:10]


class EvmWatcher(ChainWatcher):
    """
    Log-based watcher.

    Events are keyed by (chain, emitting contract, tx hash, log index).
    """

    family = ChainFamily.EVM

    async def get_chain_head(self) -> int:
        return await self.client.call("get_block_number")

    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        logs = await self.client.call(
            "get_logs", from_height, to_height, sorted(self.config.addresses)
        )

        selectors: Dict[str, str] = {}
        events: List[NormalizedEvent] = []

        for log in sorted(logs, key=lambda item: (item['blockNumber'], item['logIndex'])):
            if log.get('removed'):
                continue

            address = to_hex(log['address'])
            methods = self.methods_for(address)
            if methods is None:
                continue

            tx_hash = to_hex(log['transactionHash'])
            method: Optional[str] = None
            if methods:
                if tx_hash not in selectors:
                    tx = await self.client.call("get_transaction", tx_hash)
                    selectors[tx_hash] = method_selector(tx.get('input'))
                method = selectors[tx_hash]
                if method not in methods:
                    continue

            events.append(self.new_event(
                emitter_address=address,
                block_height=log['blockNumber'],
                tx_hash=tx_hash,
                sequence_or_index=log['logIndex'],
                payload={
                    'method': method,
                    'block_hash': to_hex(log.get('blockHash')),
                    'topics': [to_hex(topic) for topic in log.get('topics', [])],
                    'data': to_hex(log.get('data')),
                },
            ))

        return events


class EvmStandardWatcher(ChainWatcher):
    """
    Block-scan watcher for chains where log filtering is unreliable.

    The head is read at the configured block tag (e.g. "finalized"), and
    every transaction to a monitored address is checked against its
    method set. Events are keyed by transaction index.
    """

    family = ChainFamily.EVM_STANDARD

    async def get_chain_head(self) -> int:
        return await self.client.call("get_block_number", self.config.block_tag)

    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []

        for number in range(from_height, to_height + 1):
            block = await self.client.call("get_block", number, full_transactions=True)

            for tx in block.get('transactions', []):
                if not tx.get('to'):
                    continue  # contract creation

                address = to_hex(tx['to'])
                method = method_selector(tx.get('input'))
                if not self.matches(address, method):
                    continue

                tx_hash = to_hex(tx['hash'])
                receipt = await self.client.call("get_transaction_receipt", tx_hash)

                events.append(self.new_event(
                    emitter_address=address,
                    block_height=number,
                    tx_hash=tx_hash,
                    sequence_or_index=tx['transactionIndex'],
                    payload={
                        'method': method,
                        'from': to_hex(tx.get('from')),
                        'status': 'succeeded' if receipt.get('status') == 1 else 'failed',
                        'block_timestamp': block.get('timestamp'),
                        'input': to_hex(tx.get('input')),
                    },
                ))

        return events
