"""
Aptos Watcher

Walks blocks by height and matches user transactions whose entry function
lives at a monitored module address.
"""

from typing import List

from contract_watcher.models.events import NormalizedEvent
from contract_watcher.models.watcher import ChainFamily
from contract_watcher.services.watchers.base import ChainWatcher


def normalize_aptos_address(address: str) -> str:
    """Lowercase, 0x-prefixed, left-padded to 32 bytes"""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


class AptosWatcher(ChainWatcher):
    """
    Method names are "module::function"; events are keyed by the ledger
    version of the transaction.
    """

    family = ChainFamily.APTOS

    async def get_chain_head(self) -> int:
        return await self.client.call("get_block_height")

    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []

        for height in range(from_height, to_height + 1):
            block = await self.client.call("get_block_by_height", height)

            for tx in block.get('transactions') or []:
                if tx.get('type') != 'user_transaction':
                    continue

                function = (tx.get('payload') or {}).get('function') or ""
                parts = function.split("::")
                if len(parts) != 3:
                    continue

                address = normalize_aptos_address(parts[0])
                method = f"{parts[1]}::{parts[2]}"
                if not self.matches(address, method):
                    continue

                events.append(self.new_event(
                    emitter_address=address,
                    block_height=height,
                    tx_hash=tx['hash'],
                    sequence_or_index=int(tx['version']),
                    payload={
                        'method': method,
                        'sender': tx.get('sender'),
                        'status': 'succeeded' if tx.get('success') else 'failed',
                        'block_timestamp': block.get('block_timestamp'),
                    },
                ))

        return events
