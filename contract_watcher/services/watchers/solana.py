"""
Solana Watcher

Slot-ranged watcher over program signatures.

For each monitored program:
1. Page getSignaturesForAddress newest first: new signatures down to the last
   walk, then the window itself from the nearest resume point above it
2. Fetch every in-range transaction, oldest first
3. Match top-level instructions whose program id is the monitored program;
   the method is the first byte of the instruction data
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

import base58

from contract_watcher.core.errors import TransientFailure
from contract_watcher.models.events import NormalizedEvent
from contract_watcher.models.watcher import ChainFamily
from contract_watcher.services.watchers.base import ChainWatcher
from contract_watcher.services.watchers.paging import PageAnchors


def instruction_method(data: str) -> str:
    """Discriminator byte of base58 instruction data, as a decimal string"""
    raw = base58.b58decode(data) if data else b""
    return str(raw[0]) if raw else ""


class SolanaWatcher(ChainWatcher):
    """
    Events are keyed by (chain, program id, signature, instruction index).
    """

    family = ChainFamily.SOLANA

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._anchors: Dict[str, PageAnchors] = {}

    async def get_chain_head(self) -> int:
        return await self.client.call("get_slot")

    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []

        for address in sorted(self.config.addresses):
            signatures = await self._signatures_in_range(address, from_height, to_height)

            for item in signatures:
                tx = await self.client.call("get_transaction", item['signature'])
                if tx is None:
                    raise TransientFailure(
                        f"transaction {item['signature']} not yet available",
                        chain=self.name,
                    )
                events.extend(self._instruction_events(address, item['signature'], tx))

        return events

    async def _signatures_in_range(
        self,
        address: str,
        from_slot: int,
        to_slot: int
    ) -> List[Dict[str, Any]]:
        """In-range signatures for `address`, oldest first"""
        anchors = self._anchors.setdefault(address, PageAnchors())
        previous = anchors.newest

        # Everything newer than the last walk, recording resume points
        found, newest = await self._page_signatures(
            address, from_slot, to_slot,
            until=previous[1] if previous else None,
            anchors=anchors,
        )
        if newest is not None:
            anchors.newest = (newest['slot'], newest['signature'])

        # Older part of the window, resumed just above it
        if previous is not None and previous[0] >= from_slot:
            seen = {item['signature'] for item in found}
            older, _ = await self._page_signatures(
                address, from_slot, to_slot, before=anchors.start_above(to_slot)
            )
            found.extend(item for item in older if item['signature'] not in seen)

        anchors.prune_below(from_slot)
        found.reverse()
        return found

    async def _page_signatures(
        self,
        address: str,
        from_slot: int,
        to_slot: int,
        before: Optional[str] = None,
        until: Optional[str] = None,
        anchors: Optional[PageAnchors] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Page newest first from `before` (or the tip) down to `from_slot`.

        Returns:
            (in-range signatures newest first, first signature seen)
        """
        found: List[Dict[str, Any]] = []
        first = None

        while True:
            page = await self.client.call(
                "get_signatures_for_address", address,
                before=before, until=until, limit=self.config.page_size,
            )
            if not page:
                break

            first = first or page[0]
            if anchors is not None:
                anchors.record(page[-1]['slot'], page[-1]['signature'])

            found.extend(item for item in page if from_slot <= item['slot'] <= to_slot)

            if page[-1]['slot'] < from_slot or len(page) < self.config.page_size:
                break
            before = page[-1]['signature']

        return found, first

    def _instruction_events(
        self,
        address: str,
        signature: str,
        tx: Dict[str, Any]
    ) -> Iterator[NormalizedEvent]:
        meta = tx.get('meta') or {}
        message = tx['transaction']['message']

        # v0 transactions append lookup-table accounts after the static keys
        account_keys = list(message['accountKeys'])
        loaded = meta.get('loadedAddresses') or {}
        account_keys += loaded.get('writable', []) + loaded.get('readonly', [])

        for index, instruction in enumerate(message['instructions']):
            if account_keys[instruction['programIdIndex']] != address:
                continue

            method = instruction_method(instruction.get('data', ''))
            if not self.matches(address, method):
                continue

            yield self.new_event(
                emitter_address=address,
                block_height=tx['slot'],
                tx_hash=signature,
                sequence_or_index=index,
                payload={
                    'method': method,
                    'accounts': [account_keys[i] for i in instruction.get('accounts', [])],
                    'status': 'failed' if meta.get('err') else 'succeeded',
                    'block_time': tx.get('blockTime'),
                },
            )
