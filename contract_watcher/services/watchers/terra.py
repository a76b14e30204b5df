"""
Terra Watcher

Height-ranged watcher over the FCD transaction index. Pages run newest
first: each cycle reads what is new since the last walk, then the window
itself from the nearest recorded `next` offset above it.
"""

import base64
import binascii
import json
from typing import Any, Dict, Iterator, List, Optional, Tuple

from contract_watcher.models.events import NormalizedEvent
from contract_watcher.models.watcher import ChainFamily
from contract_watcher.services.watchers.base import ChainWatcher
from contract_watcher.services.watchers.paging import PageAnchors


def execute_message(value: Any) -> Dict[str, Any]:
    """Decode an execute_msg that may arrive as an object or base64 JSON"""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(base64.b64decode(value))
        except (binascii.Error, ValueError):
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


class TerraWatcher(ChainWatcher):
    """
    Matches MsgExecuteContract messages addressed to a monitored contract;
    the method is the top-level key of the execute message (e.g. "submit_vaa").
    Events are keyed by message index.
    """

    family = ChainFamily.TERRA

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._anchors: Dict[str, PageAnchors] = {}

    async def get_chain_head(self) -> int:
        return await self.client.call("get_latest_height")

    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []

        for address in sorted(self.config.addresses):
            for tx in await self._transactions_in_range(address, from_height, to_height):
                events.extend(self._message_events(address, tx))

        return events

    async def _transactions_in_range(
        self,
        address: str,
        from_height: int,
        to_height: int
    ) -> List[Dict[str, Any]]:
        """In-range transactions for `address`, oldest first"""
        anchors = self._anchors.setdefault(address, PageAnchors())
        previous = anchors.newest

        found, newest = await self._page_transactions(
            address, from_height, to_height,
            until=previous[1] if previous else None,
            anchors=anchors,
        )
        if newest is not None:
            anchors.newest = (int(newest['height']), newest['txhash'])

        if previous is not None and previous[0] >= from_height:
            seen = {tx['txhash'] for tx in found}
            older, _ = await self._page_transactions(
                address, from_height, to_height, offset=anchors.start_above(to_height)
            )
            found.extend(tx for tx in older if tx['txhash'] not in seen)

        anchors.prune_below(from_height)
        found.reverse()
        return found

    async def _page_transactions(
        self,
        address: str,
        from_height: int,
        to_height: int,
        offset: Optional[int] = None,
        until: Optional[str] = None,
        anchors: Optional[PageAnchors] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """Page newest first from `offset` down to `from_height`, stopping at txhash `until`"""
        found: List[Dict[str, Any]] = []
        first = None

        while True:
            page = await self.client.call(
                "get_transactions", address, offset=offset, limit=self.config.page_size
            )
            txs = page['txs']

            # `next` resumes below the last transaction of the full page
            if anchors is not None and txs and page['next']:
                anchors.record(int(txs[-1]['height']), page['next'])

            hashes = [tx['txhash'] for tx in txs]
            reached = until is not None and until in hashes
            if reached:
                txs = txs[:hashes.index(until)]
            if not txs:
                break

            first = first or txs[0]
            found.extend(tx for tx in txs if from_height <= int(tx['height']) <= to_height)

            if reached or int(txs[-1]['height']) < from_height or not page['next']:
                break
            offset = page['next']

        return found, first

    def _message_events(self, address: str, tx: Dict[str, Any]) -> Iterator[NormalizedEvent]:
        messages = ((tx.get('tx') or {}).get('value') or {}).get('msg') or []

        for index, message in enumerate(messages):
            if not str(message.get('type', '')).endswith('MsgExecuteContract'):
                continue

            value = message.get('value') or {}
            if str(value.get('contract', '')).lower() != address:
                continue

            execute_msg = execute_message(value.get('execute_msg'))
            method = next(iter(execute_msg), "")
            if not method:
                self.log.debug(f"undecodable execute_msg in {tx.get('txhash')}")

            if not self.matches(address, method):
                continue

            yield self.new_event(
                emitter_address=address,
                block_height=int(tx['height']),
                tx_hash=tx['txhash'],
                sequence_or_index=index,
                payload={
                    'method': method,
                    'sender': value.get('sender'),
                    'status': 'failed' if tx.get('code') else 'succeeded',
                    'timestamp': tx.get('timestamp'),
                },
            )
