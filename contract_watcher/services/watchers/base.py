"""
Chain Watcher Base

One long-lived polling loop per configured chain.

Cycle:
1. Read the cursor (or the configured initial block on first run)
2. Compute the next range [cursor + 1, min(cursor + size_blocks, head)]
3. Fetch and filter chain activity through the rate-limited client
4. Normalize matches into NormalizedEvent records
5. Persist events, then advance the cursor (one unit, never interrupted)
6. Sleep for the poll interval, then repeat
"""

import asyncio
import enum
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.core.errors import (
    PermanentFailure, ShutdownRequested, StoreUnavailable, TransientFailure
)
from contract_watcher.core.logging import chain_logger
from contract_watcher.core.metrics import Metrics
from contract_watcher.models.events import NormalizedEvent, utcnow
from contract_watcher.models.watcher import ChainFamily, WatcherConfig
from contract_watcher.services.checkpoint.base import CheckpointStore
from contract_watcher.services.rpc.rate_limit import RateLimitedClient


class CycleOutcome(str, enum.Enum):
    IDLE = "idle"              # head did not move past the cursor
    CAUGHT_UP = "caught_up"    # committed a range ending at the head
    BEHIND = "behind"          # committed a range, more blocks pending
    FAILED = "failed"          # fetch failed, cursor untouched


class ChainWatcher(ABC):
    """
    Common polling loop; subclasses supply the chain head and range fetch.

    Example:
        ```python
        watcher = EvmWatcher(client, store, config, metrics, token)
        task = asyncio.create_task(watcher.run())
        ...
        token.cancel()
        await task
        ```
    """

    family: ChainFamily

    def __init__(
        self,
        client: RateLimitedClient,
        store: CheckpointStore,
        config: WatcherConfig,
        metrics: Optional[Metrics] = None,
        token: Optional[CancellationToken] = None
    ):
        self.client = client
        self.store = store
        self.config = config
        self.metrics = metrics or Metrics()
        self.token = token or client.token
        self.log = chain_logger(config.name)

        # Statistics
        self.total_cycles: int = 0
        self.total_failed_cycles: int = 0
        self.total_events_persisted: int = 0
        self.last_height: Optional[int] = None
        self.last_head: Optional[int] = None
        self.started_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def chain_id(self) -> int:
        return self.config.chain_id

    @abstractmethod
    async def get_chain_head(self) -> int:
        """Highest height this watcher may process"""

    @abstractmethod
    async def fetch_events(self, from_height: int, to_height: int) -> List[NormalizedEvent]:
        """Matched events for the inclusive range, in chain order"""

    def methods_for(self, address: str):
        """Monitored method set for `address`, None if the address is not monitored"""
        return self.config.methods_by_address.get(address)

    def matches(self, address: str, method: Optional[str]) -> bool:
        methods = self.methods_for(address)
        if methods is None:
            return False
        return not methods or method in methods

    def new_event(
        self,
        emitter_address: str,
        block_height: int,
        tx_hash: str,
        sequence_or_index: int,
        payload: Dict[str, Any]
    ) -> NormalizedEvent:
        return NormalizedEvent(
            chain_id=self.chain_id,
            emitter_address=emitter_address,
            block_height=block_height,
            tx_hash=tx_hash,
            sequence_or_index=sequence_or_index,
            payload=payload,
        )

    async def run(self):
        """
        Poll until the cancellation token fires.

        StoreInconsistency and unexpected errors propagate to the caller;
        RPC failures and an unreachable store only skip the current cycle.
        """
        self.started_at = utcnow()
        self.log.info(
            f"Starting {self.family.value} watcher for {self.name} "
            f"(chain {self.chain_id}, {len(self.config.addresses)} addresses)"
        )

        try:
            while not self.token.cancelled:
                await self.poll_once()
                if await self.token.sleep(self.config.wait_seconds):
                    break
        except ShutdownRequested:
            self.log.info("shutdown requested mid-cycle")

        self.log.info(f"Watcher stopped at height {self.last_height}")

    async def poll_once(self) -> CycleOutcome:
        """Run one polling cycle"""
        self.total_cycles += 1

        try:
            cursor = await self.store.get_cursor(self.chain_id)
        except StoreUnavailable as e:
            return self._store_failed(e)

        height = cursor if cursor is not None else self.config.initial_block
        self.last_height = height

        try:
            head = await self.get_chain_head()
            self.last_head = head

            if head <= height:
                self.log.debug(f"no new blocks (head {head}, cursor {height})")
                return CycleOutcome.IDLE

            to_height = min(height + self.config.size_blocks, head)
            events = await self.fetch_events(height + 1, to_height)

        except TransientFailure as e:
            self.total_failed_cycles += 1
            self.metrics.cycle_failed(self.name, "transient")
            self.log.warning(f"range after {height} not fetched, retrying next cycle: {e}")
            return CycleOutcome.FAILED

        except PermanentFailure as e:
            self.total_failed_cycles += 1
            self.metrics.cycle_failed(self.name, "permanent")
            self.log.error(f"cycle skipped after permanent failure: {e}")
            return CycleOutcome.FAILED

        try:
            await self._commit(events, to_height)
        except StoreUnavailable as e:
            return self._store_failed(e)

        return CycleOutcome.CAUGHT_UP if to_height >= head else CycleOutcome.BEHIND

    def _store_failed(self, error: StoreUnavailable) -> CycleOutcome:
        """Cursor stays where it is; the same range is read again next cycle"""
        self.total_failed_cycles += 1
        self.metrics.cycle_failed(self.name, "store")
        self.log.warning(f"checkpoint store unavailable, retrying next cycle: {error}")
        return CycleOutcome.FAILED

    async def _commit(self, events: Sequence[NormalizedEvent], height: int):
        """Persist then advance; a cancellation waits for the unit to finish"""
        commit = asyncio.ensure_future(self._persist_and_advance(events, height))
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            await commit
            raise

    async def _persist_and_advance(self, events: Sequence[NormalizedEvent], height: int):
        inserted = await self.store.persist_events(events) if events else 0
        await self.store.advance_cursor(self.chain_id, height)

        self.last_height = height
        self.total_events_persisted += inserted
        self.metrics.events_ingested(self.name, inserted, len(events) - inserted)
        self.metrics.cursor_height(self.name, height)

        if events:
            self.log.info(
                f"{inserted} new events ({len(events) - inserted} duplicates), "
                f"cursor -> {height}"
            )
        else:
            self.log.debug(f"cursor -> {height}")

    def get_status(self) -> Dict[str, Any]:
        """Get watcher status"""
        return {
            'name': self.name,
            'chain_id': self.chain_id,
            'family': self.family.value,
            'last_height': self.last_height,
            'last_head': self.last_head,
            'total_cycles': self.total_cycles,
            'total_failed_cycles': self.total_failed_cycles,
            'total_events_persisted': self.total_events_persisted,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'rpc': self.client.get_status(),
        }
