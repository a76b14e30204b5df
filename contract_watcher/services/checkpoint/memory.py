"""In-process checkpoint store (tests, local runs)"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from loguru import logger

from contract_watcher.core.errors import StoreInconsistency
from contract_watcher.models.events import Cursor, DedupKey, NormalizedEvent
from contract_watcher.services.checkpoint.base import CheckpointStore


class MemoryCheckpointStore(CheckpointStore):
    """Dict-backed store; one lock serializes every call"""

    def __init__(self):
        self._cursors: Dict[int, int] = {}
        self._keys: Dict[DedupKey, datetime] = {}
        self._events: List[NormalizedEvent] = []
        self._lock = asyncio.Lock()

    async def get_cursor(self, chain_id: int) -> Optional[int]:
        async with self._lock:
            return self._cursors.get(chain_id)

    async def advance_cursor(self, chain_id: int, height: int) -> None:
        async with self._lock:
            current = self._cursors.get(chain_id)

            if current is not None and height < current:
                raise StoreInconsistency(
                    f"Cursor regression rejected: {current} -> {height}",
                    details={"chain_id": chain_id, "current": current, "requested": height}
                )

            if current == height:
                return

            self._cursors[chain_id] = height

    async def persist_events(self, events: Sequence[NormalizedEvent]) -> int:
        inserted = 0
        async with self._lock:
            for event in events:
                if event.dedup_key in self._keys:
                    continue
                self._keys[event.dedup_key] = event.observed_at
                self._events.append(event)
                inserted += 1
        return inserted

    async def prune_dedup_keys(self, older_than: datetime) -> int:
        async with self._lock:
            expired = [key for key, observed_at in self._keys.items() if observed_at < older_than]
            for key in expired:
                del self._keys[key]

        if expired:
            logger.debug(f"Pruned {len(expired)} dedup keys older than {older_than.isoformat()}")
        return len(expired)

    async def list_events(self, chain_id: Optional[int] = None, limit: Optional[int] = None) -> List[NormalizedEvent]:
        async with self._lock:
            events = self.events(chain_id)
        return events if limit is None else events[:limit]

    async def list_cursors(self) -> List[Cursor]:
        async with self._lock:
            return [Cursor(chain_id, height) for chain_id, height in sorted(self._cursors.items())]

    def events(self, chain_id: Optional[int] = None) -> List[NormalizedEvent]:
        """Stored events in insertion order"""
        return [
            event for event in self._events
            if chain_id is None or event.chain_id == chain_id
        ]

    def dedup_keys(self) -> List[DedupKey]:
        return list(self._keys)
