"""
Checkpoint Store Contract

Durable per-chain cursor, the emitted event feed, and the dedup index
that keeps persistence idempotent.

Ordering contract with watchers: `advance_cursor` for a block range is only
called after `persist_events` for that range has returned.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence

from contract_watcher.models.events import Cursor, NormalizedEvent


class CheckpointStore(ABC):
    """
    All operations are atomic per call and scoped to one chain, so watchers
    share a store without any external locking.
    """

    @abstractmethod
    async def get_cursor(self, chain_id: int) -> Optional[int]:
        """Last processed height for `chain_id`, or None on first run"""

    @abstractmethod
    async def advance_cursor(self, chain_id: int, height: int) -> None:
        """
        Move the cursor forward to `height`.

        Equal height is a no-op.

        Raises:
            StoreInconsistency: If `height` is lower than the stored cursor
        """

    @abstractmethod
    async def persist_events(self, events: Sequence[NormalizedEvent]) -> int:
        """
        Insert events whose dedup key is not present yet.

        Returns:
            Number of genuinely new events
        """

    @abstractmethod
    async def prune_dedup_keys(self, older_than: datetime) -> int:
        """
        Forget dedup keys observed before `older_than`.

        Stored events are kept; only their keys leave the index.

        Returns:
            Number of keys removed
        """

    @abstractmethod
    async def list_events(self, chain_id: Optional[int] = None, limit: Optional[int] = None) -> List[NormalizedEvent]:
        """Stored events in insertion order, optionally for one chain"""

    @abstractmethod
    async def list_cursors(self) -> List[Cursor]:
        """All stored cursors"""

    async def init_schema(self) -> None:
        """Create backing structures if needed"""

    async def close(self) -> None:
        """Release connections"""
