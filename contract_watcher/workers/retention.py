"""
Dedup Retention Worker

Periodically forgets dedup keys older than the retention window so the
index stays bounded. Stored events are untouched. Cursors are monotonic, so
after a restart at most one window is re-observed; any retention well above
a poll cycle keeps persistence idempotent.
"""

import asyncio
from datetime import timedelta
from typing import Any, Dict, Optional

from loguru import logger

from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.models.events import utcnow
from contract_watcher.services.checkpoint.base import CheckpointStore


class DedupRetentionWorker:
    """
    Example:
        ```python
        worker = DedupRetentionWorker(store, token, retention_hours=720, interval=3600)
        task = asyncio.create_task(worker.run())
        ```
    """

    def __init__(
        self,
        store: CheckpointStore,
        token: CancellationToken,
        retention_hours: int = 720,
        interval: float = 3600
    ):
        self.store = store
        self.token = token
        self.retention = timedelta(hours=retention_hours) if retention_hours > 0 else None
        self.interval = interval

        # Statistics
        self.total_runs: int = 0
        self.total_pruned: int = 0

    @property
    def enabled(self) -> bool:
        return self.retention is not None

    async def prune_once(self) -> int:
        """Remove keys older than the retention window"""
        if not self.enabled:
            return 0

        cutoff = utcnow() - self.retention
        removed = await self.store.prune_dedup_keys(cutoff)

        self.total_runs += 1
        self.total_pruned += removed
        if removed:
            logger.info(f"Pruned {removed} dedup keys observed before {cutoff.isoformat()}")
        return removed

    async def run(self):
        """Prune every `interval` seconds until the token fires"""
        if not self.enabled:
            logger.info("Dedup retention disabled, keys are kept forever")
            return

        logger.info(f"Dedup retention worker started (window {self.retention}, every {self.interval}s)")

        while not self.token.cancelled:
            try:
                await self.prune_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Dedup pruning failed: {e}")

            if await self.token.sleep(self.interval):
                break

        logger.info("Dedup retention worker stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'retention_hours': self.retention.total_seconds() / 3600 if self.retention else None,
            'total_runs': self.total_runs,
            'total_pruned': self.total_pruned,
        }
