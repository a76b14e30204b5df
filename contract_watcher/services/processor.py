"""
Watcher Processor

Runs every chain watcher as an independent asyncio task.

Features:
- Non-blocking start, one task per watcher
- Crash isolation: a failing watcher is logged, alerted and stopped alone
- Graceful close: fire the shared cancellation token, wait a grace period,
  cancel stragglers, then force-return
- Per-watcher lifecycle state (created, running, stopping, stopped)
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from contract_watcher.core.alerts import Alert, AlertClient, AlertPriority, AlertType, DummyAlertClient
from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.core.errors import StoreInconsistency
from contract_watcher.core.metrics import Metrics
from contract_watcher.models.watcher import WatcherState
from contract_watcher.services.watchers.base import ChainWatcher


class Processor:
    """
    Supervisor of the watcher tasks.

    Example:
        ```python
        processor = Processor(watchers, token, alerts=alerts, metrics=metrics)
        await processor.start()
        ...
        await processor.close()
        ```
    """

    def __init__(
        self,
        watchers: Sequence[ChainWatcher],
        token: CancellationToken,
        alerts: Optional[AlertClient] = None,
        metrics: Optional[Metrics] = None,
        grace_period: float = 10.0,
        force_timeout: float = 5.0
    ):
        self.watchers = list(watchers)
        self.token = token
        self.alerts = alerts or DummyAlertClient()
        self.metrics = metrics or Metrics()
        self.grace_period = grace_period
        self.force_timeout = force_timeout

        self._states: Dict[str, WatcherState] = {w.name: WatcherState.CREATED for w in self.watchers}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._closed = False
        self._abandoned: List[str] = []

        # Statistics
        self.crashes: Dict[str, str] = {}

    @property
    def states(self) -> Dict[str, WatcherState]:
        return dict(self._states)

    async def start(self):
        """Launch every watcher and return immediately"""
        for watcher in self.watchers:
            if watcher.name in self._tasks:
                continue
            self._states[watcher.name] = WatcherState.RUNNING
            self._tasks[watcher.name] = asyncio.create_task(
                self._supervise(watcher), name=f"watcher-{watcher.name}"
            )

        logger.info(f"Processor started {len(self._tasks)} watchers")

    async def _supervise(self, watcher: ChainWatcher):
        reason = "shutdown"
        try:
            await watcher.run()

        except asyncio.CancelledError:
            reason = "cancelled"
            raise

        except StoreInconsistency as e:
            reason = "store_inconsistency"
            self.crashes[watcher.name] = str(e)
            logger.exception(f"Watcher {watcher.name} stopped on store inconsistency: {e}")
            self.alerts.send(Alert(
                type=AlertType.STORE_INCONSISTENCY,
                message=str(e),
                chain=watcher.name,
                priority=AlertPriority.CRITICAL,
                details={'last_height': str(watcher.last_height)},
            ))

        except Exception as e:
            reason = "crashed"
            self.crashes[watcher.name] = repr(e)
            logger.exception(f"Watcher {watcher.name} crashed: {e}")
            self.alerts.send(Alert(
                type=AlertType.WATCHER_CRASHED,
                message=f"{type(e).__name__}: {e}",
                chain=watcher.name,
                priority=AlertPriority.HIGH,
                details={'last_height': str(watcher.last_height)},
            ))

        finally:
            self._states[watcher.name] = WatcherState.STOPPED
            self.metrics.watcher_stopped(watcher.name, reason)

    async def close(self):
        """
        Stop every watcher.

        Fires the cancellation token, waits up to `grace_period` for the
        watchers to finish their current step, cancels the remaining tasks and
        waits at most `force_timeout` more. Watchers whose task is still alive
        after that stay STOPPING and are listed as abandoned in `get_status`.
        """
        if self._closed:
            return
        self._closed = True

        for name, state in self._states.items():
            if state == WatcherState.RUNNING:
                self._states[name] = WatcherState.STOPPING

        logger.info("Closing processor ...")
        self.token.cancel()

        pending = {task for task in self._tasks.values() if not task.done()}
        if pending:
            _, pending = await asyncio.wait(pending, timeout=self.grace_period)

        if pending:
            logger.warning(f"{len(pending)} watchers still running after {self.grace_period}s, cancelling")
            for task in pending:
                task.cancel()
            _, pending = await asyncio.wait(pending, timeout=self.force_timeout)
            if pending:
                logger.error(f"{len(pending)} watchers did not stop, giving up on them")

        self._abandoned = sorted(name for name, task in self._tasks.items() if task in pending)
        for name in self._states:
            if name not in self._abandoned:
                self._states[name] = WatcherState.STOPPED

        for watcher in self.watchers:
            try:
                await watcher.client.close()
            except Exception as e:
                logger.warning(f"Failed to close RPC client of {watcher.name}: {e}")

        logger.info("Processor closed")

    def get_status(self) -> Dict[str, Any]:
        """Get processor status"""
        return {
            'watchers': {
                watcher.name: {
                    **watcher.get_status(),
                    'state': self._states[watcher.name].value,
                }
                for watcher in self.watchers
            },
            'running': sum(1 for s in self._states.values() if s == WatcherState.RUNNING),
            'crashes': dict(self.crashes),
            'closed': self._closed,
            'abandoned': [name for name in self._abandoned if not self._tasks[name].done()],
        }
