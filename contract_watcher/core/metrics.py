from datadog import initialize, statsd
from typing import List, Optional
from loguru import logger

from contract_watcher.core.config import Settings


class Metrics:
    """
    Metrics collection wrapper around DogStatsD.

    Emission is fire-and-forget: a failing statsd client never affects
    ingestion, errors are only logged.
    """

    def __init__(
        self,
        enabled: bool = False,
        prefix: str = "contract_watcher",
        environment: Optional[str] = None
    ):
        self.enabled = enabled
        self.prefix = prefix
        self.base_tags: List[str] = [f"environment:{environment}"] if environment else []

    @classmethod
    def from_settings(cls, settings: Settings) -> "Metrics":
        if settings.DATADOG_ENABLED:
            initialize(statsd_host=settings.STATSD_HOST, statsd_port=settings.STATSD_PORT)
            logger.info(f"DogStatsD initialized ({settings.STATSD_HOST}:{settings.STATSD_PORT})")
        return cls(
            enabled=settings.DATADOG_ENABLED,
            prefix=settings.METRICS_PREFIX,
            environment=settings.ENVIRONMENT
        )

    def _name(self, metric_name: str) -> str:
        return f"{self.prefix}.{metric_name}"

    def _tags(self, tags: Optional[list]) -> list:
        return self.base_tags + (tags or [])

    def increment(self, metric_name: str, value: int = 1, tags: list = None):
        """Increment a counter metric"""
        if not self.enabled:
            return
        try:
            statsd.increment(self._name(metric_name), value, tags=self._tags(tags))
        except Exception as e:
            logger.debug(f"Failed to emit {metric_name}: {e}")

    def gauge(self, metric_name: str, value: float, tags: list = None):
        """Set a gauge metric"""
        if not self.enabled:
            return
        try:
            statsd.gauge(self._name(metric_name), value, tags=self._tags(tags))
        except Exception as e:
            logger.debug(f"Failed to emit {metric_name}: {e}")

    # Domain counters

    def rpc_call(self, chain: str, method: str, status: str):
        self.increment("rpc.call", tags=[f"chain:{chain}", f"method:{method}", f"status:{status}"])

    def rpc_retry(self, chain: str, method: str):
        self.increment("rpc.retry", tags=[f"chain:{chain}", f"method:{method}"])

    def events_ingested(self, chain: str, inserted: int, duplicates: int = 0):
        if inserted:
            self.increment("events.ingested", inserted, tags=[f"chain:{chain}"])
        if duplicates:
            self.increment("events.duplicates", duplicates, tags=[f"chain:{chain}"])

    def cursor_height(self, chain: str, height: int):
        self.gauge("cursor.height", height, tags=[f"chain:{chain}"])

    def cycle_failed(self, chain: str, reason: str):
        self.increment("watcher.cycle.failed", tags=[f"chain:{chain}", f"reason:{reason}"])

    def watcher_stopped(self, chain: str, reason: str):
        self.increment("watcher.stopped", tags=[f"chain:{chain}", f"reason:{reason}"])

# Usage examples:
# metrics.rpc_call('ethereum', 'get_logs', 'success')
# metrics.events_ingested('solana', inserted=3, duplicates=1)
# metrics.cursor_height('aptos', 81234567)
