"""
Contract Watcher - Service Entrypoint

Startup: settings -> logging -> checkpoint store -> metrics/alerts ->
cancellation token -> watchers -> processor -> retention worker.
Shutdown on SIGINT/SIGTERM: processor, retention worker, database.
"""

import asyncio
import signal
from typing import Optional

from loguru import logger

from contract_watcher.core.alerts import new_alert_client
from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.core.config import Settings, settings as default_settings
from contract_watcher.core.logging import setup_logging
from contract_watcher.core.metrics import Metrics
from contract_watcher.services.builder import WatcherFactory
from contract_watcher.services.chains import build_watcher_configs
from contract_watcher.services.checkpoint import SqlCheckpointStore
from contract_watcher.services.processor import Processor
from contract_watcher.services.rpc import RetryPolicy
from contract_watcher.workers.retention import DedupRetentionWorker


async def run(settings: Optional[Settings] = None):
    """Run the service until a termination signal arrives"""
    settings = settings or default_settings
    setup_logging(settings)

    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT}, {settings.P2P_NETWORK})")

    store = SqlCheckpointStore.from_url(settings.DATABASE_URL)
    await store.init_schema()

    metrics = Metrics.from_settings(settings)
    alerts = new_alert_client(settings)
    token = CancellationToken()

    factory = WatcherFactory(
        store,
        token,
        metrics=metrics,
        alerts=alerts,
        retry_policy=RetryPolicy(
            attempts=settings.RPC_MAX_ATTEMPTS,
            delay=settings.RPC_RETRY_DELAY,
            backoff=settings.RPC_RETRY_BACKOFF,
        ),
    )
    pairs, errors = factory.create_all(build_watcher_configs(settings))
    if errors:
        logger.warning(f"{len(errors)} watchers could not be built")

    processor = Processor(
        [pair.watcher for pair in pairs],
        token,
        alerts=alerts,
        metrics=metrics,
        grace_period=settings.SHUTDOWN_GRACE_PERIOD,
        force_timeout=settings.SHUTDOWN_FORCE_TIMEOUT,
    )
    await processor.start()

    retention = DedupRetentionWorker(
        store,
        token,
        retention_hours=settings.DEDUP_RETENTION_HOURS,
        interval=settings.DEDUP_PRUNE_INTERVAL,
    )
    retention_task = asyncio.create_task(retention.run(), name="dedup-retention")

    logger.info(f"Started {settings.APP_NAME}")

    # Waiting for signal
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    await stop.wait()

    logger.info("Terminating with signal, exiting...")

    await processor.close()

    try:
        await asyncio.wait_for(retention_task, timeout=settings.SHUTDOWN_FORCE_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("Dedup retention worker did not stop in time")

    logger.info("Closing database connections ...")
    await store.close()

    logger.info(f"Finished {settings.APP_NAME}")


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
