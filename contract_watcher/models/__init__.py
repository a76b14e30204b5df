from contract_watcher.models.events import Cursor, DedupKey, NormalizedEvent
from contract_watcher.models.watcher import ChainFamily, WatcherConfig, WatcherState

__all__ = [
    "ChainFamily",
    "Cursor",
    "DedupKey",
    "NormalizedEvent",
    "WatcherConfig",
    "WatcherState",
]
