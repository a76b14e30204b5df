from contract_watcher.db.models import Base, DedupKeyRecord, ObservedEvent, WatcherCursor

__all__ = [
    "Base",
    "DedupKeyRecord",
    "ObservedEvent",
    "WatcherCursor",
]
