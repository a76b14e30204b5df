"""
Checkpoint Services Package

Durable cursors and dedup index consumed by every chain watcher.
"""

from contract_watcher.services.checkpoint.base import CheckpointStore
from contract_watcher.services.checkpoint.memory import MemoryCheckpointStore
from contract_watcher.services.checkpoint.sql import SqlCheckpointStore

__all__ = [
    'CheckpointStore',
    'MemoryCheckpointStore',
    'SqlCheckpointStore',
]
