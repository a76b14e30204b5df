"""Normalized chain events and cursors"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Tuple


DedupKey = Tuple[int, str, str, int]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NormalizedEvent:
    """Chain-agnostic record of one matched contract interaction"""
    chain_id: int
    emitter_address: str
    block_height: int
    tx_hash: str
    sequence_or_index: int
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)
    observed_at: datetime = field(default_factory=utcnow, compare=False)

    @property
    def dedup_key(self) -> DedupKey:
        """Identity of the event; re-observations share it"""
        return (self.chain_id, self.emitter_address, self.tx_hash, self.sequence_or_index)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data = asdict(self)
        data["observed_at"] = self.observed_at.isoformat()
        return data


@dataclass(frozen=True)
class Cursor:
    """Last block height fully processed for a chain"""
    chain_id: int
    last_processed_height: int
