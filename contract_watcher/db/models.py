from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class WatcherCursor(Base):
    __tablename__ = "watcher_cursors"

    chain_id = Column(Integer, primary_key=True)
    height = Column(BigInteger, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<WatcherCursor chain={self.chain_id} height={self.height}>"


class DedupKeyRecord(Base):
    """Identity of an already emitted event; pruned by the retention worker"""
    __tablename__ = "dedup_keys"
    __table_args__ = (
        UniqueConstraint(
            "chain_id", "emitter_address", "tx_hash", "sequence_or_index",
            name="uq_dedup_keys"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    chain_id = Column(Integer, nullable=False)
    emitter_address = Column(String(128), nullable=False)
    tx_hash = Column(String(128), nullable=False)
    sequence_or_index = Column(BigInteger, nullable=False)

    # Retention is driven by observed_at
    observed_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<DedupKeyRecord chain={self.chain_id} tx={self.tx_hash} idx={self.sequence_or_index}>"


class ObservedEvent(Base):
    """Normalized event feed; rows are never pruned"""
    __tablename__ = "observed_events"
    __table_args__ = (
        Index("ix_observed_events_key", "chain_id", "emitter_address", "tx_hash", "sequence_or_index"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    chain_id = Column(Integer, nullable=False, index=True)
    emitter_address = Column(String(128), nullable=False)
    tx_hash = Column(String(128), nullable=False)
    sequence_or_index = Column(BigInteger, nullable=False)

    block_height = Column(BigInteger, nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    observed_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<ObservedEvent chain={self.chain_id} tx={self.tx_hash} idx={self.sequence_or_index}>"
