"""
SQL Checkpoint Store

SQLAlchemy async implementation of the checkpoint contract.
PostgreSQL in production, SQLite for tests and local runs.

Dedup keys live in their own table so retention can prune them while the
observed_events feed keeps every row.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy import delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, TimeoutError as PoolTimeout
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from contract_watcher.core.errors import StoreInconsistency, StoreUnavailable
from contract_watcher.db.models import Base, DedupKeyRecord, ObservedEvent, WatcherCursor
from contract_watcher.db.session import create_engine, create_session_factory
from contract_watcher.models.events import Cursor, DedupKey, NormalizedEvent
from contract_watcher.services.checkpoint.base import CheckpointStore

DEDUP_COLUMNS = ["chain_id", "emitter_address", "tx_hash", "sequence_or_index"]

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Connection-level failures; the watcher retries the cycle
_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeout, OSError)


class SqlCheckpointStore(CheckpointStore):
    """
    Example:
        ```python
        store = SqlCheckpointStore.from_url("postgresql+asyncpg://...")
        await store.init_schema()

        inserted = await store.persist_events(events)
        await store.advance_cursor(chain_id=2, height=18_000_000)
        ```
    """

    def __init__(self, engine: AsyncEngine):
        dialect = engine.dialect.name
        if dialect not in _INSERTS:
            raise ValueError(f"Unsupported checkpoint store dialect: {dialect}")

        self.engine = engine
        self._insert = _INSERTS[dialect]
        self._session_factory = create_session_factory(engine)

        logger.info(f"SqlCheckpointStore initialized ({dialect})")

    @classmethod
    def from_url(cls, database_url: str) -> "SqlCheckpointStore":
        return cls(create_engine(database_url))

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except _UNAVAILABLE as e:
            raise StoreUnavailable(f"{operation} failed: {e}", cause=e) from e

    async def init_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get_cursor(self, chain_id: int) -> Optional[int]:
        async with self._session("get_cursor") as session:
            return await session.scalar(
                select(WatcherCursor.height).where(WatcherCursor.chain_id == chain_id)
            )

    async def advance_cursor(self, chain_id: int, height: int) -> None:
        async with self._session("advance_cursor") as session:
            async with session.begin():
                cursor = await session.scalar(
                    select(WatcherCursor)
                    .where(WatcherCursor.chain_id == chain_id)
                    .with_for_update()
                )

                if cursor is None:
                    session.add(WatcherCursor(chain_id=chain_id, height=height))
                    return

                if height < cursor.height:
                    raise StoreInconsistency(
                        f"Cursor regression rejected: {cursor.height} -> {height}",
                        details={"chain_id": chain_id, "current": cursor.height, "requested": height}
                    )

                if height == cursor.height:
                    return

                cursor.height = height

    async def persist_events(self, events: Sequence[NormalizedEvent]) -> int:
        rows: Dict[DedupKey, dict] = {}
        for event in events:
            rows.setdefault(event.dedup_key, {
                "chain_id": event.chain_id,
                "emitter_address": event.emitter_address,
                "tx_hash": event.tx_hash,
                "sequence_or_index": event.sequence_or_index,
                "block_height": event.block_height,
                "payload": event.payload,
                "observed_at": event.observed_at,
            })

        if not rows:
            return 0

        claim = (
            self._insert(DedupKeyRecord)
            .values([
                {column: row[column] for column in DEDUP_COLUMNS + ["observed_at"]}
                for row in rows.values()
            ])
            .on_conflict_do_nothing(index_elements=DEDUP_COLUMNS)
            .returning(
                DedupKeyRecord.chain_id,
                DedupKeyRecord.emitter_address,
                DedupKeyRecord.tx_hash,
                DedupKeyRecord.sequence_or_index,
            )
        )

        try:
            async with self._session("persist_events") as session:
                async with session.begin():
                    claimed = {tuple(key) for key in (await session.execute(claim)).all()}
                    new_rows = [row for key, row in rows.items() if key in claimed]
                    if new_rows:
                        await session.execute(insert(ObservedEvent), new_rows)
        except IntegrityError as e:
            raise StoreInconsistency(
                f"Key violation while persisting {len(rows)} events: {e.orig}",
                cause=e
            ) from e

        return len(new_rows)

    async def prune_dedup_keys(self, older_than: datetime) -> int:
        async with self._session("prune_dedup_keys") as session:
            async with session.begin():
                result = await session.execute(
                    delete(DedupKeyRecord).where(DedupKeyRecord.observed_at < older_than)
                )
        removed = max(result.rowcount or 0, 0)
        if removed:
            logger.debug(f"Pruned {removed} dedup keys older than {older_than.isoformat()}")
        return removed

    async def list_events(self, chain_id: Optional[int] = None, limit: Optional[int] = None) -> List[NormalizedEvent]:
        stmt = select(ObservedEvent).order_by(ObservedEvent.id)
        if chain_id is not None:
            stmt = stmt.where(ObservedEvent.chain_id == chain_id)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session("list_events") as session:
            rows = (await session.scalars(stmt)).all()

        return [
            NormalizedEvent(
                chain_id=row.chain_id,
                emitter_address=row.emitter_address,
                block_height=row.block_height,
                tx_hash=row.tx_hash,
                sequence_or_index=row.sequence_or_index,
                payload=row.payload,
                observed_at=row.observed_at,
            )
            for row in rows
        ]

    async def list_cursors(self) -> List[Cursor]:
        async with self._session("list_cursors") as session:
            result = await session.execute(
                select(WatcherCursor.chain_id, WatcherCursor.height).order_by(WatcherCursor.chain_id)
            )
            return [Cursor(chain_id, height) for chain_id, height in result.all()]

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("SqlCheckpointStore closed")
