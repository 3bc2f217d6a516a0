"""Concrete LocalStore implementation backed by SQLAlchemy."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hybridapi.application.interfaces import LocalStore
from hybridapi.application.services import record_filter
from hybridapi.domain.coercion import as_utc
from hybridapi.domain.entities import Condition, LocalRecord
from hybridapi.infrastructure.database.models import LocalRecordModel


class SQLAlchemyLocalStore(LocalStore):
    """Implements the LocalStore port using SQLAlchemy async sessions.

    Each call runs in its own session and transaction, so a failed write
    leaves no partial record behind.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: LocalRecordModel) -> LocalRecord:
        """Map ORM model → domain entity."""
        return LocalRecord(
            entity_type=model.entity_type,
            identity=model.identity,
            data=dict(model.data or {}),
            last_modified=as_utc(model.last_modified),
        )

    def _to_model(self, record: LocalRecord) -> LocalRecordModel:
        """Map domain entity → ORM model (for creation)."""
        return LocalRecordModel(
            entity_type=record.entity_type,
            identity=record.identity,
            data=record.data,
            last_modified=as_utc(record.last_modified),
        )

    async def find(self, entity_type: str, identity: str) -> LocalRecord | None:
        async with self._session_factory() as session:
            model = await session.get(LocalRecordModel, (entity_type, identity))
            return self._to_entity(model) if model else None

    async def query(
        self,
        entity_type: str,
        filters: tuple[Condition, ...] = (),
    ) -> list[LocalRecord]:
        stmt = (
            select(LocalRecordModel)
            .where(LocalRecordModel.entity_type == entity_type)
            .order_by(LocalRecordModel.identity)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = [self._to_entity(row) for row in result.scalars().all()]
        # Filters run over the JSON payload in Python; the column is opaque to SQL.
        return [r for r in records if all(record_filter.matches(r.data, c) for c in filters)]

    async def upsert(self, record: LocalRecord) -> LocalRecord:
        async with self._session_factory() as session, session.begin():
            model = await session.get(LocalRecordModel, (record.entity_type, record.identity))
            if model is None:
                model = self._to_model(record)
                session.add(model)
            else:
                model.data = record.data
                model.last_modified = as_utc(record.last_modified)
            await session.flush()
            return self._to_entity(model)

    async def delete(self, entity_type: str, identity: str) -> bool:
        stmt = delete(LocalRecordModel).where(
            LocalRecordModel.entity_type == entity_type,
            LocalRecordModel.identity == identity,
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def identities(self, entity_type: str) -> set[str]:
        stmt = select(LocalRecordModel.identity).where(LocalRecordModel.entity_type == entity_type)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return set(result.scalars().all())
