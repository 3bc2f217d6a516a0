"""Persistent cache tier backed by SQLAlchemy: implements the CacheBackend port."""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hybridapi.application.interfaces import CacheBackend
from hybridapi.domain.entities import CacheEntry, CacheStats
from hybridapi.infrastructure.database.models import ApiCacheModel, ApiCacheTagModel

logger = logging.getLogger(__name__)

# Dialects with a native INSERT .. ON CONFLICT; others fall back to session.merge.
_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class SQLAlchemyCacheBackend(CacheBackend):
    """Stores cache entries in the ``api_cache`` / ``api_cache_tags`` tables.

    An entry and its tags are written in one transaction, so readers see
    either the previous entry or the new one. Writes are upserts: two
    concurrent misses for one key both succeed and the last commit wins.
    Tag rows are removed explicitly rather than relying on the database's
    cascade support.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: ApiCacheModel, tags: list[str]) -> CacheEntry:
        return CacheEntry(
            key=model.cache_key,
            payload=model.payload,
            created_at=model.created_at,
            ttl=model.ttl,
            tags=frozenset(tags),
        )

    def _to_row(self, entry: CacheEntry) -> dict:
        return {
            "cache_key": entry.key,
            "payload": entry.payload,
            "created_at": entry.created_at,
            "ttl": entry.ttl,
            "expires_at": entry.expires_at,
            "hit_count": 0,
        }

    async def get(self, key: str) -> CacheEntry | None:
        async with self._session_factory() as session, session.begin():
            model = await session.get(ApiCacheModel, key)
            if model is None:
                return None
            await session.execute(
                update(ApiCacheModel)
                .where(ApiCacheModel.cache_key == key)
                .values(hit_count=ApiCacheModel.hit_count + 1)
            )
            tags = await session.execute(select(ApiCacheTagModel.tag).where(ApiCacheTagModel.cache_key == key))
            return self._to_entity(model, list(tags.scalars().all()))

    async def set(self, entry: CacheEntry) -> None:
        async with self._session_factory() as session, session.begin():
            insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
            if insert is None:
                await self._merge(session, entry)
                return
            row = self._to_row(entry)
            stmt = insert(ApiCacheModel).values(**row)
            await session.execute(
                stmt.on_conflict_do_update(
                    index_elements=[ApiCacheModel.cache_key],
                    set_={column: stmt.excluded[column] for column in row if column != "cache_key"},
                )
            )
            await session.execute(delete(ApiCacheTagModel).where(ApiCacheTagModel.cache_key == entry.key))
            if entry.tags:
                await session.execute(
                    insert(ApiCacheTagModel)
                    .values([{"cache_key": entry.key, "tag": tag} for tag in sorted(entry.tags)])
                    .on_conflict_do_nothing()
                )

    async def delete(self, key: str) -> bool:
        async with self._session_factory() as session, session.begin():
            return await self._remove(session, [key]) > 0

    async def delete_tag(self, tag: str) -> int:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(select(ApiCacheTagModel.cache_key).where(ApiCacheTagModel.tag == tag))
            keys = list(result.scalars().all())
            removed = await self._remove(session, keys)
        logger.debug("Persistent cache: removed %d entries tagged '%s'", removed, tag)
        return removed

    async def purge_expired(self, now: float) -> int:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(select(ApiCacheModel.cache_key).where(ApiCacheModel.expires_at <= now))
            return await self._remove(session, list(result.scalars().all()))

    async def stats(self, now: float) -> CacheStats:
        async with self._session_factory() as session:
            entries = await session.scalar(select(func.count()).select_from(ApiCacheModel)) or 0
            fresh = await session.scalar(
                select(func.count()).select_from(ApiCacheModel).where(ApiCacheModel.expires_at > now)
            ) or 0
            tags = await session.scalar(select(func.count(func.distinct(ApiCacheTagModel.tag)))) or 0
        return CacheStats(entries=entries, fresh=fresh, expired=entries - fresh, tags=tags)

    async def clear(self) -> int:
        async with self._session_factory() as session, session.begin():
            await session.execute(delete(ApiCacheTagModel))
            result = await session.execute(delete(ApiCacheModel))
            return result.rowcount

    @staticmethod
    async def _remove(session: AsyncSession, keys: list[str]) -> int:
        if not keys:
            return 0
        await session.execute(delete(ApiCacheTagModel).where(ApiCacheTagModel.cache_key.in_(keys)))
        result = await session.execute(delete(ApiCacheModel).where(ApiCacheModel.cache_key.in_(keys)))
        return result.rowcount

    async def _merge(self, session: AsyncSession, entry: CacheEntry) -> None:
        await session.merge(ApiCacheModel(**self._to_row(entry)))
        await session.execute(delete(ApiCacheTagModel).where(ApiCacheTagModel.cache_key == entry.key))
        # Parent row first; tag rows reference it.
        await session.flush()
        session.add_all(ApiCacheTagModel(cache_key=entry.key, tag=tag) for tag in sorted(entry.tags))
