"""SQLAlchemy ORM models for the persistent cache tier.

Cached payloads live in ``api_cache``; their tags in ``api_cache_tags``
so tag invalidation is a single indexed lookup.
"""

from typing import Any

from sqlalchemy import Float, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from hybridapi.infrastructure.database.base import Base


class ApiCacheModel(Base):
    """ORM model — maps to the 'api_cache' table.

    Timestamps are POSIX seconds, the same clock the cache layer uses.
    """

    __tablename__ = "api_cache"

    cache_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=True)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    ttl: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    hit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ApiCacheModel(key='{self.cache_key[:12]}', expires_at={self.expires_at}, hits={self.hit_count})>"


class ApiCacheTagModel(Base):
    """ORM model — maps to the 'api_cache_tags' table."""

    __tablename__ = "api_cache_tags"

    cache_key: Mapped[str] = mapped_column(
        String(64), ForeignKey("api_cache.cache_key", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(255), primary_key=True)

    __table_args__ = (
        Index("ix_api_cache_tags_tag", "tag"),
    )
