"""SQLAlchemy ORM model for the LocalRecord entity."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from hybridapi.infrastructure.database.base import Base


class LocalRecordModel(Base):
    """ORM model — maps to the 'local_records' table."""

    __tablename__ = "local_records"

    entity_type: Mapped[str] = mapped_column(String(100), primary_key=True)
    identity: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_local_records_modified", "entity_type", "last_modified"),
    )

    def __repr__(self) -> str:
        return f"<LocalRecordModel(type='{self.entity_type}', identity='{self.identity}')>"
