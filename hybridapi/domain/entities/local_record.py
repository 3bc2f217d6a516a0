"""Domain entity: one entity copy as held by the local store."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class LocalRecord:
    """A locally persisted copy of a remote entity.

    Records are scoped by entity_type and keyed by the string form of the
    entity identity. ``last_modified`` drives bidirectional reconciliation.
    """

    entity_type: str
    identity: str
    data: dict[str, Any]
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def update(self, data: dict[str, Any], last_modified: datetime | None = None) -> None:
        """Replace the stored data and refresh the modification timestamp."""
        self.data = data
        self.last_modified = last_modified or datetime.now(timezone.utc)
