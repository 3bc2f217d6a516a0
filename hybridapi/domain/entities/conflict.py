"""Domain entities for bidirectional reconciliation."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from hybridapi.domain.entities.entity import Entity


class Side(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class ConflictRecord:
    """Two diverging copies of the same identity, awaiting a winner."""

    entity_type: str
    identity: Any
    local: Entity
    remote: Entity
    local_modified: datetime | None = None
    remote_modified: datetime | None = None


@dataclass
class Resolution:
    """Outcome of one reconciliation: the authoritative version and which side lost."""

    winner: Entity
    winning_side: Side
    written_to: Side | None = None

    @property
    def changed(self) -> bool:
        return self.written_to is not None
