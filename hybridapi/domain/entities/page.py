"""Result containers returned by paginated reads and full synchronisation runs."""

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Page:
    """One page of hydrated entities plus the total reported by the API."""

    items: list[Any]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        if self.per_page <= 0:
            return 1
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more(self) -> bool:
        return self.page < self.last_page

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass
class SyncReport:
    """Counters collected while reconciling a whole entity type."""

    entity_type: str
    created: int = 0
    updated: int = 0
    pushed: int = 0
    deleted: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.pushed + self.deleted + self.unchanged
