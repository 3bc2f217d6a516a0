"""Capability protocols the engine depends on instead of concrete entity classes."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cacheable(Protocol):
    """Exposes the cache tags its cached copies are filed under."""

    def cache_tags(self) -> set[str]: ...


@runtime_checkable
class Hybridizable(Protocol):
    """Carries what bidirectional sync needs: a timestamp and a comparable form."""

    def last_modified(self) -> datetime | None: ...

    def comparable(self) -> dict[str, Any]: ...

    def to_storage(self) -> dict[str, Any]: ...


@runtime_checkable
class Relatable(Protocol):
    """Names the entities whose cached copies a write must also invalidate."""

    def related_entities(self) -> Iterable[Any]: ...
