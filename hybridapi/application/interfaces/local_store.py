"""Abstract repository interface (port) for the local persisted copy of entities."""

from abc import ABC, abstractmethod

from hybridapi.domain.entities import Condition, LocalRecord


class LocalStore(ABC):
    """Port for local-record persistence: implemented in the infrastructure layer.

    Implementations provide their own consistency guarantees (e.g. one
    transaction per call); the engine does not re-implement them.
    """

    @abstractmethod
    async def find(self, entity_type: str, identity: str) -> LocalRecord | None:
        """Retrieve a single record by entity type and identity."""
        ...

    @abstractmethod
    async def query(
        self,
        entity_type: str,
        filters: tuple[Condition, ...] = (),
    ) -> list[LocalRecord]:
        """Retrieve every record of a type matching all filters."""
        ...

    @abstractmethod
    async def upsert(self, record: LocalRecord) -> LocalRecord:
        """Insert or replace a record, keeping its ``last_modified``."""
        ...

    @abstractmethod
    async def delete(self, entity_type: str, identity: str) -> bool:
        """Delete a record. Returns True if deleted, False if not found."""
        ...

    @abstractmethod
    async def identities(self, entity_type: str) -> set[str]:
        """All identities currently stored for an entity type."""
        ...
