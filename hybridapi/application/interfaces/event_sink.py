"""Abstract interface (port) for fire-and-forget operation notifications."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class OperationEvent:
    """One notification about an engine operation."""

    operation: str
    entity_type: str
    mode: str | None = None
    source: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    duration_ms: float | None = None
    error: BaseException | None = None


class EventSink(ABC):
    """Port consumed by logging/metrics. The engine never waits on its outcome."""

    @abstractmethod
    def operation_started(self, event: OperationEvent) -> None: ...

    @abstractmethod
    def operation_completed(self, event: OperationEvent) -> None: ...

    @abstractmethod
    def operation_failed(self, event: OperationEvent) -> None: ...


class NullEventSink(EventSink):
    """Discards every event."""

    def operation_started(self, event: OperationEvent) -> None:
        return None

    def operation_completed(self, event: OperationEvent) -> None:
        return None

    def operation_failed(self, event: OperationEvent) -> None:
        return None
