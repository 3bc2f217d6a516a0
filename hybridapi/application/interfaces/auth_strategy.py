"""Abstract interface (port) for authenticating outgoing remote requests."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class OutgoingRequest:
    """A remote request before it is handed to the transport."""

    method: str
    path: str
    query_params: dict[str, str] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class AuthStrategy(ABC):
    """Port for mutating headers or query parameters with credentials."""

    @abstractmethod
    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        """Return the request with credentials attached."""
        ...
