"""Abstract interface (port) for the HTTP transport used by the remote executor."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class TransportResponse:
    """Status code plus the already-decoded response body."""

    status_code: int
    body: Any = None
    headers: dict[str, str] | None = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(ABC):
    """Port for executing one HTTP request against the remote API."""

    @abstractmethod
    async def execute(
        self,
        method: str,
        path: str,
        *,
        query_params: dict[str, str] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        """Send the request and return the decoded response.

        Raises:
            TransportError: The remote API could not be reached.
            RemoteTimeoutError: The request did not complete within ``timeout``.
        """
        ...
