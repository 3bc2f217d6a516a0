"""Engine exception taxonomy, independent of any transport or storage framework."""

from typing import Any


class HybridApiError(Exception):
    """Base class for every error the engine surfaces to callers.

    Carries enough context for observability without the caller having to
    inspect engine internals: the entity type, the operation that failed and
    (for queries) the wire parameters of the request descriptor. The
    underlying cause, when there is one, is chained via ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        operation: str | None = None,
        descriptor: dict[str, Any] | None = None,
    ):
        self.message = message
        self.entity_type = entity_type
        self.operation = operation
        self.descriptor = descriptor
        super().__init__(message)

    def with_context(
        self,
        *,
        entity_type: str | None = None,
        operation: str | None = None,
        descriptor: dict[str, Any] | None = None,
    ) -> "HybridApiError":
        """Fill in missing context fields and return self (for re-raising)."""
        if self.entity_type is None:
            self.entity_type = entity_type
        if self.operation is None:
            self.operation = operation
        if self.descriptor is None:
            self.descriptor = descriptor
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.entity_type:
            parts.append(f"entity_type={self.entity_type}")
        if self.operation:
            parts.append(f"operation={self.operation}")
        if len(parts) == 1:
            return self.message
        return f"{parts[0]} ({', '.join(parts[1:])})"


class ValidationError(HybridApiError):
    """Malformed query-builder or entity input, detected before any I/O."""


class TransportError(HybridApiError):
    """Network or connection failure while talking to the remote API."""


class RemoteTimeoutError(TransportError):
    """The remote call did not complete within its timeout."""


class RemoteStatusError(HybridApiError):
    """The remote API answered with a non-success status code."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        body: Any = None,
        **context: Any,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Remote API returned status {status_code}", **context)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class HydrationError(HybridApiError):
    """A raw map cannot be coerced into the entity's declared field types."""

    def __init__(self, message: str, *, field: str | None = None, raw: Any = None, **context: Any):
        self.field = field
        self.raw = raw
        super().__init__(message, **context)


class NotFoundError(HybridApiError):
    """A single-entity fetch produced no result."""

    def __init__(self, entity_type: str, identity: Any, **context: Any):
        self.identity = identity
        context.setdefault("operation", "find")
        super().__init__(
            f"{entity_type} with id '{identity}' not found",
            entity_type=entity_type,
            **context,
        )


class ConflictUnresolvedError(HybridApiError):
    """A reconciliation strategy declined to pick a winner."""

    def __init__(self, message: str, *, identity: Any = None, **context: Any):
        self.identity = identity
        super().__init__(message, **context)


class LocalStoreError(HybridApiError):
    """The local store collaborator failed."""


class UnknownEntityTypeError(HybridApiError):
    """Raised when an entity type name is not registered."""

    def __init__(self, entity_type: str):
        super().__init__(f"Unknown entity type '{entity_type}'", entity_type=entity_type)
