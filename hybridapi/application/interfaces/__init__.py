from .auth_strategy import AuthStrategy, OutgoingRequest
from .cache_backend import CacheBackend
from .capabilities import Cacheable, Hybridizable, Relatable
from .event_sink import EventSink, NullEventSink, OperationEvent
from .local_store import LocalStore
from .transport import Transport, TransportResponse

__all__ = [
    "AuthStrategy",
    "OutgoingRequest",
    "CacheBackend",
    "Cacheable",
    "Hybridizable",
    "Relatable",
    "EventSink",
    "NullEventSink",
    "OperationEvent",
    "LocalStore",
    "Transport",
    "TransportResponse",
]
