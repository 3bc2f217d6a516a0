from .cache_entry import CacheEntry, CacheStats, identity_tag, type_tag
from .conflict import ConflictRecord, Resolution, Side
from .entity import Entity, EntityRegistry
from .hybrid_mode import ConflictStrategy, HybridMode
from .local_record import LocalRecord
from .page import Page, SyncReport
from .request_descriptor import (
    Aggregate,
    AggregateFunction,
    ArrayStyle,
    Condition,
    Filter,
    FilterGroup,
    FilterOperator,
    Pagination,
    PaginationStyle,
    RequestDescriptor,
    SortDirection,
    SortKey,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "identity_tag",
    "type_tag",
    "ConflictRecord",
    "Resolution",
    "Side",
    "Entity",
    "EntityRegistry",
    "ConflictStrategy",
    "HybridMode",
    "LocalRecord",
    "Page",
    "SyncReport",
    "Aggregate",
    "AggregateFunction",
    "ArrayStyle",
    "Condition",
    "Filter",
    "FilterGroup",
    "FilterOperator",
    "Pagination",
    "PaginationStyle",
    "RequestDescriptor",
    "SortDirection",
    "SortKey",
]
