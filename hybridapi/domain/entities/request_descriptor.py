"""Domain entities describing query intent before it is executed."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from hybridapi.domain.exceptions import ValidationError


class FilterOperator(str, Enum):
    """Closed set of filter operators understood by the engine."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    NULL = "null"
    NOT_NULL = "not_null"
    LIKE = "like"
    CONTAINS = "contains"

    @classmethod
    def parse(cls, raw: "str | FilterOperator") -> "FilterOperator":
        """Resolve a user-supplied operator (symbol, alias or name)."""
        if isinstance(raw, FilterOperator):
            return raw
        if not isinstance(raw, str):
            raise ValidationError(f"Operator must be a string, got {type(raw).__name__}")
        key = " ".join(raw.strip().lower().split())
        if key in _OPERATOR_ALIASES:
            return _OPERATOR_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unsupported filter operator '{raw}'") from None

    @property
    def is_membership(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)

    @property
    def is_null_check(self) -> bool:
        return self in (FilterOperator.NULL, FilterOperator.NOT_NULL)


_OPERATOR_ALIASES: dict[str, FilterOperator] = {
    "=": FilterOperator.EQ,
    "==": FilterOperator.EQ,
    "equals": FilterOperator.EQ,
    "!=": FilterOperator.NE,
    "<>": FilterOperator.NE,
    ">": FilterOperator.GT,
    ">=": FilterOperator.GTE,
    "<": FilterOperator.LT,
    "<=": FilterOperator.LTE,
    "not in": FilterOperator.NOT_IN,
    "is null": FilterOperator.NULL,
    "is not null": FilterOperator.NOT_NULL,
    "not null": FilterOperator.NOT_NULL,
}


class ArrayStyle(str, Enum):
    """Delimiter styles for list-valued wire parameters."""

    CSV = "csv"
    SPACE = "space"
    PIPE = "pipe"

    @property
    def delimiter(self) -> str:
        return {ArrayStyle.CSV: ",", ArrayStyle.SPACE: " ", ArrayStyle.PIPE: "|"}[self]


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, raw: "str | SortDirection") -> "SortDirection":
        if isinstance(raw, SortDirection):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValidationError(f"Unsupported sort direction '{raw}'") from None


class PaginationStyle(str, Enum):
    """How pagination is expressed on the wire."""

    LIMIT_OFFSET = "limit_offset"
    PAGE = "page"


class AggregateFunction(str, Enum):
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    SUM = "sum"
    AVG = "avg"

    @classmethod
    def parse(cls, raw: "str | AggregateFunction") -> "AggregateFunction":
        if isinstance(raw, AggregateFunction):
            return raw
        key = str(raw).strip().lower()
        if key == "average":
            key = "avg"
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(f"Unsupported aggregate function '{raw}'") from None


@dataclass(frozen=True)
class Filter:
    """A single (field, operator, value) constraint."""

    field: str
    operator: FilterOperator
    value: Any = None


@dataclass(frozen=True)
class FilterGroup:
    """A grouped sub-expression joined by ``boolean`` ("and" | "or")."""

    boolean: str
    conditions: tuple["Condition", ...] = ()


Condition = Union[Filter, FilterGroup]


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class Pagination:
    """Either limit/offset or page/per_page; never both."""

    limit: int | None = None
    offset: int | None = None
    page: int | None = None
    per_page: int | None = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.limit, self.offset, self.page, self.per_page))

    @property
    def uses_pages(self) -> bool:
        return self.page is not None or self.per_page is not None

    def as_limit_offset(self) -> tuple[int | None, int | None]:
        """Express the window as (limit, offset)."""
        if not self.uses_pages:
            return self.limit, self.offset
        per_page = self.per_page
        page = self.page or 1
        if per_page is None:
            return None, None
        return per_page, (page - 1) * per_page

    def as_page(self) -> tuple[int | None, int | None]:
        """Express the window as (page, per_page)."""
        if self.uses_pages:
            return self.page or 1, self.per_page
        if self.limit is None:
            return None, None
        offset = self.offset or 0
        return offset // self.limit + 1 if self.limit else 1, self.limit


@dataclass(frozen=True)
class Aggregate:
    function: AggregateFunction
    field: str = "*"


@dataclass(frozen=True)
class RequestDescriptor:
    """Accumulated, immutable representation of one query against one entity type."""

    entity_type: str
    filters: tuple[Condition, ...] = ()
    sort: tuple[SortKey, ...] = ()
    pagination: Pagination = field(default_factory=Pagination)
    fields: tuple[str, ...] = ()
    aggregate: Aggregate | None = None
    extra_params: tuple[tuple[str, Any], ...] = ()
    array_styles: tuple[tuple[str, ArrayStyle], ...] = ()

    def array_style_for(self, field_name: str, default: ArrayStyle = ArrayStyle.CSV) -> ArrayStyle:
        for name, style in self.array_styles:
            if name == field_name:
                return style
        return default

    def with_pagination(self, pagination: Pagination) -> "RequestDescriptor":
        return replace(self, pagination=pagination)

    def without_pagination(self) -> "RequestDescriptor":
        return replace(self, pagination=Pagination())

    def with_aggregate(self, aggregate: Aggregate | None) -> "RequestDescriptor":
        return replace(self, aggregate=aggregate)
