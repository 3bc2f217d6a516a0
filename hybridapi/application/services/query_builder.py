"""Fluent query builder producing a RequestDescriptor and executing it via the router."""

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from hybridapi.domain.entities import (
    Aggregate,
    AggregateFunction,
    ArrayStyle,
    Condition,
    Entity,
    Filter,
    FilterGroup,
    FilterOperator,
    HybridMode,
    Page,
    Pagination,
    RequestDescriptor,
    SortDirection,
    SortKey,
)
from hybridapi.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from hybridapi.application.services.hybrid_router import HybridRouter

E = TypeVar("E", bound=Entity)

_NO_VALUE = object()


class QueryBuilder(Generic[E]):
    """Accumulates filters, sort keys, pagination and field selection.

    Building methods mutate the builder in place and return it for chaining.
    Nothing is executed until a terminal method (``get``, ``first``,
    ``paginate``, ``aggregate``, ``count``, ``exists`` ...) is awaited; from
    then on the builder is frozen and ``clone()`` must be used to derive a
    new query.
    """

    def __init__(self, entity_cls: type[E], router: "HybridRouter | None" = None):
        self._entity_cls = entity_cls
        self._router = router
        self._filters: list[Condition] = []
        self._sort: list[SortKey] = []
        self._pagination = Pagination()
        self._fields: list[str] = []
        self._extra: dict[str, Any] = {}
        self._array_styles: dict[str, ArrayStyle] = dict(entity_cls.array_styles)
        self._frozen = False

    @property
    def entity_cls(self) -> type[E]:
        return self._entity_cls

    # ── Filters ──────────────────────────────────────────────────────

    def where(self, field: str, operator: Any = _NO_VALUE, value: Any = _NO_VALUE) -> "QueryBuilder[E]":
        """Add a filter. ``where(field, value)`` is shorthand for equality."""
        if operator is _NO_VALUE:
            raise ValidationError(f"where('{field}') needs a value", entity_type=self._entity_type)
        if value is _NO_VALUE:
            op, value = FilterOperator.EQ, operator
        else:
            op = self._parse_operator(operator)
        return self._add_filter(field, op, value)

    def where_in(self, field: str, values: Any) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.IN, values)

    def where_not_in(self, field: str, values: Any) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.NOT_IN, values)

    def where_null(self, field: str) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.NULL, None)

    def where_not_null(self, field: str) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.NOT_NULL, None)

    def where_like(self, field: str, pattern: str) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.LIKE, pattern)

    def where_contains(self, field: str, value: Any) -> "QueryBuilder[E]":
        return self._add_filter(field, FilterOperator.CONTAINS, value)

    def where_group(
        self,
        callback: Callable[["QueryBuilder[E]"], Any],
        boolean: str = "or",
    ) -> "QueryBuilder[E]":
        """Add a grouped sub-expression built by ``callback`` on a sub-builder."""
        self._ensure_mutable()
        joiner = str(boolean).strip().lower()
        if joiner not in ("and", "or"):
            raise ValidationError(f"Group boolean must be 'and' or 'or', got '{boolean}'", entity_type=self._entity_type)
        sub = QueryBuilder(self._entity_cls)
        callback(sub)
        if sub._filters:
            self._filters.append(FilterGroup(boolean=joiner, conditions=tuple(sub._filters)))
        return self

    def apply(self, name: str, *args: Any, **kwargs: Any) -> "QueryBuilder[E]":
        """Invoke a named filter registered on the entity type."""
        self._ensure_mutable()
        named_filter = self._entity_cls.get_named_filter(name)
        named_filter(self, *args, **kwargs)
        return self

    # ── Sort, pagination, projection ─────────────────────────────────

    def order_by(self, field: str, direction: str | SortDirection = SortDirection.ASC) -> "QueryBuilder[E]":
        self._ensure_mutable()
        self._sort.append(SortKey(self._check_field(field), SortDirection.parse(direction)))
        return self

    def order_by_desc(self, field: str) -> "QueryBuilder[E]":
        return self.order_by(field, SortDirection.DESC)

    def limit(self, count: int) -> "QueryBuilder[E]":
        self._ensure_mutable()
        self._check_non_negative("limit", count)
        offset = None if self._pagination.uses_pages else self._pagination.offset
        self._pagination = Pagination(limit=count, offset=offset)
        return self

    def offset(self, count: int) -> "QueryBuilder[E]":
        self._ensure_mutable()
        self._check_non_negative("offset", count)
        limit = None if self._pagination.uses_pages else self._pagination.limit
        self._pagination = Pagination(limit=limit, offset=count)
        return self

    def for_page(self, page: int, per_page: int = 15) -> "QueryBuilder[E]":
        self._ensure_mutable()
        self._check_page(page, per_page)
        self._pagination = Pagination(page=page, per_page=per_page)
        return self

    def select(self, *fields: str) -> "QueryBuilder[E]":
        self._ensure_mutable()
        for field in fields:
            name = self._check_field(field)
            if name not in self._fields:
                self._fields.append(name)
        return self

    def array_style(self, field: str, style: str | ArrayStyle) -> "QueryBuilder[E]":
        self._ensure_mutable()
        try:
            self._array_styles[self._check_field(field)] = ArrayStyle(style)
        except ValueError:
            raise ValidationError(f"Unsupported array style '{style}'", entity_type=self._entity_type) from None
        return self

    def with_param(self, key: str, value: Any) -> "QueryBuilder[E]":
        """Pass a raw parameter through to the wire, merged after everything else."""
        self._ensure_mutable()
        self._extra[self._check_field(key)] = value
        return self

    # ── Descriptor ───────────────────────────────────────────────────

    def descriptor(self) -> RequestDescriptor:
        return RequestDescriptor(
            entity_type=self._entity_type,
            filters=tuple(self._filters),
            sort=tuple(self._sort),
            pagination=self._pagination,
            fields=tuple(self._fields),
            extra_params=tuple(self._extra.items()),
            array_styles=tuple(sorted(self._array_styles.items())),
        )

    def clone(self) -> "QueryBuilder[E]":
        """An unfrozen copy sharing nothing mutable with this builder."""
        copy = QueryBuilder(self._entity_cls, self._router)
        copy._filters = list(self._filters)
        copy._sort = list(self._sort)
        copy._pagination = self._pagination
        copy._fields = list(self._fields)
        copy._extra = dict(self._extra)
        copy._array_styles = dict(self._array_styles)
        return copy

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # ── Terminal operations ──────────────────────────────────────────

    async def get(self, *, mode: HybridMode | str | None = None, ttl: float | None = None,
                  timeout: float | None = None) -> list[E]:
        router = self._start_terminal()
        return await router.fetch_list(
            self._entity_cls, self.descriptor(), mode=self._parse_mode(mode), ttl=ttl, timeout=timeout
        )

    async def first(self, *, mode: HybridMode | str | None = None, ttl: float | None = None,
                    timeout: float | None = None) -> E | None:
        router = self._start_terminal()
        descriptor = self.descriptor()
        _, offset = descriptor.pagination.as_limit_offset()
        descriptor = descriptor.with_pagination(Pagination(limit=1, offset=offset))
        items = await router.fetch_list(
            self._entity_cls, descriptor, mode=self._parse_mode(mode), ttl=ttl, timeout=timeout
        )
        return items[0] if items else None

    async def paginate(self, page: int = 1, per_page: int = 15, *, mode: HybridMode | str | None = None,
                       ttl: float | None = None, timeout: float | None = None) -> Page:
        self._check_page(page, per_page)
        router = self._start_terminal()
        descriptor = self.descriptor().with_pagination(Pagination(page=page, per_page=per_page))
        return await router.fetch_page(
            self._entity_cls, descriptor, mode=self._parse_mode(mode), ttl=ttl, timeout=timeout
        )

    async def aggregate(self, function: str | AggregateFunction, field: str = "*", *,
                        mode: HybridMode | str | None = None, ttl: float | None = None,
                        timeout: float | None = None) -> Any:
        fn = AggregateFunction.parse(function)
        if fn is not AggregateFunction.COUNT and field == "*":
            raise ValidationError(f"{fn.value}() needs a field", entity_type=self._entity_type)
        router = self._start_terminal()
        descriptor = replace(
            self.descriptor(),
            aggregate=Aggregate(function=fn, field=self._check_field(field)),
            pagination=Pagination(),
        )
        return await router.fetch_aggregate(
            self._entity_cls, descriptor, mode=self._parse_mode(mode), ttl=ttl, timeout=timeout
        )

    async def count(self, **overrides: Any) -> int:
        return await self.aggregate(AggregateFunction.COUNT, "*", **overrides)

    async def min(self, field: str, **overrides: Any) -> Any:
        return await self.aggregate(AggregateFunction.MIN, field, **overrides)

    async def max(self, field: str, **overrides: Any) -> Any:
        return await self.aggregate(AggregateFunction.MAX, field, **overrides)

    async def sum(self, field: str, **overrides: Any) -> Any:
        return await self.aggregate(AggregateFunction.SUM, field, **overrides)

    async def avg(self, field: str, **overrides: Any) -> Any:
        return await self.aggregate(AggregateFunction.AVG, field, **overrides)

    async def exists(self, **overrides: Any) -> bool:
        return await self.first(**overrides) is not None

    # ── Internals ────────────────────────────────────────────────────

    @property
    def _entity_type(self) -> str:
        return self._entity_cls.entity_type

    def _add_filter(self, field: str, operator: FilterOperator, value: Any) -> "QueryBuilder[E]":
        self._ensure_mutable()
        name = self._check_field(field)
        if operator.is_membership:
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
                raise ValidationError(
                    f"Operator '{operator.value}' on '{name}' needs a list of values",
                    entity_type=self._entity_type,
                )
            value = tuple(sorted(value, key=repr)) if isinstance(value, (set, frozenset)) else tuple(value)
        self._filters.append(Filter(field=name, operator=operator, value=value))
        return self

    def _parse_operator(self, operator: Any) -> FilterOperator:
        try:
            return FilterOperator.parse(operator)
        except ValidationError as exc:
            raise exc.with_context(entity_type=self._entity_type, operation="build")

    def _check_field(self, field: str) -> str:
        if not isinstance(field, str) or not field.strip():
            raise ValidationError("Field name must be a non-empty string", entity_type=self._entity_type)
        return field.strip()

    def _check_non_negative(self, name: str, count: int) -> None:
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ValidationError(f"{name} must be a non-negative integer, got {count!r}", entity_type=self._entity_type)

    def _check_page(self, page: int, per_page: int) -> None:
        if not isinstance(page, int) or isinstance(page, bool) or page < 1:
            raise ValidationError(f"page must be >= 1, got {page!r}", entity_type=self._entity_type)
        if not isinstance(per_page, int) or isinstance(per_page, bool) or per_page < 1:
            raise ValidationError(f"per_page must be >= 1, got {per_page!r}", entity_type=self._entity_type)

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise ValidationError(
                "Query has already been executed; use clone() to build a new one",
                entity_type=self._entity_type,
            )

    def _start_terminal(self) -> "HybridRouter":
        if self._router is None:
            raise ValidationError("Query builder is not bound to a router", entity_type=self._entity_type)
        self._frozen = True
        return self._router

    def _parse_mode(self, mode: HybridMode | str | None) -> HybridMode | None:
        if mode is None:
            return None
        try:
            return HybridMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown hybrid mode '{mode}'", entity_type=self._entity_type) from None
