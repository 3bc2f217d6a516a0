"""Serialises a RequestDescriptor into flat wire-level query parameters."""

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from hybridapi.domain.entities import (
    ArrayStyle,
    Condition,
    Filter,
    FilterGroup,
    FilterOperator,
    PaginationStyle,
    RequestDescriptor,
    SortDirection,
)
from hybridapi.domain.exceptions import ValidationError


def render_value(value: Any) -> str:
    """Render a scalar as the string the remote API expects."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return render_value(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class WireSerializer:
    """Produces the parameter map sent to the transport.

    Filters are emitted in a canonical order so the map does not depend on
    the order builder methods were called in. Sort keys keep their
    registration order.
    """

    def __init__(self, pagination_style: PaginationStyle = PaginationStyle.LIMIT_OFFSET):
        self._pagination_style = PaginationStyle(pagination_style)

    def serialize(self, descriptor: RequestDescriptor) -> dict[str, str]:
        params: dict[str, str] = {}

        plain = sorted(
            (c for c in descriptor.filters if isinstance(c, Filter)),
            key=lambda f: (f.field, f.operator.value),
        )
        for condition in plain:
            key = self._filter_key(condition.field, condition.operator)
            value = self._filter_value(condition, descriptor)
            if key in params and params[key] != value:
                raise ValidationError(
                    f"Conflicting filters on '{condition.field}' ({condition.operator.value})",
                    entity_type=descriptor.entity_type,
                )
            params[key] = value

        groups = sorted(
            (self._group_params(g, descriptor) for g in descriptor.filters if isinstance(g, FilterGroup)),
            key=lambda entries: repr(entries),
        )
        for index, entries in enumerate(groups):
            for suffix, value in entries:
                params[f"filter[{index}]{suffix}"] = value

        params.update(self._sort_params(descriptor))

        if descriptor.aggregate is not None:
            function = descriptor.aggregate.function.value
            params[f"aggregate[{function}]"] = descriptor.aggregate.field
        else:
            params.update(self._pagination_params(descriptor))

        if descriptor.fields:
            params["fields"] = ",".join(descriptor.fields)

        for key, value in descriptor.extra_params:
            params[key] = self._render_any(value)
        return params

    # ── Filters ──────────────────────────────────────────────────────

    @staticmethod
    def _filter_key(field: str, operator: FilterOperator) -> str:
        if operator in (FilterOperator.EQ, FilterOperator.IN):
            return field
        return f"{field}[{operator.value}]"

    def _filter_value(self, condition: Filter, descriptor: RequestDescriptor) -> str:
        if condition.operator.is_null_check:
            return "true"
        if condition.operator.is_membership or isinstance(condition.value, (list, tuple, set, frozenset)):
            style = descriptor.array_style_for(condition.field)
            return self._join(condition.value, style)
        return render_value(condition.value)

    def _group_params(self, group: FilterGroup, descriptor: RequestDescriptor) -> tuple[tuple[str, str], ...]:
        """Flatten a group into ``([<bool>][<j>]...[field][op], value)`` pairs."""
        members: list[tuple[tuple[str, str], ...]] = []
        for condition in group.conditions:
            members.append(self._condition_entries(condition, descriptor))
        members.sort(key=repr)

        entries: list[tuple[str, str]] = []
        for position, member in enumerate(members):
            for suffix, value in member:
                entries.append((f"[{group.boolean}][{position}]{suffix}", value))
        return tuple(entries)

    def _condition_entries(self, condition: Condition, descriptor: RequestDescriptor) -> tuple[tuple[str, str], ...]:
        if isinstance(condition, FilterGroup):
            return self._group_params(condition, descriptor)
        suffix = f"[{condition.field}]"
        if condition.operator not in (FilterOperator.EQ, FilterOperator.IN):
            suffix += f"[{condition.operator.value}]"
        return ((suffix, self._filter_value(condition, descriptor)),)

    # ── Sort & pagination ────────────────────────────────────────────

    @staticmethod
    def _sort_params(descriptor: RequestDescriptor) -> dict[str, str]:
        if not descriptor.sort:
            return {}
        if len(descriptor.sort) == 1:
            key = descriptor.sort[0]
            return {"sort": key.field, "order": key.direction.value}
        return {
            "sort": ",".join(
                f"-{key.field}" if key.direction is SortDirection.DESC else key.field
                for key in descriptor.sort
            )
        }

    def _pagination_params(self, descriptor: RequestDescriptor) -> dict[str, str]:
        pagination = descriptor.pagination
        if pagination.is_empty:
            return {}
        params: dict[str, str] = {}
        if self._pagination_style is PaginationStyle.PAGE:
            self._require_page_aligned(descriptor)
            page, per_page = pagination.as_page()
            if page is not None:
                params["page"] = str(page)
            if per_page is not None:
                params["per_page"] = str(per_page)
        else:
            limit, offset = pagination.as_limit_offset()
            if limit is not None:
                params["limit"] = str(limit)
            if offset is not None:
                params["offset"] = str(offset)
        return params

    @staticmethod
    def _require_page_aligned(descriptor: RequestDescriptor) -> None:
        """A limit/offset window must start on a page boundary to be sent as page/per_page."""
        pagination = descriptor.pagination
        if pagination.uses_pages or not pagination.offset:
            return
        if not pagination.limit or pagination.offset % pagination.limit:
            raise ValidationError(
                f"Offset {pagination.offset} with limit {pagination.limit} does not fall on a page "
                f"boundary; the API only accepts page/per_page",
                entity_type=descriptor.entity_type,
                operation="serialize",
            )

    # ── Values ───────────────────────────────────────────────────────

    @staticmethod
    def _join(values: Any, style: ArrayStyle) -> str:
        if isinstance(values, (str, bytes)) or not isinstance(values, (Sequence, set, frozenset)):
            return render_value(values)
        rendered = [render_value(v) for v in values]
        if isinstance(values, (set, frozenset)):
            rendered.sort()
        return style.delimiter.join(rendered)

    def _render_any(self, value: Any) -> str:
        if isinstance(value, (list, tuple, set, frozenset)):
            return self._join(value, ArrayStyle.CSV)
        return render_value(value)
