"""In-process evaluation of request descriptors against plain attribute maps.

Used by the local path, whose store holds JSON documents rather than typed
columns, so comparisons normalise numbers, booleans and dates first.
"""

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import cmp_to_key
from typing import Any, TypeVar

from hybridapi.domain.coercion import to_json_safe
from hybridapi.domain.entities import (
    Condition,
    Filter,
    FilterGroup,
    FilterOperator,
    Pagination,
    SortDirection,
    SortKey,
)

_MISSING = object()

T = TypeVar("T")


def matches(record: Mapping[str, Any], condition: Condition) -> bool:
    """True if ``record`` satisfies ``condition``."""
    if isinstance(condition, FilterGroup):
        results = (matches(record, member) for member in condition.conditions)
        if condition.boolean == "or":
            return any(results)
        return all(results)
    return _matches_filter(record, condition)


def filter_records(
    records: Iterable[Mapping[str, Any]],
    conditions: Sequence[Condition],
) -> list[Mapping[str, Any]]:
    return [r for r in records if all(matches(r, c) for c in conditions)]


def sort_records(
    records: Iterable[T],
    sort: Sequence[SortKey],
    attributes: Callable[[T], Mapping[str, Any]] | None = None,
) -> list[T]:
    """Multi-key sort in registration order; missing values sort last.

    ``attributes`` maps an item to the fields compared, for items that are
    not plain maps themselves.
    """
    items = list(records)
    if not sort:
        return items
    fields_of = attributes or (lambda item: item)

    def compare(left: T, right: T) -> int:
        left_fields, right_fields = fields_of(left), fields_of(right)
        for key in sort:
            a = _normalise(left_fields.get(key.field))
            b = _normalise(right_fields.get(key.field))
            if a == b:
                continue
            if a is None:
                return 1
            if b is None:
                return -1
            result = _compare(a, b)
            if result is None or result == 0:
                continue
            return -result if key.direction is SortDirection.DESC else result
        return 0

    return sorted(items, key=cmp_to_key(compare))


def paginate(records: list[Any], pagination: Pagination) -> list[Any]:
    if pagination.is_empty:
        return records
    limit, offset = pagination.as_limit_offset()
    start = offset or 0
    if limit is None:
        return records[start:]
    return records[start:start + limit]


# ── Internals ────────────────────────────────────────────────────────


def _matches_filter(record: Mapping[str, Any], condition: Filter) -> bool:
    raw = record.get(condition.field, _MISSING)
    operator = condition.operator

    if operator is FilterOperator.NULL:
        return raw is _MISSING or raw is None
    if operator is FilterOperator.NOT_NULL:
        return raw is not _MISSING and raw is not None
    if raw is _MISSING:
        return operator is FilterOperator.NOT_IN or operator is FilterOperator.NE

    actual = _normalise(raw)
    expected = condition.value

    if operator is FilterOperator.EQ:
        return _equals(actual, _normalise(expected))
    if operator is FilterOperator.NE:
        return not _equals(actual, _normalise(expected))
    if operator is FilterOperator.IN:
        return any(_equals(actual, _normalise(v)) for v in _as_list(expected))
    if operator is FilterOperator.NOT_IN:
        return not any(_equals(actual, _normalise(v)) for v in _as_list(expected))
    if operator is FilterOperator.LIKE:
        return actual is not None and _like(str(actual), str(_normalise(expected)))
    if operator is FilterOperator.CONTAINS:
        return _contains(actual, _normalise(expected))

    result = _compare(actual, _normalise(expected))
    if result is None:
        return False
    return {
        FilterOperator.GT: result > 0,
        FilterOperator.GTE: result >= 0,
        FilterOperator.LT: result < 0,
        FilterOperator.LTE: result <= 0,
    }[operator]


def _normalise(value: Any) -> Any:
    value = to_json_safe(value)
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"-?\d+(\.\d+)?", text):
            number = float(text)
            return int(number) if number.is_integer() and "." not in text else number
    return value


def _equals(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return _as_bool(a) == _as_bool(b)
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return float(a) == float(b)
    return a == b


def _as_bool(value: Any) -> Any:
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return value


def _compare(a: Any, b: Any) -> int | None:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return (a > b) - (a < b)
    if isinstance(a, str) and isinstance(b, str):
        return (a > b) - (a < b)
    return None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    return [value]


def _like(text: str, pattern: str) -> bool:
    regex = "".join(
        ".*" if ch == "%" else "." if ch == "_" else re.escape(ch)
        for ch in pattern
    )
    return re.fullmatch(regex, text, flags=re.IGNORECASE | re.DOTALL) is not None


def _contains(actual: Any, needle: Any) -> bool:
    if isinstance(actual, list):
        return any(_equals(_normalise(item), needle) for item in actual)
    if isinstance(actual, dict):
        return str(needle) in actual
    if actual is None:
        return False
    return str(needle).lower() in str(actual).lower()
