"""Client-side aggregate computation for paths that cannot delegate to the API."""

from collections.abc import Iterable, Mapping
from typing import Any

from hybridapi.domain.entities import Aggregate, AggregateFunction


def compute_aggregate(records: Iterable[Mapping[str, Any]], aggregate: Aggregate) -> Any:
    """Aggregate over raw maps. ``None`` values are ignored, as SQL does."""
    rows = list(records)
    if aggregate.function is AggregateFunction.COUNT:
        if aggregate.field == "*":
            return len(rows)
        return sum(1 for row in rows if row.get(aggregate.field) is not None)

    raw_values = [row.get(aggregate.field) for row in rows if row.get(aggregate.field) is not None]
    values = [v for v in (_numeric(raw) for raw in raw_values) if v is not None]
    if not values:
        # Dates and other strings still have an order.
        strings = [str(v) for v in raw_values]
        if strings and aggregate.function is AggregateFunction.MIN:
            return min(strings)
        if strings and aggregate.function is AggregateFunction.MAX:
            return max(strings)
        return None
    if aggregate.function is AggregateFunction.MIN:
        return min(values)
    if aggregate.function is AggregateFunction.MAX:
        return max(values)
    if aggregate.function is AggregateFunction.SUM:
        return sum(values)
    return sum(values) / len(values)


def coerce_aggregate(value: Any, function: AggregateFunction) -> Any:
    """Normalise an aggregate value returned by the API (often a string)."""
    if value is None:
        return 0 if function is AggregateFunction.COUNT else None
    number = _numeric(value)
    if number is None:
        return value
    if function is AggregateFunction.COUNT:
        return int(number)
    return number


def _numeric(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() and "." not in str(value) else number
