"""Type coercion rules applied to raw field values during hydration."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """Declared coercion rule for an entity field."""

    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING = "string"
    DATETIME = "datetime"
    DATE = "date"
    JSON = "json"


TRUTHY_TOKENS = frozenset({"true", "1", "yes", "on", "y", "t"})
FALSY_TOKENS = frozenset({"false", "0", "no", "off", "n", "f"})


def coerce(value: Any, field_type: FieldType) -> Any:
    """Coerce ``value`` to ``field_type``.

    ``None`` passes through untouched. Raises ``ValueError`` or ``TypeError``
    when the value cannot be represented in the target type.
    """
    if value is None:
        return None
    converter = _CONVERTERS[FieldType(field_type)]
    return converter(value)


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise ValueError(f"{value!r} is not a whole number")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            number = float(text)
            if not number.is_integer():
                raise ValueError(f"{value!r} is not a whole number") from None
            return int(number)
    raise TypeError(f"Cannot convert {type(value).__name__} to integer")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise TypeError(f"Cannot convert {type(value).__name__} to float")


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in TRUTHY_TOKENS:
            return True
        if token in FALSY_TOKENS:
            return False
    raise ValueError(f"{value!r} is not a recognised boolean token")


def _to_string(value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise TypeError("Nested structures cannot be coerced to string")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise TypeError("Booleans cannot be coerced to datetime")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise TypeError(f"Cannot convert {type(value).__name__} to datetime")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return _to_datetime(text).date()
        return date.fromisoformat(text)
    raise TypeError(f"Cannot convert {type(value).__name__} to date")


def _to_json(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, str):
        decoded = json.loads(value)
        if not isinstance(decoded, (dict, list)):
            raise ValueError(f"{value!r} does not decode to a nested structure")
        return decoded
    raise TypeError(f"Cannot convert {type(value).__name__} to a nested structure")


_CONVERTERS = {
    FieldType.INTEGER: _to_integer,
    FieldType.FLOAT: _to_float,
    FieldType.BOOLEAN: _to_boolean,
    FieldType.STRING: _to_string,
    FieldType.DATETIME: _to_datetime,
    FieldType.DATE: _to_date,
    FieldType.JSON: _to_json,
}


def to_json_safe(value: Any) -> Any:
    """Render a value in a JSON-serialisable form (ISO strings for dates)."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_json_safe(v) for v in value)
    return value


def as_utc(moment: datetime | None) -> datetime | None:
    """Normalise naive datetimes to UTC so they compare with aware ones."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
