"""Shape-only normalisation of remote API response envelopes."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_LIST_CONTAINER_KEYS = ("data", "items", "results", "records", "content")

_TOTAL_KEYS = ("total", "total_count", "totalCount", "count", "total_items")
_AGGREGATE_KEYS = ("aggregate", "result", "value")


class ResponseNormalizer:
    """Turns any accepted response shape into a flat list of raw maps.

    Accepted shapes are a map with a list-container key (plus metadata), a
    bare list, or a single map. Anything else is treated as "not found".
    The normalizer never coerces or validates field values.
    """

    def __init__(self, list_container_keys: Iterable[str] = DEFAULT_LIST_CONTAINER_KEYS):
        self._container_keys = tuple(list_container_keys)

    def normalize(self, envelope: Any) -> list[dict[str, Any]]:
        if isinstance(envelope, list):
            return self._maps_only(envelope)
        if not isinstance(envelope, Mapping):
            if envelope is not None:
                logger.debug("Unrecognised response shape %s → empty", type(envelope).__name__)
            return []
        if not envelope:
            return []

        for key in self._container_keys:
            if key not in envelope:
                continue
            container = envelope[key]
            if container is None:
                return []
            if isinstance(container, list):
                return self._maps_only(container)
            if isinstance(container, Mapping):
                return [dict(container)] if container else []
            # A scalar under a container key is metadata, keep looking.
        return [dict(envelope)]

    def normalize_single(self, envelope: Any) -> dict[str, Any] | None:
        """First raw map of the envelope, or None when it holds none."""
        items = self.normalize(envelope)
        return items[0] if items else None

    def extract_total(self, envelope: Any, fallback: int) -> int:
        """Total record count reported by the envelope metadata, else ``fallback``."""
        if not isinstance(envelope, Mapping):
            return fallback
        candidates: list[Mapping[str, Any]] = []
        meta = envelope.get("meta")
        if isinstance(meta, Mapping):
            pagination = meta.get("pagination")
            if isinstance(pagination, Mapping):
                candidates.append(pagination)
            candidates.append(meta)
        candidates.append(envelope)
        for source in candidates:
            for key in _TOTAL_KEYS:
                value = source.get(key)
                if isinstance(value, bool):
                    continue
                if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
                    return int(value)
        return fallback

    def extract_aggregate(self, envelope: Any, function: str) -> Any:
        """Aggregate value from an aggregate response, or None when absent.

        Understands a bare scalar, ``{"<function>": v}``, ``{"aggregate": v}``,
        ``{"result": v}``, ``{"value": v}`` and the same keys nested under
        ``data`` or ``meta``.
        """
        if isinstance(envelope, bool) or isinstance(envelope, (int, float, str)):
            return envelope
        if not isinstance(envelope, Mapping):
            return None
        for source in (envelope, envelope.get("data"), envelope.get("meta")):
            if not isinstance(source, Mapping):
                continue
            for key in (function, *_AGGREGATE_KEYS):
                if key not in source:
                    continue
                value = source[key]
                if isinstance(value, Mapping) and function in value:
                    return value[function]
                return value
        return None

    @staticmethod
    def _maps_only(items: list[Any]) -> list[dict[str, Any]]:
        maps = [dict(item) for item in items if isinstance(item, Mapping)]
        if len(maps) != len(items):
            logger.debug("Dropped %d non-map item(s) from response list", len(items) - len(maps))
        return maps
