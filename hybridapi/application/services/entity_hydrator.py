"""Entity hydration: raw maps in, typed and persisted-state entities out."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from hybridapi.domain.coercion import coerce
from hybridapi.domain.entities import Entity
from hybridapi.domain.exceptions import HydrationError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class EntityHydrator:
    """Converts raw maps into entities of a declared type.

    Rules:
      * API key mapping is applied before coercion.
      * Declared casts are applied; undeclared fields pass through untouched.
      * Absent fields stay unset (no defaults are invented).
      * An empty map hydrates to ``None``, never to a zero-valued entity.
      * A non-empty map without the primary key fails with ``HydrationError``.
    """

    def hydrate(
        self,
        entity_cls: type[E],
        raw: Mapping[str, Any] | None,
        *,
        apply_mapping: bool = True,
    ) -> E | None:
        if not raw:
            return None
        if not isinstance(raw, Mapping):
            raise HydrationError(
                f"Cannot hydrate {entity_cls.entity_type} from {type(raw).__name__}",
                raw=raw,
                entity_type=entity_cls.entity_type,
                operation="hydrate",
            )

        attributes = self._map_keys(entity_cls, raw) if apply_mapping else dict(raw)
        if attributes.get(entity_cls.primary_key) is None:
            raise HydrationError(
                f"Raw {entity_cls.entity_type} has no '{entity_cls.primary_key}'",
                field=entity_cls.primary_key,
                raw=dict(raw),
                entity_type=entity_cls.entity_type,
                operation="hydrate",
            )

        for field, field_type in entity_cls.casts.items():
            if field not in attributes:
                continue
            try:
                attributes[field] = coerce(attributes[field], field_type)
            except (TypeError, ValueError) as exc:
                raise HydrationError(
                    f"Field '{field}' of {entity_cls.entity_type} cannot be coerced "
                    f"to {field_type.value}: {exc}",
                    field=field,
                    raw=dict(raw),
                    entity_type=entity_cls.entity_type,
                    operation="hydrate",
                ) from exc

        entity = entity_cls()
        entity.replace_attributes(attributes)
        return entity

    def hydrate_many(
        self,
        entity_cls: type[E],
        raws: Iterable[Mapping[str, Any]],
        *,
        apply_mapping: bool = True,
    ) -> list[E]:
        """Hydrate a list, dropping empty maps and records that fail to hydrate."""
        entities: list[E] = []
        for raw in raws:
            try:
                entity = self.hydrate(entity_cls, raw, apply_mapping=apply_mapping)
            except HydrationError as exc:
                logger.warning("Dropping %s record: %s", entity_cls.entity_type, exc)
                continue
            if entity is not None:
                entities.append(entity)
        return entities

    @staticmethod
    def _map_keys(entity_cls: type[Entity], raw: Mapping[str, Any]) -> dict[str, Any]:
        mapping = entity_cls.api_field_mapping
        if not mapping:
            return dict(raw)
        return {mapping.get(key, key): value for key, value in raw.items()}
