"""Entity model: a typed record with declared fields, coercion rules and identity.

Concrete entity types subclass :class:`Entity` and declare their schema as
class attributes::

    class Product(Entity):
        endpoint = "/products"
        fillable = ("name", "price", "active")
        casts = {"id": FieldType.INTEGER, "price": FieldType.FLOAT}

Every concrete subclass is registered in :class:`EntityRegistry` under its
``entity_type`` so it can be resolved by name.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, ClassVar
from uuid import uuid4

from hybridapi.domain.coercion import FieldType, as_utc, coerce, to_json_safe
from hybridapi.domain.entities.cache_entry import identity_tag, type_tag
from hybridapi.domain.entities.hybrid_mode import HybridMode
from hybridapi.domain.entities.request_descriptor import ArrayStyle
from hybridapi.domain.exceptions import UnknownEntityTypeError, ValidationError

_MISSING = object()
_INSTANCE_SLOTS = frozenset({"_attributes", "_original", "_dirty", "exists"})


class EntityRegistry:
    """Registry of entity types, keyed by ``entity_type``."""

    _entities: dict[str, type["Entity"]] = {}

    @classmethod
    def register(cls, entity_cls: type["Entity"]) -> None:
        cls._entities[entity_cls.entity_type] = entity_cls

    @classmethod
    def get(cls, entity_type: str) -> type["Entity"]:
        try:
            return cls._entities[entity_type]
        except KeyError:
            raise UnknownEntityTypeError(entity_type) from None

    @classmethod
    def contains(cls, entity_type: str) -> bool:
        return entity_type in cls._entities

    @classmethod
    def entity_types(cls) -> list[str]:
        return sorted(cls._entities)


class Entity:
    """Base class for API-backed records."""

    entity_type: ClassVar[str] = "entity"
    endpoint: ClassVar[str | None] = None
    primary_key: ClassVar[str] = "id"
    fillable: ClassVar[tuple[str, ...]] = ()
    casts: ClassVar[dict[str, FieldType]] = {}
    timestamp_field: ClassVar[str] = "updated_at"
    created_field: ClassVar[str] = "created_at"
    read_only_fields: ClassVar[tuple[str, ...]] = ("created_at", "updated_at", "deleted_at")
    api_field_mapping: ClassVar[dict[str, str]] = {}
    array_styles: ClassVar[dict[str, ArrayStyle]] = {}
    hybrid_mode: ClassVar[HybridMode | None] = None
    cache_ttl: ClassVar[float | None] = None
    partial_updates: ClassVar[bool] = False
    # Zero-argument callable producing identities for records created offline.
    identity_factory: ClassVar[Callable[[], Any] | None] = None
    abstract: ClassVar[bool] = True

    _named_filters: ClassVar[dict[str, Callable[..., Any]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "entity_type" not in cls.__dict__:
            cls.entity_type = _snake_case(cls.__name__)
        if "abstract" not in cls.__dict__:
            cls.abstract = False
        # Each type gets its own copy so named filters never leak to siblings.
        cls._named_filters = dict(cls._named_filters)
        if not cls.abstract:
            EntityRegistry.register(cls)

    def __init__(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any):
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_original", {})
        object.__setattr__(self, "_dirty", set())
        object.__setattr__(self, "exists", False)
        values = {**(attributes or {}), **kwargs}
        if values:
            self.fill(values)

    # ── Schema helpers ───────────────────────────────────────────────

    @classmethod
    def resolve_endpoint(cls) -> str:
        """Configured endpoint, or ``/`` + pluralised kebab-case class name."""
        if cls.endpoint:
            return "/" + cls.endpoint.strip("/")
        return "/" + _pluralize(_snake_case(cls.__name__).replace("_", "-"))

    @classmethod
    def declared_fields(cls) -> set[str]:
        return {
            cls.primary_key,
            cls.timestamp_field,
            cls.created_field,
            *cls.fillable,
            *cls.casts,
        }

    @classmethod
    def new_identity(cls) -> Any:
        """Identity for a record the remote API has not numbered.

        Uses ``identity_factory`` when declared, else a UUID string. Numeric
        keys have no sensible default and must be supplied by the caller.
        """
        key_type = cls.casts.get(cls.primary_key)
        if cls.identity_factory is not None:
            identity = cls.identity_factory()
            return coerce(identity, key_type) if key_type is not None else identity
        if key_type in (FieldType.INTEGER, FieldType.FLOAT):
            raise ValidationError(
                f"{cls.entity_type} has a numeric '{cls.primary_key}'; set it explicitly "
                f"or declare an identity_factory to write without the remote API",
                entity_type=cls.entity_type,
                operation="create",
            )
        return str(uuid4())

    @classmethod
    def named_filter(cls, name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a named filter ``(query, *args) -> query`` on this entity type."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            cls._named_filters[name or func.__name__] = func
            return func

        return decorator

    @classmethod
    def get_named_filter(cls, name: str) -> Callable[..., Any]:
        try:
            return cls._named_filters[name]
        except KeyError:
            raise ValidationError(
                f"No named filter '{name}' registered", entity_type=cls.entity_type
            ) from None

    # ── Attribute access ─────────────────────────────────────────────

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        attributes = self.__dict__.get("_attributes", {})
        if name in attributes:
            return attributes[name]
        if name in type(self).declared_fields():
            return None
        raise AttributeError(f"{type(self).__name__} has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _INSTANCE_SLOTS or name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def get(self, field: str, default: Any = None) -> Any:
        return self._attributes.get(field, default)

    def has(self, field: str) -> bool:
        return field in self._attributes

    def set(self, field: str, value: Any) -> "Entity":
        """Assign one field and track it as dirty when the value changed."""
        if not field:
            raise ValidationError("Field name must not be empty", entity_type=self.entity_type)
        if field == self.primary_key and self.exists:
            current = self._attributes.get(field)
            if current is not None and value != current:
                raise ValidationError(
                    f"Identity of a persisted {self.entity_type} cannot change "
                    f"({current!r} -> {value!r})",
                    entity_type=self.entity_type,
                )
        self._attributes[field] = value
        if self._original.get(field, _MISSING) != value:
            self._dirty.add(field)
        else:
            self._dirty.discard(field)
        return self

    def unset(self, field: str) -> "Entity":
        if field == self.primary_key and self.exists:
            raise ValidationError(
                f"Identity of a persisted {self.entity_type} cannot be removed",
                entity_type=self.entity_type,
            )
        self._attributes.pop(field, None)
        if field in self._original:
            self._dirty.add(field)
        else:
            self._dirty.discard(field)
        return self

    def fill(self, values: Mapping[str, Any]) -> "Entity":
        """Mass-assign fillable fields. Unknown fields fail fast."""
        allowed = set(self.fillable) | {self.primary_key} if self.fillable else None
        for field, value in values.items():
            if allowed is not None and field not in allowed:
                raise ValidationError(
                    f"Field '{field}' is not fillable", entity_type=self.entity_type
                )
            self.set(field, value)
        return self

    @property
    def key(self) -> Any:
        return self._attributes.get(self.primary_key)

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    @property
    def dirty(self) -> frozenset[str]:
        return frozenset(self._dirty)

    def is_dirty(self, field: str | None = None) -> bool:
        if field is None:
            return bool(self._dirty)
        return field in self._dirty

    # ── Lifecycle ────────────────────────────────────────────────────

    def sync_original(self) -> None:
        object.__setattr__(self, "_original", copy.deepcopy(self._attributes))
        self._dirty.clear()

    def mark_persisted(self) -> None:
        object.__setattr__(self, "exists", True)
        self.sync_original()

    def mark_deleted(self) -> None:
        """Detach the entity from its store-backed identity."""
        object.__setattr__(self, "exists", False)
        self._attributes.pop(self.primary_key, None)
        object.__setattr__(self, "_original", {})
        self._dirty.clear()

    def replace_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Overwrite all attributes with an authoritative version (e.g. a save response)."""
        object.__setattr__(self, "_attributes", dict(attributes))
        self.mark_persisted()

    # ── Capabilities ─────────────────────────────────────────────────

    def last_modified(self) -> datetime | None:
        """Last-modified timestamp (``timestamp_field``, falling back to ``created_field``)."""
        for field in (self.timestamp_field, self.created_field):
            value = self._attributes.get(field)
            if value is None:
                continue
            try:
                return as_utc(coerce(value, FieldType.DATETIME))
            except (TypeError, ValueError):
                continue
        return None

    def cache_tags(self) -> set[str]:
        tags = {type_tag(self.entity_type)}
        if self.key is not None:
            tags.add(identity_tag(self.entity_type, self.key))
        return tags

    def related_entities(self) -> Iterable["Entity"]:
        """Entities whose cached copies must be invalidated alongside this one."""
        return ()

    # ── Serialisation ────────────────────────────────────────────────

    def to_payload(self, *, only_dirty: bool = False) -> dict[str, Any]:
        """Outgoing API body: read-only fields dropped, API key names restored."""
        reverse_mapping = {attr: api for api, attr in self.api_field_mapping.items()}
        payload: dict[str, Any] = {}
        for field, value in self._attributes.items():
            if field in self.read_only_fields:
                continue
            if only_dirty and field not in self._dirty and field != self.primary_key:
                continue
            payload[reverse_mapping.get(field, field)] = to_json_safe(value)
        return payload

    def to_storage(self) -> dict[str, Any]:
        """All attributes in a JSON-safe form, keyed by attribute name."""
        return to_json_safe(self._attributes)

    def comparable(self) -> dict[str, Any]:
        """Attributes that take part in divergence checks (read-only fields excluded)."""
        return {
            field: value
            for field, value in self.to_storage().items()
            if field not in self.read_only_fields
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.primary_key}={self.key!r}, exists={self.exists})>"


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _pluralize(word: str) -> str:
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"
