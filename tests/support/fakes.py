"""In-memory fakes implementing the engine ports."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from hybridapi.application.interfaces import (
    EventSink,
    LocalStore,
    OperationEvent,
    Transport,
    TransportResponse,
)
from hybridapi.application.services import record_filter
from hybridapi.config import Settings
from hybridapi.domain.entities import Condition, Entity, LocalRecord
from hybridapi.domain.exceptions import TransportError


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the environment's overrides file, with instant retries."""
    values: dict[str, Any] = {
        "settings_file": "does-not-exist/settings.json",
        "max_retries": 2,
        "retry_delay": 0.0,
        "retry_max_delay": 0.0,
        "cache_default_ttl": 60.0,
    }
    values.update(overrides)
    return Settings(**values)


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemoteApi(Transport):
    """A tiny REST API over in-memory collections.

    ``GET /things`` returns ``{"data": [...], "meta": {"total": n}}``,
    ``GET /things/<id>`` the bare object or 404, and writes behave like a
    typical JSON API. ``offline`` makes every call fail with TransportError;
    ``fail_next`` queues failures (exceptions or status codes).
    """

    def __init__(self):
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.keys: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self.offline = False
        self._failures: list[Any] = []
        self._next_id = 1000

    def seed(self, endpoint: str, items: Iterable[dict[str, Any]], key: str = "id") -> None:
        collection = self.collections.setdefault(endpoint.strip("/"), {})
        self.keys[endpoint.strip("/")] = key
        for item in items:
            collection[str(item[key])] = dict(item)

    def fail_next(self, *failures: Any) -> None:
        self._failures.extend(failures)

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]

    async def execute(
        self,
        method: str,
        path: str,
        *,
        query_params: dict[str, str] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        self.calls.append(
            {
                "method": method,
                "path": path,
                "params": dict(query_params or {}),
                "body": body,
                "headers": dict(headers or {}),
                "timeout": timeout,
            }
        )
        if self.offline:
            raise TransportError(f"{method} {path}: connection refused")
        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, BaseException):
                raise failure
            return TransportResponse(status_code=failure, body={"message": "scripted failure"})

        parts = path.strip("/").split("/")
        collection = self.collections.setdefault(parts[0], {})
        identity = parts[1] if len(parts) > 1 else None

        if method == "GET" and identity is None:
            params = query_params or {}
            if any(key.startswith("aggregate[") for key in params):
                return TransportResponse(200, {"aggregate": len(collection)})
            items = list(collection.values())
            return TransportResponse(200, {"data": items, "meta": {"total": len(items)}})
        if method == "GET":
            if identity not in collection:
                return TransportResponse(404, {"message": "Not found"})
            return TransportResponse(200, dict(collection[identity]))
        if method == "POST":
            key = self.keys.get(parts[0], "id")
            item = dict(body or {})
            item.setdefault(key, self._next_id)
            self._next_id += 1
            collection[str(item[key])] = item
            return TransportResponse(201, {"data": dict(item)})
        if method in ("PUT", "PATCH"):
            if identity not in collection:
                return TransportResponse(404, {"message": "Not found"})
            if method == "PUT":
                collection[identity] = dict(body or {})
            else:
                collection[identity].update(body or {})
            return TransportResponse(200, dict(collection[identity]))
        if method == "DELETE":
            if collection.pop(identity, None) is None:
                return TransportResponse(404, {"message": "Not found"})
            return TransportResponse(204, None)
        return TransportResponse(405, {"message": f"{method} not allowed"})


class FakeLocalStore(LocalStore):
    """Dictionary-backed local store. ``broken`` makes every call raise."""

    def __init__(self):
        self.records: dict[tuple[str, str], LocalRecord] = {}
        self.broken = False
        self.writes = 0

    def put(self, entity_type: str, data: dict[str, Any], last_modified: datetime | None = None,
            key: str = "id") -> None:
        """Seed a record directly, bypassing the engine."""
        identity = str(data[key])
        self.records[(entity_type, identity)] = LocalRecord(
            entity_type=entity_type,
            identity=identity,
            data=dict(data),
            last_modified=last_modified or datetime.now(timezone.utc),
        )

    def _check(self) -> None:
        if self.broken:
            raise RuntimeError("disk I/O error")

    async def find(self, entity_type: str, identity: str) -> LocalRecord | None:
        self._check()
        return self.records.get((entity_type, identity))

    async def query(self, entity_type: str, filters: tuple[Condition, ...] = ()) -> list[LocalRecord]:
        self._check()
        records = [r for (t, _), r in sorted(self.records.items()) if t == entity_type]
        return [r for r in records if all(record_filter.matches(r.data, c) for c in filters)]

    async def upsert(self, record: LocalRecord) -> LocalRecord:
        self._check()
        self.writes += 1
        self.records[(record.entity_type, record.identity)] = record
        return record

    async def delete(self, entity_type: str, identity: str) -> bool:
        self._check()
        return self.records.pop((entity_type, identity), None) is not None

    async def identities(self, entity_type: str) -> set[str]:
        self._check()
        return {identity for (t, identity) in self.records if t == entity_type}


class RecordingEventSink(EventSink):
    def __init__(self):
        self.events: list[tuple[str, OperationEvent]] = []

    def operation_started(self, event: OperationEvent) -> None:
        self.events.append(("started", event))

    def operation_completed(self, event: OperationEvent) -> None:
        self.events.append(("completed", event))

    def operation_failed(self, event: OperationEvent) -> None:
        self.events.append(("failed", event))

    def of(self, kind: str) -> list[OperationEvent]:
        return [event for name, event in self.events if name == kind]


def stored(store: FakeLocalStore, entity_cls: type[Entity], identity: Any) -> dict[str, Any] | None:
    record = store.records.get((entity_cls.entity_type, str(identity)))
    return record.data if record else None
