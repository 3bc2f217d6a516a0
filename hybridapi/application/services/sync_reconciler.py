"""Sync reconciler: picks one authoritative version of a diverging identity.

Strategies receive a :class:`ConflictRecord` and return the winning
:class:`Side`, or ``None`` to decline. The reconciler writes the winner to
the losing side and never writes when both versions already agree, so a
second reconciliation of the same pair has no side effects.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from hybridapi.domain.coercion import as_utc
from hybridapi.domain.entities import ConflictRecord, ConflictStrategy, Entity, Resolution, Side
from hybridapi.domain.exceptions import ConflictUnresolvedError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

Strategy = Callable[[ConflictRecord], Side | None]
Writer = Callable[[Entity, datetime | None], Awaitable[Any]]


def timestamp_wins(conflict: ConflictRecord) -> Side:
    """Strictly newer side wins; ties and unknown timestamps go to the remote."""
    local = as_utc(conflict.local_modified)
    remote = as_utc(conflict.remote_modified)
    if local is not None and (remote is None or local > remote):
        return Side.LOCAL
    return Side.REMOTE


def remote_wins(conflict: ConflictRecord) -> Side:
    return Side.REMOTE


def local_wins(conflict: ConflictRecord) -> Side:
    return Side.LOCAL


class SyncReconciler:
    """Resolves conflicts with a named strategy and propagates the winner."""

    _strategies: dict[str, Strategy] = {
        ConflictStrategy.TIMESTAMP_WINS.value: timestamp_wins,
        ConflictStrategy.REMOTE_WINS.value: remote_wins,
        ConflictStrategy.LOCAL_WINS.value: local_wins,
    }

    def __init__(self, default_strategy: str = ConflictStrategy.TIMESTAMP_WINS.value):
        self._strategies = dict(type(self)._strategies)
        self._default_strategy = default_strategy

    def register_strategy(self, name: str, strategy: Strategy) -> None:
        """Add a custom strategy selectable by name in configuration."""
        self._strategies[name] = strategy

    def strategy(self, name: str | None = None) -> Strategy:
        key = name or self._default_strategy
        try:
            return self._strategies[key]
        except KeyError:
            raise ConflictUnresolvedError(f"Unknown conflict strategy '{key}'") from None

    def diverges(self, local: Entity, remote: Entity) -> bool:
        return local.comparable() != remote.comparable()

    def decide(self, conflict: ConflictRecord, strategy: str | None = None) -> Side:
        """Pick the winning side without writing anything."""
        side = self.strategy(strategy)(conflict)
        if side is None:
            raise ConflictUnresolvedError(
                f"Strategy '{strategy or self._default_strategy}' declined to resolve "
                f"{conflict.entity_type} '{conflict.identity}'",
                identity=conflict.identity,
                entity_type=conflict.entity_type,
                operation="reconcile",
            )
        return Side(side)

    async def reconcile(
        self,
        entity_cls: type[E],
        identity: Any,
        local: E,
        remote: E,
        *,
        local_modified: datetime | None,
        remote_modified: datetime | None,
        write_local: Writer,
        write_remote: Writer,
        strategy: str | None = None,
    ) -> Resolution:
        """Resolve ``local`` against ``remote`` and write the winner to the losing side."""
        if not self.diverges(local, remote):
            return Resolution(winner=remote, winning_side=Side.REMOTE)

        conflict = ConflictRecord(
            entity_type=entity_cls.entity_type,
            identity=identity,
            local=local,
            remote=remote,
            local_modified=local_modified,
            remote_modified=remote_modified,
        )
        side = self.decide(conflict, strategy)
        if side is Side.REMOTE:
            logger.info(
                "Reconciled %s '%s': remote wins (remote=%s, local=%s)",
                entity_cls.entity_type, identity, remote_modified, local_modified,
            )
            await write_local(remote, remote_modified)
            return Resolution(winner=remote, winning_side=Side.REMOTE, written_to=Side.LOCAL)

        logger.info(
            "Reconciled %s '%s': local wins (local=%s, remote=%s)",
            entity_cls.entity_type, identity, local_modified, remote_modified,
        )
        await write_remote(local, local_modified)
        return Resolution(winner=local, winning_side=Side.LOCAL, written_to=Side.REMOTE)
