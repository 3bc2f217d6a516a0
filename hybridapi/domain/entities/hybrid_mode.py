"""Hybrid data-source modes and conflict-resolution strategy names."""

from enum import Enum


class HybridMode(str, Enum):
    """Per-operation strategy selecting among local store, remote API, or both."""

    REMOTE_ONLY = "remote_only"
    LOCAL_ONLY = "local_only"
    LOCAL_FIRST = "local_first"          # local store, remote fallback on miss
    REMOTE_FIRST = "remote_first"        # remote (cached), mirrored to local store
    BIDIRECTIONAL = "bidirectional"      # both sides, reconciled by timestamp

    @property
    def uses_remote(self) -> bool:
        return self is not HybridMode.LOCAL_ONLY

    @property
    def uses_local(self) -> bool:
        return self is not HybridMode.REMOTE_ONLY


class ConflictStrategy(str, Enum):
    """Built-in reconciliation strategies for bidirectional sync."""

    TIMESTAMP_WINS = "timestamp_wins"
    REMOTE_WINS = "remote_wins"
    LOCAL_WINS = "local_wins"
