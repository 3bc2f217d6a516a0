"""Colored engine logger: ANSI-colored console output for engine operations.

Color scheme:
    🔵 Blue    — Routing decisions
    🟡 Yellow  — Cache hits, misses, invalidation
    🟣 Magenta — Remote API calls
    🟢 Green   — Local store access
    🟠 Cyan    — Synchronization
    🔴 Red     — Errors
    ⚪ Gray    — Details
"""

import logging
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


# ── Stage Definitions ────────────────────────────────────────────────

class EngineStage:
    """Predefined engine stages with colors and icons."""

    ROUTER = ("ROUTER", _Colors.BLUE, "🧭")
    CACHE = ("CACHE", _Colors.YELLOW, "🗃️")
    REMOTE = ("REMOTE", _Colors.MAGENTA, "🌐")
    LOCAL = ("LOCAL", _Colors.GREEN, "💾")
    SYNC = ("SYNC", _Colors.CYAN, "🔄")
    ERROR = ("ERROR", _Colors.RED, "❌")

    @classmethod
    def for_source(cls, source: str | None) -> tuple[str, str, str]:
        """Stage matching an event source ("remote", "local", "cache", ...)."""
        return {
            "remote": cls.REMOTE,
            "local": cls.LOCAL,
            "cache": cls.CACHE,
            "sync": cls.SYNC,
        }.get(source or "", cls.ROUTER)


# ── EngineLogger ─────────────────────────────────────────────────────

class EngineLogger:
    """Color-coded logger for engine operations.

    Usage:
        log = EngineLogger("hybridapi.events")
        log.step_start(EngineStage.SYNC, "Syncing articles")
        log.step_complete(EngineStage.SYNC, "Synced articles", created=2)
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)
        self._component = component_name

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the start of an operation with its stage color."""
        label, color, icon = stage
        formatted = (
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}"
        )
        self._logger.debug(formatted + _details(kwargs))

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the successful completion of an operation."""
        label, color, icon = stage
        formatted = (
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}"
        )
        self._logger.info(formatted + _details(kwargs))

    def step_error(
        self,
        stage: tuple[str, str, str],
        message: str,
        error: BaseException | None = None,
        *,
        level: int = logging.ERROR,
    ) -> None:
        """Log an operation error in red."""
        label, _, _ = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}❌ [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.log(level, formatted)


def _details(kwargs: dict[str, Any]) -> str:
    if not kwargs:
        return ""
    details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
    return f" {_Colors.GRAY}({details}){_Colors.RESET}"
