"""Per-category log levels for the engine and the libraries it drives.

Each Settings ``log_level_*`` field owns a group of logger names, so SQL
echo, outbound HTTP chatter and the operation event stream can be tuned
independently. ``setup_logging`` is called from the FastAPI lifespan;
scripts and tests may call it directly with their own Settings.
"""

import logging
import sys

from hybridapi.config import Settings, get_settings

_HANDLER_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_HANDLER_DATEFMT = "%H:%M:%S"

_CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_engine": (
        "hybridapi.application.services",
        "hybridapi.infrastructure.cache",
        "hybridapi.infrastructure.database",
    ),
    "log_level_remote": (
        "hybridapi.application.services.remote_executor",
        "hybridapi.infrastructure.http",
    ),
    "log_level_events": ("hybridapi.events",),
}


def category_levels(settings: Settings) -> dict[str, int]:
    """Resolved level for every logger name the categories cover."""
    levels: dict[str, int] = {}
    for field, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, field))
        levels.update(dict.fromkeys(logger_names, level))
    return levels


def setup_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    if not root.handlers:
        # uvicorn installs its own handlers; bare scripts and tests do not
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_HANDLER_FORMAT, _HANDLER_DATEFMT))
        root.addHandler(handler)

    levels = category_levels(settings)
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s %s",
        settings.log_level,
        " ".join(f"{field.removeprefix('log_level_')}={getattr(settings, field)}" for field in _CATEGORY_MAP),
    )


def _parse_level(raw: str) -> int:
    """Level constant for a name such as ``"warning"``; unknown names mean INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
