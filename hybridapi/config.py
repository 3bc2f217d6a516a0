import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from hybridapi.domain.coercion import FieldType, coerce
from hybridapi.domain.entities import ConflictStrategy, HybridMode, PaginationStyle

_config_logger = logging.getLogger(__name__)

_PROJECT_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _PROJECT_DIR / ".env",
    ".env",
)
_OVERRIDE_KEYS = frozenset({
    "default_mode",
    "conflict_strategy",
    "cache_default_ttl",
    "cache_enabled",
})


class EntityTypeSettings(BaseModel):
    """Per-entity-type overrides. Unset fields fall back to class defaults, then globals."""

    mode: HybridMode | None = None
    cache_ttl: float | None = None
    conflict_strategy: str | None = None
    sync_enabled: bool = True
    persist_fallback_results: bool | None = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Hybrid API Engine"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///./hybridapi.db"

    # Remote API
    api_base_url: str = "http://localhost:8080/api"
    api_timeout: float = 30.0
    api_connect_timeout: float = 10.0
    api_default_headers: dict[str, str] = {"Accept": "application/json"}

    # Authentication: none | bearer | api_key | basic
    api_auth_strategy: str = "none"
    api_token: str = ""
    api_key: str = ""
    api_key_header: str = "X-API-Key"
    api_key_in_query: bool = False
    api_username: str = ""
    api_password: str = ""

    # Retries at the remote executor boundary
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_max_delay: float = 30.0

    # Hybrid routing
    default_mode: HybridMode = HybridMode.REMOTE_ONLY
    conflict_strategy: str = ConflictStrategy.TIMESTAMP_WINS.value
    persist_fallback_results: bool = True
    entities: dict[str, EntityTypeSettings] = {}

    # Cache
    cache_enabled: bool = True
    cache_default_ttl: float = 3600.0
    cache_prefix: str = "hybridapi"
    cache_persistent: bool = False

    # Wire format
    list_container_keys: list[str] = ["data", "items", "results", "records", "content"]
    pagination_style: PaginationStyle = PaginationStyle.LIMIT_OFFSET

    # Runtime overrides file (JSON)
    settings_file: str = "data/settings.json"

    # Per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine SQL echo
    log_level_http: str = "WARNING"          # httpx / httpcore
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_engine: str = "INFO"           # router, cache, reconciler
    log_level_remote: str = "INFO"           # remote executor + transport
    log_level_events: str = "INFO"           # operation event sink

    model_config = SettingsConfigDict(
        env_prefix="HYBRIDAPI_",
        env_nested_delimiter="__",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def model_post_init(self, __context: object) -> None:
        """Merge runtime overrides from the JSON settings file."""
        path = Path(self.settings_file)
        if not path.exists():
            return
        try:
            overrides = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError) as exc:
            _config_logger.warning("Could not load settings overrides: %s", exc)
            return
        if not isinstance(overrides, dict):
            _config_logger.warning("Ignoring settings overrides in %s: not an object", path)
            return
        for key in _OVERRIDE_KEYS & overrides.keys():
            try:
                object.__setattr__(self, key, self._coerce_override(key, overrides[key]))
            except (TypeError, ValueError) as exc:
                _config_logger.warning("Ignoring settings override '%s': %s", key, exc)
        for entity_type, entry in (overrides.get("entities") or {}).items():
            if not isinstance(entry, dict):
                continue
            merged = {**self.entity_settings(entity_type).model_dump(exclude_unset=True), **entry}
            try:
                self.entities[entity_type] = EntityTypeSettings.model_validate(merged)
            except ValueError as exc:
                _config_logger.warning("Ignoring overrides for entity type '%s': %s", entity_type, exc)

    @staticmethod
    def _coerce_override(key: str, raw: object) -> object:
        if key == "default_mode":
            return HybridMode(raw)
        if key == "cache_default_ttl":
            return float(raw)  # type: ignore[arg-type]
        if key == "cache_enabled":
            return coerce(raw, FieldType.BOOLEAN)
        return str(raw)

    def entity_settings(self, entity_type: str) -> EntityTypeSettings:
        """Configured overrides for one entity type (empty defaults when absent)."""
        return self.entities.get(entity_type) or EntityTypeSettings()


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance, reads .env once."""
    return Settings()
