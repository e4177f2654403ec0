"""Source registry: named database targets with their own permissions.

Configuration layers, highest precedence first:

1. inline JSON from MYSQL_SOURCES / SQLGATE_SOURCES (replaces a whole source)
2. config file (MYSQL_MCP_CONFIG_PATH or SQLGATE_CONFIG_PATH, else
   ./.sqlgate/config.json)
3. base values from environment variables (per-field fallback)

The registry is built once at startup and never mutated.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sqlgate.config import GatewaySettings
from sqlgate.governance.policy import PermissionPolicy
from sqlgate.utils.errors import ConfigurationError, UnknownSourceError

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_NAME = "default"
DEFAULT_CONFIG_RELPATH = Path(".sqlgate") / "config.json"


@dataclass(frozen=True)
class ConnectionConfig:
    host: str = "127.0.0.1"
    user: str = "postgres"
    password: str = field(default="", repr=False)
    port: int = 5432
    database: Optional[str] = None
    connection_limit: int = 10
    queue_limit: int = 0
    wait_for_connections: bool = True

    def summary(self) -> str:
        """``user@host:port/database`` without the password."""
        db = f"/{self.database}" if self.database else ""
        return f"{self.user}@{self.host}:{self.port}{db}"


@dataclass(frozen=True)
class Source:
    name: str
    connection: ConnectionConfig
    permissions: PermissionPolicy


@dataclass(frozen=True)
class ServerConfig:
    """Raw configuration read from the config file or inline override."""

    sources: Mapping[str, Any] = field(default_factory=dict)
    default_source: Optional[str] = None
    path: Optional[str] = None


# ── Raw (file / inline) shapes ────────────────────────────────────────


class RawConnection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    connection_limit: Optional[int] = Field(default=None, alias="connectionLimit", ge=1)
    queue_limit: Optional[int] = Field(default=None, alias="queueLimit", ge=0)
    wait_for_connections: Optional[bool] = Field(
        default=None, alias="waitForConnections"
    )


class RawPermissions(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    allowed_sql_types: Optional[list[str]] = Field(default=None, alias="allowedSqlTypes")
    table_patterns: Optional[list[str]] = Field(default=None, alias="tablePatterns")
    allowed_databases: Optional[list[str]] = Field(
        default=None, alias="allowedDatabases"
    )
    allow_multi_statement: Optional[bool] = Field(
        default=None, alias="allowMultiStatement"
    )
    read_only: Optional[bool] = Field(default=None, alias="readOnly")


class RawSourceDefinition(RawConnection):
    """A source entry. Connection fields may be nested or flat."""

    connection: Optional[RawConnection] = None
    permissions: Optional[RawPermissions] = None

    def connection_fields(self) -> RawConnection:
        return self.connection if self.connection is not None else self


# ── Field-level resolution ────────────────────────────────────────────


def _pick(value, fallback):
    return fallback if value is None else value


def resolve_connection(raw: RawConnection, base: ConnectionConfig) -> ConnectionConfig:
    return ConnectionConfig(
        host=_pick(raw.host, base.host),
        user=_pick(raw.user, base.user),
        password=_pick(raw.password, base.password),
        port=_pick(raw.port, base.port),
        database=_pick(raw.database, base.database),
        connection_limit=_pick(raw.connection_limit, base.connection_limit),
        queue_limit=_pick(raw.queue_limit, base.queue_limit),
        wait_for_connections=_pick(raw.wait_for_connections, base.wait_for_connections),
    )


def resolve_permissions(
    raw: Optional[RawPermissions], base: PermissionPolicy
) -> PermissionPolicy:
    if raw is None:
        return base

    def _clean(values: Optional[list[str]], fallback: tuple[str, ...], upper=False):
        if values is None:
            return fallback
        cleaned = [v.strip() for v in values]
        return tuple(v.upper() for v in cleaned) if upper else tuple(cleaned)

    return PermissionPolicy(
        allowed_sql_types=_clean(raw.allowed_sql_types, base.allowed_sql_types, upper=True),
        table_patterns=_clean(raw.table_patterns, base.table_patterns),
        allowed_databases=_clean(raw.allowed_databases, base.allowed_databases),
        allow_multi_statement=_pick(raw.allow_multi_statement, base.allow_multi_statement),
        read_only=_pick(raw.read_only, base.read_only),
    )


def build_source(
    name: str,
    definition: Any,
    base_connection: ConnectionConfig,
    base_permissions: PermissionPolicy,
) -> Source:
    if not isinstance(definition, dict):
        raise ConfigurationError(f"Invalid source '{name}': expected object")
    try:
        raw = RawSourceDefinition.model_validate(definition)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid source '{name}': {e}") from e
    return Source(
        name=name,
        connection=resolve_connection(raw.connection_fields(), base_connection),
        permissions=resolve_permissions(raw.permissions, base_permissions),
    )


# ── Loading ───────────────────────────────────────────────────────────


def base_connection_from(settings: GatewaySettings) -> ConnectionConfig:
    return ConnectionConfig(
        host=settings.db_host,
        user=settings.db_user,
        password=settings.db_password,
        port=settings.db_port,
        database=settings.db_name,
        connection_limit=settings.pool_max_size,
        queue_limit=settings.pool_queue_limit,
        wait_for_connections=True,
    )


def base_permissions_from(settings: GatewaySettings) -> PermissionPolicy:
    return PermissionPolicy(
        allowed_sql_types=settings.allowed_sql_types,
        table_patterns=settings.table_patterns,
        allowed_databases=settings.allowed_databases,
        allow_multi_statement=settings.allow_multi_statement,
        read_only=settings.read_only,
    )


def _read_structured_file(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def load_config_file(
    explicit_path: Optional[str] = None, cwd: Optional[Path] = None
) -> Optional[ServerConfig]:
    """Load the first existing config file.

    The file is either ``{"defaultSource": ..., "sources": {...}}`` or a flat
    mapping of source name to definition (``defaultSource`` excluded).
    """
    candidates: list[Path] = []
    if explicit_path:
        candidates.append(Path(explicit_path))
    candidates.append((cwd or Path.cwd()) / DEFAULT_CONFIG_RELPATH)

    for candidate in candidates:
        if not candidate.exists():
            if explicit_path and candidate == Path(explicit_path):
                logger.warning(f"Config file not found: {candidate}")
            continue
        try:
            parsed = _read_structured_file(candidate)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load config file '{candidate}': {e}"
            ) from e
        if not isinstance(parsed, dict):
            raise ConfigurationError(
                f"Failed to load config file '{candidate}': "
                f"Invalid config file: expected JSON object at {candidate}"
            )

        default_source = parsed.get("defaultSource")
        if not isinstance(default_source, str):
            default_source = None
        if isinstance(parsed.get("sources"), dict):
            sources = dict(parsed["sources"])
        else:
            sources = {k: v for k, v in parsed.items() if k != "defaultSource"}

        logger.info(f"Loaded config file {candidate} ({len(sources)} source(s))")
        return ServerConfig(
            sources=sources, default_source=default_source, path=str(candidate)
        )

    return None


def parse_inline_sources(raw: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse the inline override. Returns None when it is not set."""
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid MYSQL_SOURCES JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ConfigurationError(
            "Invalid MYSQL_SOURCES: expected an object mapping sourceName -> config"
        )
    return parsed


def merge_raw_sources(
    file_sources: Mapping[str, Any], inline_sources: Mapping[str, Any]
) -> dict[str, Any]:
    """Inline definitions replace file definitions of the same name wholesale."""
    merged = dict(file_sources)
    merged.update(inline_sources)
    return merged


# ── Registry ──────────────────────────────────────────────────────────


class SourceRegistry:
    """Read-only lookup of sources by name."""

    def __init__(
        self,
        sources: Mapping[str, Source],
        default_source: str,
        config_path: Optional[str] = None,
    ):
        if not sources:
            raise ConfigurationError("No sources configured")
        self._sources = MappingProxyType(dict(sources))
        if default_source not in self._sources:
            raise UnknownSourceError(default_source, list(self._sources))
        self._default = default_source
        self._config_path = config_path

    @property
    def names(self) -> list[str]:
        return list(self._sources)

    @property
    def default_source(self) -> str:
        return self._default

    @property
    def config_path(self) -> Optional[str]:
        return self._config_path

    @property
    def is_multi_source(self) -> bool:
        return len(self._sources) > 1

    def __len__(self) -> int:
        return len(self._sources)

    def resolve(self, name: Optional[str] = None) -> Source:
        """Return the named source, or the default when ``name`` is blank."""
        key = name if name and name.strip() else self._default
        source = self._sources.get(key)
        if source is None:
            raise UnknownSourceError(key, self.names)
        return source


def build_source_registry(
    settings: GatewaySettings, cwd: Optional[Path] = None
) -> SourceRegistry:
    """Merge base settings, config file and inline override into a registry."""
    base_connection = base_connection_from(settings)
    base_permissions = base_permissions_from(settings)

    file_config = load_config_file(settings.config_path, cwd=cwd)
    inline = parse_inline_sources(settings.inline_sources)

    file_sources = file_config.sources if file_config else {}
    merged = merge_raw_sources(file_sources, inline or {})

    sources: dict[str, Source] = {}
    for name, definition in merged.items():
        sources[name] = build_source(name, definition, base_connection, base_permissions)

    if not sources:
        if inline is not None:
            raise ConfigurationError("Invalid MYSQL_SOURCES: no sources provided")
        sources[DEFAULT_SOURCE_NAME] = Source(
            name=DEFAULT_SOURCE_NAME,
            connection=base_connection,
            permissions=base_permissions,
        )

    default_source = (
        settings.default_source
        or (file_config.default_source if file_config else None)
        or next(iter(sources))
    )

    registry = SourceRegistry(
        sources,
        default_source,
        config_path=file_config.path if file_config else None,
    )
    logger.info(
        f"Source registry: {len(registry)} source(s) "
        f"({', '.join(registry.names)}), default='{registry.default_source}'"
    )
    return registry
