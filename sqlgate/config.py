"""Configuration for the SQL gateway MCP server.

Base connection settings and base permissions come from environment
variables. Per-source overrides come from the optional config file and the
inline MYSQL_SOURCES / SQLGATE_SOURCES JSON (see sqlgate/sources.py).
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from sqlgate.utils.errors import ConfigurationError


def _env_list(name: str, default: list[str]) -> tuple[str, ...]:
    """Parse comma-separated env var into a tuple. Unset or blank -> default."""
    val = os.environ.get(name, "").strip()
    if not val:
        return tuple(default)
    return tuple(item.strip() for item in val.split(",") if item.strip())


def _env_int(name: str, default: int) -> int:
    val = os.environ.get(name, "").strip()
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ConfigurationError(
            f"Invalid {name}: expected an integer, got '{val}'"
        ) from None


def _env_optional(name: str) -> Optional[str]:
    val = os.environ.get(name, "").strip()
    return val or None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").strip().lower() == "true"


@dataclass(frozen=True)
class GatewaySettings:
    """Server settings loaded from environment variables."""

    # Base connection (every source inherits missing fields from these)
    db_host: str = field(
        default_factory=lambda: os.environ.get("DB_HOST", "127.0.0.1")
    )
    db_user: str = field(
        default_factory=lambda: os.environ.get("DB_USER", "postgres")
    )
    db_password: str = field(
        default_factory=lambda: os.environ.get("DB_PASSWORD", "")
    )
    db_port: int = field(
        default_factory=lambda: _env_int("DB_PORT", 5432)
    )
    db_name: Optional[str] = field(default_factory=lambda: _env_optional("DB_NAME"))

    # Base pool sizing
    pool_max_size: int = field(
        default_factory=lambda: _env_int("DB_POOL_MAX", 10)
    )
    pool_queue_limit: int = field(
        default_factory=lambda: _env_int("DB_POOL_QUEUE_LIMIT", 0)
    )
    pool_min_size: int = field(
        default_factory=lambda: _env_int("DB_POOL_MIN", 1)
    )
    connect_timeout_seconds: int = field(
        default_factory=lambda: _env_int("DB_CONNECT_TIMEOUT", 30)
    )

    # Base permissions
    allowed_sql_types: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            t.upper() for t in _env_list("ALLOWED_SQL_TYPES", ["SELECT"])
        )
    )
    table_patterns: tuple[str, ...] = field(
        default_factory=lambda: _env_list("TABLE_PATTERNS", ["*"])
    )
    allowed_databases: tuple[str, ...] = field(
        default_factory=lambda: _env_list("ALLOWED_DATABASES", ["*"])
    )
    # Read-only unless explicitly disabled
    read_only: bool = field(
        default_factory=lambda: os.environ.get("READ_ONLY", "true").strip().lower()
        != "false"
    )
    allow_multi_statement: bool = field(
        default_factory=lambda: _env_flag("ALLOW_MULTI_STATEMENT")
    )

    # Sources
    inline_sources: Optional[str] = field(
        default_factory=lambda: _env_optional("MYSQL_SOURCES")
        or _env_optional("SQLGATE_SOURCES")
    )
    default_source: Optional[str] = field(
        default_factory=lambda: _env_optional("DEFAULT_SOURCE")
    )
    config_path: Optional[str] = field(
        default_factory=lambda: _env_optional("MYSQL_MCP_CONFIG_PATH")
        or _env_optional("SQLGATE_CONFIG_PATH")
    )

    # Execution
    max_rows: int = field(
        default_factory=lambda: _env_int("QUERY_MAX_ROWS", 1000)
    )

    # Startup
    skip_db_test: bool = field(default_factory=lambda: _env_flag("SKIP_DB_TEST"))
    test_all_sources: bool = field(
        default_factory=lambda: _env_flag("TEST_ALL_SOURCES")
    )

    # Transport
    transport: str = field(
        default_factory=lambda: os.environ.get("MCP_TRANSPORT", "stdio")
    )
    app_port: int = field(
        default_factory=lambda: _env_int("APP_PORT", 8000)
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )
