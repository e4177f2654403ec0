"""Shared test fixtures for SQL gateway tests."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from sqlgate.config import GatewaySettings
from sqlgate.db import QueryOutcome
from sqlgate.governance.policy import PermissionPolicy
from sqlgate.sources import ConnectionConfig, Source, SourceRegistry

GATEWAY_ENV_VARS = [
    "DB_HOST",
    "DB_USER",
    "DB_PASSWORD",
    "DB_PORT",
    "DB_NAME",
    "DB_POOL_MAX",
    "DB_POOL_QUEUE_LIMIT",
    "DB_POOL_MIN",
    "DB_CONNECT_TIMEOUT",
    "ALLOWED_SQL_TYPES",
    "TABLE_PATTERNS",
    "ALLOWED_DATABASES",
    "READ_ONLY",
    "ALLOW_MULTI_STATEMENT",
    "MYSQL_SOURCES",
    "SQLGATE_SOURCES",
    "DEFAULT_SOURCE",
    "SQLGATE_CONFIG_PATH",
    "MYSQL_MCP_CONFIG_PATH",
    "QUERY_MAX_ROWS",
    "SKIP_DB_TEST",
    "TEST_ALL_SOURCES",
    "MCP_TRANSPORT",
    "APP_PORT",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove all gateway env vars for clean test state."""
    for name in GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(clean_env):
    return GatewaySettings()


@pytest.fixture
def scenario_policy():
    return PermissionPolicy(
        allowed_sql_types=("SELECT",),
        table_patterns=("open_*",),
        allowed_databases=("*",),
        read_only=True,
        allow_multi_statement=False,
    )


def make_source(name="main", policy=None, database="shop", **conn):
    return Source(
        name=name,
        connection=ConnectionConfig(database=database, **conn),
        permissions=policy or PermissionPolicy(),
    )


@pytest.fixture
def source_factory():
    return make_source


@pytest.fixture
def registry_factory():
    def _build(*sources, default=None):
        mapping = {s.name: s for s in sources}
        return SourceRegistry(mapping, default or sources[0].name)

    return _build


@pytest.fixture
def mock_pools():
    """Mock pool cache: every key yields the same sentinel pool."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value="pool-sentinel")
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_executor():
    return AsyncMock(
        return_value=QueryOutcome(
            rows=[{"id": 1, "name": "Alice"}],
            fields=[{"name": "id", "type": 23}, {"name": "name", "type": 25}],
            row_count=1,
        )
    )


@pytest.fixture
def sample_columns():
    return [
        {
            "table_schema": "public",
            "column_name": "id",
            "data_type": "integer",
            "is_nullable": "NO",
            "column_default": "nextval('id_seq')",
        },
        {
            "table_schema": "public",
            "column_name": "name",
            "data_type": "character varying",
            "is_nullable": "YES",
            "column_default": None,
        },
    ]


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@example.com"},
    ]
