"""Gateway: the permission-checked operations exposed as MCP tools.

Every operation resolves a source, applies that source's permission policy
and only then touches the database. Denials raise PermissionDenied; the
tool layer renders them. A query is authorised as a whole or not at all.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlgate.db import PoolCache, QueryOutcome, execute_sql
from sqlgate.governance.patterns import matches
from sqlgate.governance.policy import PermissionPolicy, check_table_access
from sqlgate.governance.references import extract_table_refs
from sqlgate.sources import Source, SourceRegistry
from sqlgate.utils.errors import MissingDatabaseError, PermissionDenied

logger = logging.getLogger(__name__)

LIST_DATABASES_SQL = (
    "SELECT datname FROM pg_database "
    "WHERE NOT datistemplate AND datallowconn ORDER BY datname"
)

LIST_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema NOT IN ('pg_catalog', 'information_schema') "
    "ORDER BY table_name"
)

DESCRIBE_COLUMNS_SQL = (
    "SELECT table_schema, column_name, data_type, is_nullable, column_default, "
    "character_maximum_length, numeric_precision, numeric_scale "
    "FROM information_schema.columns "
    "WHERE table_name = %s AND table_schema NOT IN ('pg_catalog', 'information_schema') "
    "ORDER BY table_schema, ordinal_position"
)

DESCRIBE_INDEXES_SQL = (
    "SELECT schemaname, indexname, indexdef FROM pg_indexes "
    "WHERE tablename = %s AND schemaname NOT IN ('pg_catalog', 'information_schema') "
    "ORDER BY schemaname, indexname"
)


@dataclass
class QueryResult:
    source: str
    sql: str
    rows: list[dict[str, Any]]
    fields: list[dict[str, Any]]
    row_count: int
    truncated: bool = False


@dataclass
class NameListResult:
    source: str
    names: list[str]
    database: Optional[str] = None
    pattern: Optional[str] = None


@dataclass
class TableDescription:
    source: str
    database: str
    table: str
    columns: list[dict[str, Any]]
    indexes: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SourceSummary:
    name: str
    connection: str
    is_default: bool


@dataclass
class SourceListing:
    sources: list[SourceSummary]
    default_source: str
    config_path: Optional[str] = None


@dataclass
class PermissionsView:
    source: str
    policy: PermissionPolicy


def _first_column(rows: list[dict[str, Any]]) -> list[str]:
    return [str(next(iter(row.values()))) for row in rows if row]


class Gateway:
    """Resolve source → check permissions → delegate to the executor."""

    def __init__(
        self,
        registry: SourceRegistry,
        pools: PoolCache,
        executor=execute_sql,
        max_rows: Optional[int] = None,
    ):
        self.registry = registry
        self.pools = pools
        self._execute = executor
        self._max_rows = max_rows

    def _deny(self, source: Source, reason: str) -> PermissionDenied:
        logger.info(f"Denied request on source '{source.name}': {reason}")
        return PermissionDenied(reason)

    async def _run(
        self,
        source: Source,
        database: Optional[str],
        sql: str,
        params: Optional[tuple] = None,
        max_rows: Optional[int] = None,
    ) -> QueryOutcome:
        pool = await self.pools.get(source, database)
        return await self._execute(pool, sql, params, max_rows)

    def authorize_query(
        self, source: Source, sql: str, database: Optional[str] = None
    ) -> None:
        """Raise PermissionDenied unless every check passes for ``sql``."""
        policy = source.permissions
        result = policy.check_sql(sql)
        if not result.permitted:
            raise self._deny(source, result.reason)

        # The pool's database, checked even when no table is referenced
        connected_db = database or source.connection.database
        db_access = policy.check_database(connected_db)
        if not db_access.permitted:
            raise self._deny(source, db_access.reason)

        for ref in extract_table_refs(sql):
            access = policy.check_reference(ref, connected_db)
            if not access.permitted:
                raise self._deny(source, access.reason)

    async def query(
        self,
        sql: str,
        source: Optional[str] = None,
        database: Optional[str] = None,
        max_rows: Optional[int] = None,
    ) -> QueryResult:
        src = self.registry.resolve(source)
        self.authorize_query(src, sql, database)
        outcome = await self._run(
            src, database, sql, max_rows=max_rows or self._max_rows
        )
        return QueryResult(
            source=src.name,
            sql=sql,
            rows=outcome.rows,
            fields=outcome.fields,
            row_count=outcome.row_count,
            truncated=outcome.truncated,
        )

    async def list_databases(self, source: Optional[str] = None) -> NameListResult:
        src = self.registry.resolve(source)
        outcome = await self._run(src, None, LIST_DATABASES_SQL)
        names = [
            db
            for db in _first_column(outcome.rows)
            if matches(db, src.permissions.allowed_databases)
        ]
        return NameListResult(source=src.name, names=names)

    def _target_database(self, src: Source, database: Optional[str]) -> str:
        target = database or src.connection.database
        if not target:
            raise MissingDatabaseError()
        return target

    async def list_tables(
        self,
        source: Optional[str] = None,
        database: Optional[str] = None,
        pattern: Optional[str] = None,
    ) -> NameListResult:
        src = self.registry.resolve(source)
        target = self._target_database(src, database)
        policy = src.permissions
        if not matches(target, policy.allowed_databases):
            raise self._deny(src, f"Access to database '{target}' is not allowed")

        outcome = await self._run(src, target, LIST_TABLES_SQL)
        tables = [
            t for t in _first_column(outcome.rows) if matches(t, policy.table_patterns)
        ]
        if pattern:
            tables = [t for t in tables if matches(t, [pattern])]
        return NameListResult(
            source=src.name, names=tables, database=target, pattern=pattern
        )

    async def describe_table(
        self,
        table: str,
        source: Optional[str] = None,
        database: Optional[str] = None,
    ) -> TableDescription:
        src = self.registry.resolve(source)
        target = self._target_database(src, database)
        access = check_table_access(table, src.permissions, target)
        if not access.permitted:
            raise self._deny(src, access.reason)

        columns = await self._run(src, target, DESCRIBE_COLUMNS_SQL, (table,))
        indexes = await self._run(src, target, DESCRIBE_INDEXES_SQL, (table,))
        return TableDescription(
            source=src.name,
            database=target,
            table=table,
            columns=columns.rows,
            indexes=indexes.rows,
        )

    def list_sources(self) -> SourceListing:
        registry = self.registry
        summaries = [
            SourceSummary(
                name=name,
                connection=registry.resolve(name).connection.summary(),
                is_default=name == registry.default_source,
            )
            for name in registry.names
        ]
        return SourceListing(
            sources=summaries,
            default_source=registry.default_source,
            config_path=registry.config_path,
        )

    def get_permissions(self, source: Optional[str] = None) -> PermissionsView:
        src = self.registry.resolve(source)
        return PermissionsView(source=src.name, policy=src.permissions)
