"""Permission policy: the immutable rule bundle attached to each source.

A policy answers two questions:
- may this statement type run? (delegated to sql_guard.classify)
- may this table / database be touched? (check_table_access)

Every allow-list is explicit. An empty tuple allows nothing.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlgate.governance.patterns import matches
from sqlgate.governance.references import TableReference
from sqlgate.governance.sql_guard import SQLCheckResult, classify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionPolicy:
    """Resolved permissions for one source."""

    allowed_sql_types: tuple[str, ...] = ("SELECT",)
    table_patterns: tuple[str, ...] = ("*",)
    allowed_databases: tuple[str, ...] = ("*",)
    allow_multi_statement: bool = False
    read_only: bool = True

    def check_sql(self, sql: str) -> SQLCheckResult:
        return classify(sql, self)

    def check_reference(
        self, ref: TableReference, database: Optional[str] = None
    ) -> "AccessCheckResult":
        """Check a reference executed in ``database``.

        The schema qualifier is not a database and is not matched against
        ``allowed_databases``.
        """
        return check_table_access(ref.table, self, database)

    def check_database(self, database: Optional[str]) -> "AccessCheckResult":
        """Check the database a statement will run in. None skips the check."""
        if database and not matches(database, self.allowed_databases):
            return AccessCheckResult(
                permitted=False,
                reason=f"Access to database '{database}' is not allowed",
            )
        return AccessCheckResult(permitted=True)

    def describe(self) -> dict:
        """Policy as plain data, in configuration-file key names."""
        return {
            "allowedSqlTypes": list(self.allowed_sql_types),
            "tablePatterns": list(self.table_patterns),
            "allowedDatabases": list(self.allowed_databases),
            "readOnly": self.read_only,
            "allowMultiStatement": self.allow_multi_statement,
        }


@dataclass(frozen=True)
class AccessCheckResult:
    permitted: bool
    reason: Optional[str] = None


def check_table_access(
    table: str, policy: PermissionPolicy, database: Optional[str] = None
) -> AccessCheckResult:
    """Check table and database names against the policy patterns.

    ``database`` is the database the statement runs in (requested, else the
    source default). It is only checked when one is known.
    """
    db_access = policy.check_database(database)
    if not db_access.permitted:
        return db_access
    if not matches(table, policy.table_patterns):
        return AccessCheckResult(
            permitted=False, reason=f"Access to table '{table}' is not allowed"
        )
    return AccessCheckResult(permitted=True)
