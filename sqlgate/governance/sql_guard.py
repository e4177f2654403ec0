"""SQL statement classification and statement-type permissions.

Pattern-based, not a parser: the leading keyword decides the statement
type. Checks run in a fixed order and the first failure is reported:

1. multi-statement gate
2. leading keyword detection
3. allow-list of statement types
4. read-only gate (independent of the allow-list)
"""
import re
import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional
from dataclasses import dataclass

if TYPE_CHECKING:
    from sqlgate.governance.policy import PermissionPolicy

logger = logging.getLogger(__name__)


class SQLStatementType(str, Enum):
    """Recognised leading statement keywords, in match order."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE = "CREATE"
    DROP = "DROP"
    ALTER = "ALTER"
    TRUNCATE = "TRUNCATE"
    REPLACE = "REPLACE"
    CALL = "CALL"
    EXPLAIN = "EXPLAIN"
    SHOW = "SHOW"
    DESCRIBE = "DESCRIBE"
    USE = "USE"
    UNKNOWN = "UNKNOWN"


SQL_TYPE_WILDCARD = "*"

# Types still permitted when a policy is read-only
READ_ONLY_TYPES: frozenset[SQLStatementType] = frozenset(
    {
        SQLStatementType.SELECT,
        SQLStatementType.EXPLAIN,
        SQLStatementType.SHOW,
        SQLStatementType.DESCRIBE,
    }
)

_KEYWORDS = [t for t in SQLStatementType if t is not SQLStatementType.UNKNOWN]
_LEADING_KEYWORD = re.compile(
    r"^(" + "|".join(t.value for t in _KEYWORDS) + r")\b"
)

MULTI_STATEMENT_REASON = "Multi-statement queries are not allowed"
READ_ONLY_REASON = (
    "Server is in read-only mode. Only SELECT, EXPLAIN, SHOW and DESCRIBE "
    "statements are allowed"
)


@dataclass(frozen=True)
class SQLCheckResult:
    """Result of checking a SQL statement against a permission policy."""

    permitted: bool
    statement_type: Optional[SQLStatementType] = None
    reason: Optional[str] = None


def is_multi_statement(sql: str) -> bool:
    """True if ``sql`` holds more than one non-blank ``;``-separated segment."""
    segments = [s for s in sql.split(";") if s.strip()]
    return len(segments) > 1


def detect_statement_type(sql: str) -> SQLStatementType:
    """Return the leading statement keyword of ``sql`` (any case)."""
    match = _LEADING_KEYWORD.match(sql.strip().upper())
    if not match:
        return SQLStatementType.UNKNOWN
    return SQLStatementType(match.group(1))


def classify(sql: str, policy: "PermissionPolicy") -> SQLCheckResult:
    """Check the statement type of ``sql`` against ``policy``."""
    analyzed = sql.strip().upper()

    if not policy.allow_multi_statement and is_multi_statement(analyzed):
        return SQLCheckResult(permitted=False, reason=MULTI_STATEMENT_REASON)

    stmt_type = detect_statement_type(analyzed)

    allowed = policy.allowed_sql_types
    if stmt_type.value not in allowed and SQL_TYPE_WILDCARD not in allowed:
        return SQLCheckResult(
            permitted=False,
            statement_type=stmt_type,
            reason=(
                f"SQL type '{stmt_type.value}' is not allowed. "
                f"Allowed types: {', '.join(allowed) or '(none)'}"
            ),
        )

    if policy.read_only and stmt_type not in READ_ONLY_TYPES:
        return SQLCheckResult(
            permitted=False, statement_type=stmt_type, reason=READ_ONLY_REASON
        )

    return SQLCheckResult(permitted=True, statement_type=stmt_type)
