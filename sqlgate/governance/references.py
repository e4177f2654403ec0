"""Heuristic extraction of table references from raw SQL text.

Scans for the identifier following FROM, JOIN, UPDATE, INSERT INTO and the
TABLE forms of CREATE/DROP/ALTER/TRUNCATE. Every textual occurrence counts,
including inside subqueries and string literals: over-detection only ever
causes a denial.

Known limitations:
- ``FROM a, b`` only reports ``a``
- CTE names are reported as tables
- quoted identifiers containing dots or spaces are not understood
"""
import re
from dataclasses import dataclass
from typing import Optional

_IDENT = r"""([`"\w]+(?:\s*\.\s*[`"\w]+)?)"""

_CLAUSE_PATTERNS = [
    re.compile(prefix + _IDENT, re.IGNORECASE)
    for prefix in (
        r"FROM\s+",
        r"JOIN\s+",
        r"UPDATE\s+",
        r"INSERT\s+INTO\s+",
        r"CREATE\s+TABLE\s+",
        r"DROP\s+TABLE\s+",
        r"ALTER\s+TABLE\s+",
        r"TRUNCATE\s+TABLE\s+",
    )
]

_WHITESPACE = re.compile(r"\s+")
_QUOTES = re.compile(r"""[`'"]""")


@dataclass(frozen=True)
class TableReference:
    """A table named in query text, with its optional schema qualifier.

    On PostgreSQL ``a.b`` is schema ``a``, table ``b`` inside the connected
    database. The qualifier never selects a different database.
    """

    table: str
    schema: Optional[str] = None

    def __str__(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table}"
        return self.table


def _to_reference(raw: str) -> Optional[TableReference]:
    parts = [_QUOTES.sub("", p) for p in _WHITESPACE.sub("", raw).split(".")]
    if len(parts) == 1:
        schema, table = None, parts[0]
    elif len(parts) == 2:
        schema, table = parts[0] or None, parts[1]
    else:
        return None
    if not table:
        return None
    return TableReference(table=table, schema=schema)


def extract_table_refs(sql: str) -> tuple[TableReference, ...]:
    """Return the distinct table references found in ``sql``.

    Order follows clause order then position; only the set is meaningful.
    """
    refs: list[TableReference] = []
    seen: set[TableReference] = set()
    for pattern in _CLAUSE_PATTERNS:
        for match in pattern.finditer(sql):
            ref = _to_reference(match.group(1))
            if ref is None or ref in seen:
                continue
            seen.add(ref)
            refs.append(ref)
    return tuple(refs)
