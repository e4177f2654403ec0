"""Response formatting helpers."""
import json
from enum import Enum
from typing import Any, Optional

from sqlgate.governance.policy import PermissionPolicy


class ResponseFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


def format_query_results(
    rows: list[dict],
    columns: list[str] = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
    row_count: Optional[int] = None,
) -> str:
    count = len(rows) if row_count is None else row_count
    if fmt == ResponseFormat.JSON:
        return json.dumps(
            {"row_count": count, "rows": rows}, indent=2, default=str
        )
    if not rows:
        if count:
            return f"_Statement executed, {count} row(s) affected._"
        return "_No results returned._"
    cols = columns or list(rows[0].keys())
    lines = [f"**{count} row(s) returned**\n"]
    lines.append("| " + " | ".join(cols) + " |")
    lines.append("| " + " | ".join(["---"] * len(cols)) + " |")
    for row in rows[:50]:
        vals = [str(row.get(c, "")) for c in cols]
        lines.append("| " + " | ".join(vals) + " |")
    if len(rows) > 50:
        lines.append(f"\n_...and {len(rows) - 50} more rows (use LIMIT or JSON format)_")
    return "\n".join(lines)


def format_name_list(title: str, names: list[str]) -> str:
    if not names:
        return f"{title}:\n_None found._"
    return f"{title}:\n" + "\n".join(f"• {n}" for n in names)


def format_schema_info(
    columns: list[dict],
    table_name: str,
    indexes: list[dict] = None,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(
            {"table": table_name, "columns": columns, "indexes": indexes or []},
            indent=2,
            default=str,
        )
    if not columns:
        return f"_Table `{table_name}` not found or has no visible columns._"
    lines = [f"## Schema: `{table_name}`\n"]
    lines.append("| Column | Type | Nullable | Default |")
    lines.append("| --- | --- | --- | --- |")
    for c in columns:
        default = c.get("column_default")
        lines.append(
            f"| {c['column_name']} | {c['data_type']} | "
            f"{c.get('is_nullable', 'YES')} | {'' if default is None else default} |"
        )
    if indexes:
        lines.append("\n### Indexes")
        for idx in indexes:
            lines.append(f"- **{idx['indexname']}**: `{idx['indexdef']}`")
    return "\n".join(lines)


def format_permissions(source: str, policy: PermissionPolicy) -> str:
    def _join(values: tuple[str, ...]) -> str:
        return ", ".join(values) if values else "(none)"

    return (
        f"Current Permission Configuration ({source}):\n\n"
        f"• Allowed SQL Types: {_join(policy.allowed_sql_types)}\n"
        f"• Table Patterns: {_join(policy.table_patterns)}\n"
        f"• Allowed Databases: {_join(policy.allowed_databases)}\n"
        f"• Read Only: {str(policy.read_only).lower()}\n"
        f"• Allow Multi-Statement: {str(policy.allow_multi_statement).lower()}"
    )


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)
