"""SQL query execution tool, permission-checked per source."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from mcp.server.fastmcp import FastMCP
from sqlgate.gateway import Gateway
from sqlgate.utils.errors import handle_error
from sqlgate.utils.formatting import ResponseFormat, format_query_results

SOURCE_FIELD_DESCRIPTION = (
    "Source name (optional, uses DEFAULT_SOURCE / config defaultSource if not specified)"
)


class ExecuteQueryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    sql: str = Field(
        ...,
        description="SQL query to execute",
        min_length=1,
        max_length=50000,
    )
    source: Optional[str] = Field(default=None, description=SOURCE_FIELD_DESCRIPTION)
    database: Optional[str] = Field(
        default=None,
        description="Database name (optional, uses DB_NAME / source database if not specified)",
    )
    max_rows: Optional[int] = Field(
        default=None, description="Maximum rows to return (1-10000)", ge=1, le=10000
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def multi_source_hint(gateway: Gateway) -> str:
    if gateway.registry.is_multi_source:
        return " (multiple sources configured; pass 'source' to query a non-default source)"
    return ""


def register_query_tools(mcp: FastMCP, gateway: Gateway):

    @mcp.tool(
        name="db_query",
        description=(
            "Execute a SQL query with permission checks"
            f"{multi_source_hint(gateway)}. Statement types, tables and databases "
            "are checked against the source's permission policy before execution."
        ),
        annotations={
            "title": "Execute SQL Query",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def db_query(params: ExecuteQueryInput) -> str:
        try:
            result = await gateway.query(
                params.sql,
                source=params.source,
                database=params.database,
                max_rows=params.max_rows,
            )
        except Exception as e:
            return handle_error(e)

        registry = gateway.registry
        lines = ["Query executed successfully!", ""]
        if registry.is_multi_source or params.source:
            lines.append(f"Source: {result.source}")
        lines.append(f"SQL: {result.sql}")
        lines.append("")
        lines.append(
            format_query_results(
                result.rows, fmt=params.response_format, row_count=result.row_count
            )
        )
        if result.truncated:
            lines.append(
                f"\n_Results truncated to {result.row_count} rows (raise max_rows "
                "or add LIMIT)._"
            )
        if registry.is_multi_source and not params.source:
            lines.append(
                f"\nTip: multiple sources are configured. The default source is "
                f"'{registry.default_source}'. Pass {{\"source\": \"<name>\"}} to "
                "query non-default sources."
            )
        return "\n".join(lines)
