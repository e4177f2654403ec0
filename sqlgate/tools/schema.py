"""Database and table discovery tools, filtered by the source policy."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from mcp.server.fastmcp import FastMCP
from sqlgate.gateway import Gateway
from sqlgate.tools.query import SOURCE_FIELD_DESCRIPTION, multi_source_hint
from sqlgate.utils.errors import handle_error
from sqlgate.utils.formatting import (
    ResponseFormat,
    format_name_list,
    format_schema_info,
)

_READ_ONLY_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": False,
}


class ListDatabasesInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    source: Optional[str] = Field(default=None, description=SOURCE_FIELD_DESCRIPTION)


class ListTablesInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    source: Optional[str] = Field(default=None, description=SOURCE_FIELD_DESCRIPTION)
    database: Optional[str] = Field(
        default=None,
        description="Database name (optional, uses DB_NAME / source database if not specified)",
    )
    pattern: Optional[str] = Field(
        default=None, description="Glob pattern to filter table names (e.g., 'open_*')"
    )


class DescribeTableInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    table: str = Field(..., description="Table name to describe", min_length=1)
    source: Optional[str] = Field(default=None, description=SOURCE_FIELD_DESCRIPTION)
    database: Optional[str] = Field(default=None, description="Database name (optional)")
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_schema_tools(mcp: FastMCP, gateway: Gateway):
    hint = multi_source_hint(gateway)

    @mcp.tool(
        name="db_list_databases",
        description=f"List databases visible under the permission policy{hint}.",
        annotations={"title": "List Databases", **_READ_ONLY_ANNOTATIONS},
    )
    async def db_list_databases(params: ListDatabasesInput) -> str:
        try:
            result = await gateway.list_databases(source=params.source)
            return format_name_list(
                f"Available databases (source: {result.source})", result.names
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="db_list_tables",
        description=(
            f"List tables in a database with optional glob filtering{hint}. "
            "Only tables matching the source's table patterns are shown."
        ),
        annotations={"title": "List Tables", **_READ_ONLY_ANNOTATIONS},
    )
    async def db_list_tables(params: ListTablesInput) -> str:
        try:
            result = await gateway.list_tables(
                source=params.source, database=params.database, pattern=params.pattern
            )
            matching = f" matching '{result.pattern}'" if result.pattern else ""
            return format_name_list(
                f"Tables in {result.database}{matching} (source: {result.source})",
                result.names,
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="db_describe_table",
        description=(
            f"Describe table columns and indexes with a permission check{hint}."
        ),
        annotations={"title": "Describe Table", **_READ_ONLY_ANNOTATIONS},
    )
    async def db_describe_table(params: DescribeTableInput) -> str:
        try:
            result = await gateway.describe_table(
                params.table, source=params.source, database=params.database
            )
            return format_schema_info(
                result.columns,
                f"{result.database}.{result.table}",
                indexes=result.indexes,
                fmt=params.response_format,
            )
        except Exception as e:
            return handle_error(e)
