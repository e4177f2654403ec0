"""Source inspection tools: configured sources and their permissions."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from mcp.server.fastmcp import FastMCP
from sqlgate.gateway import Gateway
from sqlgate.tools.query import SOURCE_FIELD_DESCRIPTION, multi_source_hint
from sqlgate.utils.errors import handle_error
from sqlgate.utils.formatting import ResponseFormat, format_permissions, to_json


class ListSourcesInput(BaseModel):
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class GetPermissionsInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    source: Optional[str] = Field(default=None, description=SOURCE_FIELD_DESCRIPTION)
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def register_source_tools(mcp: FastMCP, gateway: Gateway):

    @mcp.tool(
        name="db_list_sources",
        description="List configured sources and the default source.",
        annotations={
            "title": "List Sources",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def db_list_sources(params: ListSourcesInput) -> str:
        listing = gateway.list_sources()
        if params.response_format == ResponseFormat.JSON:
            return to_json(
                {
                    "sources": [
                        {
                            "name": s.name,
                            "connection": s.connection,
                            "default": s.is_default,
                        }
                        for s in listing.sources
                    ],
                    "defaultSource": listing.default_source,
                    "configFile": listing.config_path,
                }
            )
        lines = ["Configured sources:"]
        for s in listing.sources:
            marker = " (default)" if s.is_default else ""
            lines.append(f"• {s.name}{marker} ({s.connection})")
        lines.append("")
        lines.append(f"Default source: {listing.default_source}")
        if listing.config_path:
            lines.append(f"Config file: {listing.config_path}")
        lines.append("")
        lines.append('Tip: pass {"source": "<name>"} to tools to query non-default sources.')
        return "\n".join(lines)

    @mcp.tool(
        name="db_get_permissions",
        description=f"Get the permission configuration of a source{multi_source_hint(gateway)}.",
        annotations={
            "title": "Get Permissions",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def db_get_permissions(params: GetPermissionsInput) -> str:
        try:
            view = gateway.get_permissions(source=params.source)
        except Exception as e:
            return handle_error(e)
        if params.response_format == ResponseFormat.JSON:
            return to_json({"source": view.source, **view.policy.describe()})
        return format_permissions(view.source, view.policy)
