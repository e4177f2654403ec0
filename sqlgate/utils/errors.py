"""Gateway error taxonomy and centralized error rendering.

Per-invocation failures (denials, unknown sources, driver errors) are raised
as GatewayError subclasses and turned into text by handle_error() at the
tool boundary. Only configuration errors are fatal, and only at startup.
"""
from typing import Optional

import psycopg


class GatewayError(Exception):
    """Base class for all errors raised by the gateway."""


class ConfigurationError(GatewayError):
    """Malformed or inconsistent configuration. Fatal at startup."""


class UnknownSourceError(GatewayError):
    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Unknown source '{name}'. Available sources: {', '.join(self.available)}"
        )


class PermissionDenied(GatewayError):
    """A query or catalogue request was rejected by the permission policy."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class MissingDatabaseError(GatewayError):
    def __init__(self):
        super().__init__(
            "No database specified. Provide 'database' parameter or set DB_NAME "
            "environment variable / source default database."
        )


class ExecutionError(GatewayError):
    """Error reported by the database driver, surfaced verbatim."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


class PoolClosedError(GatewayError):
    """Raised when a pool is requested after shutdown has begun."""


# SQLSTATE -> hint appended to driver errors
_SQLSTATE_HINTS: dict[str, str] = {
    "42P01": "Use db_list_tables to discover available tables.",
    "3D000": "Use db_list_databases to discover available databases.",
    "42501": "The database role lacks privileges for this operation.",
    "42601": "Check the SQL syntax and try again.",
    "57014": "Query timed out. Try limiting rows with LIMIT or simplifying the query.",
    "25006": "The connection is in a read-only transaction.",
}


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Policy denials (never retryable without a policy change)
    - Configuration problems (unknown source, missing database)
    - Driver errors, with the SQLSTATE code and a hint when one is known
    - Connectivity failures
    """
    if isinstance(e, PermissionDenied):
        return f"Permission denied: {e.reason}"

    if isinstance(e, (UnknownSourceError, MissingDatabaseError, ConfigurationError)):
        return f"Error: {e}"

    if isinstance(e, PoolClosedError):
        return "Error: Server is shutting down. No new connections are accepted."

    if isinstance(e, ExecutionError):
        lines = [f"Error: {e.message}", f"Code: {e.code or 'unknown'}"]
        hint = _SQLSTATE_HINTS.get(e.code or "")
        if hint:
            lines.append(hint)
        return "\n".join(lines)

    if isinstance(e, psycopg.OperationalError):
        return (
            "Error: Cannot connect to the database. Check DB_HOST / DB_PORT and "
            f"the source connection settings. Details: {str(e).strip()}"
        )

    if isinstance(e, TimeoutError):
        return "Error: Connection timed out. Retry shortly or check the database host."

    return f"Error: {type(e).__name__} — {str(e)}"
