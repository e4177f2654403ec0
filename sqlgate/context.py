"""Process-wide server context, built once at startup and passed explicitly."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlgate.config import GatewaySettings
from sqlgate.db import PoolCache, make_pool_factory
from sqlgate.gateway import Gateway
from sqlgate.sources import SourceRegistry, build_source_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerContext:
    settings: GatewaySettings
    registry: SourceRegistry
    pools: PoolCache
    gateway: Gateway


def build_server_context(
    settings: Optional[GatewaySettings] = None,
    cwd: Optional[Path] = None,
    pools: Optional[PoolCache] = None,
) -> ServerContext:
    """Resolve configuration into a ready-to-serve context.

    Raises ConfigurationError / UnknownSourceError on bad configuration.
    """
    settings = settings or GatewaySettings()
    registry = build_source_registry(settings, cwd=cwd)
    if pools is None:
        pools = PoolCache(
            make_pool_factory(
                min_size=settings.pool_min_size,
                connect_timeout=settings.connect_timeout_seconds,
            )
        )
    gateway = Gateway(registry, pools, max_rows=settings.max_rows)
    return ServerContext(
        settings=settings, registry=registry, pools=pools, gateway=gateway
    )


async def check_connectivity(context: ServerContext) -> None:
    """Open a pool and run ``SELECT 1`` for the default (or every) source."""
    registry = context.registry
    names = registry.names if context.settings.test_all_sources else [
        registry.default_source
    ]
    for name in names:
        source = registry.resolve(name)
        pool = await context.pools.get(source)
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
        logger.info(f"Database connection successful (source: {name})")
