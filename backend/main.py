"""Asset Hierarchy Sync — FastAPI application entry point.

Initializes the asset service and cache connections on startup and
registers API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.core import asset_client, redis_client
from backend.core.mapping_registry import MappingTemplateRegistry
from backend.api import assets, energy, health, mappings, syncs, variables

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize service connections on startup, close on shutdown."""
    logger.info("Starting asset sync backend...")

    asset_client.init_asset_client()

    # The cache is optional; syncs run without it
    try:
        redis_client.init_redis_client()
    except Exception as e:
        logger.error(f"Failed to set up Redis: {e}")

    app.state.mapping_registry = MappingTemplateRegistry()
    logger.info("Mapping template registry initialized")

    logger.info("Asset sync backend ready")
    yield

    logger.info("Shutting down asset sync backend...")
    asset_client.close_asset_client()
    redis_client.close_redis_client()
    logger.info("Asset sync backend stopped")


app = FastAPI(
    title="Asset Hierarchy Sync",
    version="0.1.0",
    description="Builds asset hierarchies from tabular data, creates them on the "
                "asset service parent-first, and propagates energy flags upward.",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(mappings.router, prefix="/api", tags=["mappings"])
app.include_router(syncs.router, prefix="/api", tags=["syncs"])
app.include_router(energy.router, prefix="/api", tags=["energy"])
app.include_router(variables.router, prefix="/api", tags=["variables"])
app.include_router(assets.router, prefix="/api", tags=["assets"])
