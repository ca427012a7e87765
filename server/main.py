"""FastAPI server for the two-player Golf snapshot store."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import config
from logging_config import setup_logging
from routers.games import router as games_router, set_snapshot_store
from routers.health import router as health_router, set_health_dependencies
from stores.redis_store import RedisSnapshotStore
from stores.snapshot_store import MemorySnapshotStore, SnapshotStore

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)

SERVER_ID = str(uuid.uuid4())[:8]


async def _init_store() -> SnapshotStore:
    """Use Redis when configured, otherwise keep games in memory."""
    if config.REDIS_URL:
        try:
            store = await RedisSnapshotStore.create(config.REDIS_URL, server_id=SERVER_ID)
            logger.info("Snapshot store: redis")
            return store
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            raise

    logger.warning("REDIS_URL not configured - games are kept in memory only")
    return MemorySnapshotStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    store = await _init_store()
    set_snapshot_store(store)

    redis_client = store.state_cache.redis if isinstance(store, RedisSnapshotStore) else None
    set_health_dependencies(redis_client=redis_client, store=store)

    logger.info(f"Golf server {SERVER_ID} started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    set_snapshot_store(None)
    set_health_dependencies()
    await store.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Golf Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

app.include_router(games_router)
app.include_router(health_router)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Golf server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
