import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.api.v1.api import api_router
from portal.core.config import get_settings
from portal.core.errors import RemoteError
from portal.services.admin_service import get_admin_console
from portal.services.sessions import get_registry, reset_cache


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def periodic_flush(interval: int) -> None:
    """Retry queued writes for every mounted team at a fixed interval."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(get_registry().tick_all)
        except RemoteError as exc:
            logger.warning("Periodic flush failed: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting registration portal (store: %s)", settings.store_backend)
    flush_task = None
    if settings.flush_interval_seconds > 0:
        flush_task = asyncio.create_task(periodic_flush(settings.flush_interval_seconds))
    yield
    if flush_task:
        flush_task.cancel()
        try:
            await flush_task
        except asyncio.CancelledError:
            pass
    if get_admin_console.cache_info().currsize:
        get_admin_console().stop()
    get_admin_console.cache_clear()
    reset_cache()
    logger.info("Registration portal stopped")


app = FastAPI(title="Sports Meet Registration Portal", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
def root() -> dict:
    return {"service": "meet-portal", "version": app.version}


if __name__ == "__main__":
    uvicorn.run("portal.main:app", host="0.0.0.0", port=8000, reload=True)
