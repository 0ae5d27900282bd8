"""Runtime bridge FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from runtime_bridge import config
from runtime_bridge.routers.runtime import runtime_router
from runtime_bridge.services.runtime_service import RuntimeService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("runtime_bridge")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Runtime bridge starting up")
    service = RuntimeService(config.RUNTIME_MODE)
    app.state.runtime_service = service
    await service.start()

    yield

    logger.info("Runtime bridge shutting down")
    await service.stop()


app = FastAPI(
    title="Runtime Bridge API",
    description="Canonical event stream and runtime swap control for Claude and Pi agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(runtime_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    service = getattr(app.state, "runtime_service", None)
    tailers = service.tailers if service else {}
    return {
        "status": "ok",
        "tailers": {runtime: "running" if t.is_running else "stopped" for runtime, t in tailers.items()},
    }


def run() -> None:
    import uvicorn

    uvicorn.run("runtime_bridge.main:app", host=config.HOST, port=config.PORT)
