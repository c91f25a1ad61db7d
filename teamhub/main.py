# teamhub/main.py

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from teamhub.api import websocket as websocket_module
from teamhub.api.routes import health, metrics, notifications, rooms, root
from teamhub.core.config import settings
from teamhub.core.errors import PersistenceFailure
from teamhub.core.logging import get_logger, setup_logging

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="TeamHub Real-time Messaging")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)
app.include_router(notifications.router)

# WebSocket routes
app.include_router(websocket_module.router)


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.reason)
    return JSONResponse(status_code=500, content={"detail": exc.reason})


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Application starting - rooms are in-memory, single process")


def run() -> None:
    import uvicorn
    uvicorn.run("teamhub.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
