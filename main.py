# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Collab Time
===========
Team timezone workspace: members and groups kept in sync with the team API,
working-hour overlap across timezones, local "which member am I" identity,
password sessions, and realtime reconciliation of team events.

Port: 8010
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collabtime.controllers import (
    identity_controller,
    preferences_controller,
    session_controller,
    system_controller,
    timezone_controller,
    workspace_controller,
)
from collabtime.core.config import settings
from collabtime.core.dependencies import close_http_client
from collabtime.core.logging import get_logger
from collabtime.middleware import MetricsMiddleware, RequestIDMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    logger.info("Starting %s v%s (team API: %s, realtime: %s)",
                settings.SERVICE_NAME, settings.SERVICE_VERSION,
                settings.TEAM_API_URL, settings.REALTIME_URL or "disabled")
    yield
    await close_http_client()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Collab Time",
    description="Team timezone overlap, membership state and realtime sync.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)

app.include_router(system_controller.router)
app.include_router(timezone_controller.router)
app.include_router(session_controller.router)
app.include_router(workspace_controller.router)
app.include_router(identity_controller.router)
app.include_router(preferences_controller.router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    req_id = getattr(request.state, "request_id", None)
    logger.exception("Unhandled exception", extra={"request_id": req_id})
    return JSONResponse(
        status_code=500,
        content={"detail": "Something went wrong", "retry": True, "request_id": req_id},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.SERVICE_PORT, log_level="info")
