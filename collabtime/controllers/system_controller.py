# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: System endpoints, health, readiness, metrics.
Pure HTTP layer, no business logic.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from collabtime.core.config import settings
from collabtime.core.dependencies import get_kv_store, get_workspace_repo
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.repositories.workspace_repository import WorkspaceRepository

router = APIRouter(tags=["System"])


@router.get("/health")
def health_check(workspaces: WorkspaceRepository = Depends(get_workspace_repo)):
    """Liveness probe for Docker and orchestration."""
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "open_workspaces": workspaces.count(),
    }


@router.get("/health/ready")
def readiness_check(kv_store: KeyValueStore = Depends(get_kv_store)):
    """Readiness probe, verifies client-state storage is reachable."""
    verify = getattr(kv_store, "verify_connection", None)
    storage_ok = verify() if verify else True
    body = {
        "status": "ready" if storage_ok else "degraded",
        "service": settings.SERVICE_NAME,
        "storage": type(kv_store).__name__,
        "realtime_enabled": bool(settings.REALTIME_URL),
    }
    return JSONResponse(status_code=200 if storage_ok else 503, content=body)


@router.get("/metrics")
def prometheus_metrics():
    """Expose Prometheus metrics in OpenMetrics format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
