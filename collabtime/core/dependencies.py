# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection, wire repositories and services.
"""

import secrets
from typing import Optional

import httpx
from fastapi import Depends, Header, HTTPException

from collabtime.core.config import settings
from collabtime.repositories.kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    ScopedKeyValueStore,
    SqlKeyValueStore,
)
from collabtime.repositories.workspace_repository import WorkspaceRepository
from collabtime.services.team_client import HttpTeamActions
from collabtime.services.workspace_service import WorkspaceService

# ── Singleton stores ──
_kv_store: KeyValueStore = (
    SqlKeyValueStore.from_url(settings.STATE_DATABASE_URL)
    if settings.STATE_DATABASE_URL
    else InMemoryKeyValueStore()
)
_workspace_repo = WorkspaceRepository()

# ── Shared HTTP client and services ──
_http_client = httpx.AsyncClient(timeout=settings.TEAM_API_TIMEOUT)
_workspace_service = WorkspaceService(
    actions=HttpTeamActions(_http_client),
    workspaces=_workspace_repo,
    http_client=_http_client,
)


async def close_http_client() -> None:
    await _workspace_service.shutdown()
    await _http_client.aclose()
    if isinstance(_kv_store, SqlKeyValueStore):
        _kv_store.dispose()


# ── FastAPI dependency functions ──
def get_kv_store() -> KeyValueStore:
    return _kv_store


def get_workspace_repo() -> WorkspaceRepository:
    return _workspace_repo


def get_workspace_service() -> WorkspaceService:
    return _workspace_service


def get_client_id(
    x_client_id: str = Header(min_length=1, max_length=128),
) -> str:
    """The browser/device identity; all client-side state is scoped to it."""
    return x_client_id


def get_client_store(
    client_id: str = Depends(get_client_id),
    kv_store: KeyValueStore = Depends(get_kv_store),
) -> KeyValueStore:
    return ScopedKeyValueStore(kv_store, f"client:{client_id}:")


def require_events_api_key(
    x_api_key: Optional[str] = Header(default=None),
) -> None:
    """Guard for the realtime event ingress."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key. Provide X-API-Key header.")
    if not any(secrets.compare_digest(x_api_key.encode(), key.encode())
               for key in settings.EVENTS_API_KEYS):
        raise HTTPException(status_code=403, detail="Invalid API key.")
