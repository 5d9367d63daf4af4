# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: "which member am I" for a team, on this client.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from collabtime.controllers.errors import HANDLED_ERRORS, http_error
from collabtime.core.dependencies import (
    get_client_id,
    get_client_store,
    get_workspace_service,
)
from collabtime.models.domain import TeamSnapshot
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.schemas.workspace import CurrentUserRequest, MemberIdRequest
from collabtime.services.identity import CurrentUserResolver
from collabtime.services.team_store import find_member
from collabtime.services.timezones import resolve_viewer_timezone
from collabtime.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/api/v1/teams/{team_id}/me", tags=["Identity"])


def _identity(
    resolver: CurrentUserResolver, snapshot: TeamSnapshot, viewer_tz: Optional[str]
) -> dict:
    members = snapshot.team.members
    resolver.reconcile(members)
    state = resolver.state
    current = resolver.current_user(members)
    suggested = resolver.suggested_user(members, resolve_viewer_timezone(viewer_tz))
    return {
        "currentUserId": state.member_id,
        "source": state.source,
        "currentUser": current.model_dump(by_alias=True) if current else None,
        "suggestedUser": suggested.model_dump(by_alias=True) if suggested else None,
        "dismissedSuggestions": list(state.dismissed_suggestions),
    }


async def _snapshot(service, client_id, kv, team_id) -> TeamSnapshot:
    try:
        return await service.get_snapshot(client_id, kv, team_id)
    except HANDLED_ERRORS as e:
        raise http_error(e)


def _require_member(snapshot: TeamSnapshot, member_id: str) -> None:
    if find_member(snapshot, member_id) is None:
        raise http_error(KeyError(f"Member '{member_id}' not found"))


@router.get("")
async def get_current_user(
    team_id: str,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Selected member (if any) and the timezone-based suggestion."""
    snapshot = await _snapshot(service, client_id, kv, team_id)
    return _identity(CurrentUserResolver(kv, team_id), snapshot, viewer_tz)


@router.put("")
async def set_current_user(
    team_id: str,
    payload: CurrentUserRequest,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    snapshot = await _snapshot(service, client_id, kv, team_id)
    if payload.member_id is not None:
        _require_member(snapshot, payload.member_id)
    resolver = CurrentUserResolver(kv, team_id)
    resolver.set_current_user(payload.member_id, payload.source)
    return _identity(resolver, snapshot, viewer_tz)


@router.delete("")
async def clear_current_user(
    team_id: str,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    snapshot = await _snapshot(service, client_id, kv, team_id)
    resolver = CurrentUserResolver(kv, team_id)
    resolver.clear_current_user()
    return _identity(resolver, snapshot, viewer_tz)


@router.post("/dismiss")
async def dismiss_suggestion(
    team_id: str,
    payload: MemberIdRequest,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Never suggest this member again on this client."""
    snapshot = await _snapshot(service, client_id, kv, team_id)
    resolver = CurrentUserResolver(kv, team_id)
    resolver.dismiss_suggestion(payload.member_id)
    return _identity(resolver, snapshot, viewer_tz)


@router.post("/accept")
async def accept_suggestion(
    team_id: str,
    payload: MemberIdRequest,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    snapshot = await _snapshot(service, client_id, kv, team_id)
    _require_member(snapshot, payload.member_id)
    resolver = CurrentUserResolver(kv, team_id)
    resolver.accept_suggestion(payload.member_id)
    return _identity(resolver, snapshot, viewer_tz)
