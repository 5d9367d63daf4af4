# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: team workspace, members, groups, team name, notices, overlap.
Thin HTTP layer, delegates ALL logic to WorkspaceService.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from collabtime.controllers.errors import HANDLED_ERRORS, http_error
from collabtime.core.config import settings
from collabtime.core.dependencies import (
    get_client_id,
    get_client_store,
    get_workspace_service,
    require_events_api_key,
)
from collabtime.models.domain import RealtimeMessage, team_channel
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.schemas.workspace import (
    GroupCreateRequest,
    GroupUpdateRequest,
    MemberCreateRequest,
    MemberUpdateRequest,
    OrderRequest,
    RealtimeEventRequest,
    TeamNameRequest,
    overlap_response,
    team_response,
)
from collabtime.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/api/v1/teams/{team_id}", tags=["Workspace"])


@router.get("")
async def get_team(
    team_id: str,
    refresh: bool = Query(default=False),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Current team snapshot. refresh=true refetches from the team API."""
    try:
        if refresh:
            snapshot = await service.open_workspace(client_id, kv, team_id)
        else:
            snapshot = await service.get_snapshot(client_id, kv, team_id)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


@router.patch("/name")
async def rename_team(
    team_id: str,
    payload: TeamNameRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        snapshot = await service.rename_team(client_id, kv, team_id, payload.name)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


# ── Members ──

@router.post("/members", status_code=201)
async def add_member(
    team_id: str,
    payload: MemberCreateRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        member = await service.add_member(client_id, kv, team_id, payload.model_dump())
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return member.model_dump(by_alias=True)


@router.put("/members/order")
async def reorder_members(
    team_id: str,
    payload: OrderRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        snapshot = await service.reorder_members(client_id, kv, team_id, payload.order)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


@router.patch("/members/{member_id}")
async def update_member(
    team_id: str,
    member_id: str,
    payload: MemberUpdateRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Partial update; a groupId of null moves the member out of its group."""
    changes = payload.model_dump(exclude_unset=True)
    try:
        snapshot = await service.update_member(client_id, kv, team_id, member_id, changes)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


@router.delete("/members/{member_id}")
async def remove_member(
    team_id: str,
    member_id: str,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        snapshot = await service.remove_member(client_id, kv, team_id, member_id)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


# ── Groups ──

@router.post("/groups", status_code=201)
async def add_group(
    team_id: str,
    payload: GroupCreateRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        group = await service.add_group(client_id, kv, team_id, payload.name)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return group.model_dump(by_alias=True)


@router.put("/groups/order")
async def reorder_groups(
    team_id: str,
    payload: OrderRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        snapshot = await service.reorder_groups(client_id, kv, team_id, payload.order)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


@router.patch("/groups/{group_id}")
async def update_group(
    team_id: str,
    group_id: str,
    payload: GroupUpdateRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    changes = payload.model_dump(exclude_unset=True)
    try:
        snapshot = await service.update_group(client_id, kv, team_id, group_id, changes)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


@router.delete("/groups/{group_id}")
async def remove_group(
    team_id: str,
    group_id: str,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Remove a group; its members stay in the team, ungrouped."""
    try:
        snapshot = await service.remove_group(client_id, kv, team_id, group_id)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return team_response(snapshot)


# ── Notices / realtime ──

@router.get("/notices")
async def list_notices(
    team_id: str,
    level: Optional[str] = Query(default=None, pattern="^(success|error)$"),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    try:
        workspace = await service.get_workspace(client_id, kv, team_id)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return [n.model_dump(by_alias=True) for n in workspace.notices.get_all(level, limit)]


@router.post("/events", status_code=202, dependencies=[Depends(require_events_api_key)])
async def ingest_event(
    team_id: str,
    payload: RealtimeEventRequest,
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Realtime ingress: apply one team event to every open workspace of the team."""
    message = RealtimeMessage(
        event=payload.event, data=payload.data, channel=team_channel(team_id)
    )
    return {"event": payload.event, "applied": service.deliver(team_id, message)}


# ── Overlap ──

@router.get("/overlap")
async def get_overlap(
    team_id: str,
    viewer_tz: Optional[str] = Query(default=None, alias="viewerTz"),
    selected_a: Optional[str] = Query(default=None, alias="a"),
    selected_b: Optional[str] = Query(default=None, alias="b"),
    member_ids: Optional[list[str]] = Query(default=None, alias="memberId"),
    group_ids: Optional[list[str]] = Query(default=None, alias="groupId"),
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Hour grid, pair overlap and selection overlap, in the viewer's timezone."""
    try:
        view = await service.get_overlap(
            client_id, kv, team_id,
            viewer_tz=viewer_tz,
            selected_a=selected_a,
            selected_b=selected_b,
            member_ids=member_ids,
            group_ids=group_ids,
        )
    except HANDLED_ERRORS as e:
        raise http_error(e)
    return overlap_response(view, settings.OVERLAP_REFRESH_SECONDS)
