# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: team session (password login, status, logout).
"""

from fastapi import APIRouter, Depends

from collabtime.controllers.errors import HANDLED_ERRORS, http_error
from collabtime.core.dependencies import (
    get_client_id,
    get_client_store,
    get_workspace_service,
)
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.schemas.workspace import AuthenticateRequest, SessionResponse
from collabtime.services.session_gate import SessionGate, has_admin_access
from collabtime.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/api/v1/teams/{team_id}/session", tags=["Session"])


@router.post("", response_model=SessionResponse, response_model_by_alias=True)
async def authenticate(
    team_id: str,
    payload: AuthenticateRequest,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Exchange the team's admin or member password for a session."""
    try:
        session = await SessionGate(kv).authenticate(team_id, payload.password, service.actions)
    except HANDLED_ERRORS as e:
        raise http_error(e)
    # A new session (possibly another role) invalidates the held snapshot.
    service.close_workspace(client_id, team_id)
    return SessionResponse(
        team_id=team_id, role=session.role, authenticated=True, admin=has_admin_access(session)
    )


@router.get("", response_model=SessionResponse, response_model_by_alias=True)
def get_session(team_id: str, kv: KeyValueStore = Depends(get_client_store)):
    session = SessionGate(kv).read(team_id)
    return SessionResponse(
        team_id=team_id,
        role=session.role if session else None,
        authenticated=session is not None,
        admin=has_admin_access(session),
    )


@router.delete("", status_code=204)
def logout(
    team_id: str,
    kv: KeyValueStore = Depends(get_client_store),
    client_id: str = Depends(get_client_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    SessionGate(kv).clear(team_id)
    service.close_workspace(client_id, team_id)
