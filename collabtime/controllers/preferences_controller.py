# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: client preferences, recently visited teams and collapsed groups.
No team session needed; everything here is local to the client.
"""

from fastapi import APIRouter, Depends

from collabtime.core.dependencies import get_client_store
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.services.preferences import CollapsedGroups, VisitedTeams

router = APIRouter(prefix="/api/v1", tags=["Preferences"])


@router.get("/visited-teams")
def list_visited_teams(kv: KeyValueStore = Depends(get_client_store)):
    """Most recently visited first."""
    return [t.model_dump(by_alias=True) for t in VisitedTeams(kv).get_all()]


@router.delete("/visited-teams/{team_id}")
def forget_visited_team(team_id: str, kv: KeyValueStore = Depends(get_client_store)):
    return [t.model_dump(by_alias=True) for t in VisitedTeams(kv).remove_visited_team(team_id)]


@router.get("/teams/{team_id}/collapsed-groups")
def list_collapsed_groups(team_id: str, kv: KeyValueStore = Depends(get_client_store)):
    return sorted(CollapsedGroups(kv, team_id).ids())


@router.post("/teams/{team_id}/collapsed-groups/{group_id}/toggle")
def toggle_collapsed_group(
    team_id: str, group_id: str, kv: KeyValueStore = Depends(get_client_store)
):
    collapsed = CollapsedGroups(kv, team_id).toggle(group_id)
    return {"groupId": group_id, "collapsed": collapsed}
