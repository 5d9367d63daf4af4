# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas, API contract definitions.
These are Pydantic models used ONLY at the controller (HTTP) boundary.
JSON field names are camelCase, matching the browser client.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from collabtime.models.domain import Member, TeamRole, TeamSnapshot, UserSource
from collabtime.services.overlap import OverlapView
from collabtime.services.team_store import group_member_count


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ── Session ──

class AuthenticateRequest(CamelModel):
    password: str


class SessionResponse(CamelModel):
    team_id: str
    role: Optional[TeamRole] = None
    authenticated: bool
    admin: bool


# ── Members ──

class MemberCreateRequest(CamelModel):
    name: str = Field(..., max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    timezone: str
    working_hours_start: int = Field(default=9, ge=0, le=23)
    working_hours_end: int = Field(default=17, ge=0, le=23)
    group_id: Optional[str] = None


class MemberUpdateRequest(CamelModel):
    """Partial update model for PATCH .../members/{member_id}."""
    name: Optional[str] = Field(default=None, max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    timezone: Optional[str] = None
    working_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    working_hours_end: Optional[int] = Field(default=None, ge=0, le=23)
    group_id: Optional[str] = None


class OrderRequest(CamelModel):
    order: list[str]


# ── Groups / team ──

class GroupCreateRequest(CamelModel):
    name: str = Field(..., max_length=255)


class GroupUpdateRequest(CamelModel):
    name: Optional[str] = Field(default=None, max_length=255)


class TeamNameRequest(CamelModel):
    name: str = Field(..., max_length=255)


class RealtimeEventRequest(CamelModel):
    event: str = Field(..., min_length=1)
    data: Any = None


# ── Identity ──

class CurrentUserRequest(CamelModel):
    member_id: Optional[str] = None
    source: UserSource = "explicit"


class MemberIdRequest(CamelModel):
    member_id: str = Field(..., min_length=1)


# ── Overlap ──

class OverlapRequest(CamelModel):
    members: list[Member]
    viewer_timezone: Optional[str] = None
    selected_a: Optional[str] = None
    selected_b: Optional[str] = None
    member_ids: Optional[list[str]] = None
    group_ids: Optional[list[str]] = None


# ── Response builders ──

def team_response(snapshot: TeamSnapshot) -> dict[str, Any]:
    team = snapshot.team
    return {
        "id": team.id,
        "name": team.name,
        "role": snapshot.role,
        "admin": snapshot.role == "admin",
        "members": [m.model_dump(by_alias=True) for m in team.members],
        "groups": [
            {**g.model_dump(by_alias=True), "memberCount": group_member_count(snapshot, g.id)}
            for g in team.groups
        ],
    }


def overlap_response(view: OverlapView, refresh_seconds: int) -> dict[str, Any]:
    return {
        "viewerTimezone": view.viewer_timezone,
        "rows": [
            {
                "memberId": row.member.id,
                "name": row.member.name,
                "timezone": row.member.timezone,
                "hours": list(row.hours),
            }
            for row in view.rows
        ],
        "pair": {"a": view.pair[0], "b": view.pair[1]},
        "pairOverlap": list(view.pair_overlap),
        "selectionOverlap": list(view.selection_overlap),
        "selectedIds": list(view.selected_ids),
        "summary": view.summary,
        "intervals": [list(i) for i in view.intervals],
        "nowPosition": view.now_position,
        "refreshSeconds": refresh_seconds,
    }
