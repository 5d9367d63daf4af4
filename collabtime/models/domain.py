# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain models, pure data structures, NO FastAPI dependency.

Every model is frozen: collections are tuples and updates go through
model_copy / model_validate, so a changed team always means a new object.
Wire form (upstream API, realtime payloads, persisted client state) is
camelCase; Python attributes are snake_case.
"""

from typing import Any, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TeamRole = Literal["admin", "member"]
UserSource = Literal["explicit", "suggested"]
NoticeLevel = Literal["success", "error"]
ActionErrorCode = Literal[
    "not_found", "unauthorized", "validation", "conflict", "unavailable"
]


def validate_timezone_name(value: str) -> str:
    """Return the IANA name unchanged, or raise ValueError if unknown."""
    if not value or not value.strip():
        raise ValueError("Timezone is required")
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{value}'")
    return value


class WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Member(WireModel):
    """A team member and their daily working-hours window."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., max_length=255)
    title: Optional[str] = None
    timezone: str
    working_hours_start: int = Field(..., ge=0, le=23)
    working_hours_end: int = Field(..., ge=0, le=23)
    group_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        return validate_timezone_name(value)


class Group(WireModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., max_length=255)
    order: int = 0

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Group name is required")
        return value


class Team(WireModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    members: tuple[Member, ...] = ()
    groups: tuple[Group, ...] = ()

    @field_validator("groups")
    @classmethod
    def _groups_by_order(cls, value: tuple[Group, ...]) -> tuple[Group, ...]:
        return tuple(sorted(value, key=lambda g: g.order))


class TeamSnapshot(WireModel):
    """The whole client-side view of one team, replaced on every change."""

    team: Team
    role: TeamRole


class TeamSession(WireModel):
    token: str = Field(..., min_length=1)
    role: TeamRole


class StoredSession(TeamSession):
    """Session as persisted on the client, with its absolute expiry."""

    expires_at: float


class CurrentUserState(WireModel):
    member_id: Optional[str] = None
    source: Optional[UserSource] = None
    dismissed_suggestions: tuple[str, ...] = ()


class VisitedTeam(WireModel):
    id: str
    name: str = ""
    member_count: int = 0
    last_visited: str


class Notice(WireModel):
    """A user-visible notification (what the browser client shows as a toast)."""

    id: str
    level: NoticeLevel
    message: str
    timestamp: str


class RealtimeMessage(BaseModel):
    """One delivery from the realtime feed: an event name and its payload."""

    model_config = ConfigDict(frozen=True)

    event: str
    data: Any = None
    channel: Optional[str] = None


class ActionResult(BaseModel):
    """Discriminated result of an upstream call; expected failures never raise."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[ActionErrorCode] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: ActionErrorCode = "conflict") -> "ActionResult":
        return cls(success=False, error=error, code=code)


def team_channel(team_id: str) -> str:
    """Realtime channel name carrying one team's events."""
    return f"team-{team_id}"
