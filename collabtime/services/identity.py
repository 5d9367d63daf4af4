# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: "Which member am I in this team", persisted per team on the client.

Only outcomes are persisted (the chosen member and dismissed suggestions).
The suggestion itself is derived by suggest_user() every time the member
list, the viewer timezone or the dismissed set changes.
"""

from typing import Optional, Sequence

from collabtime.core.logging import get_logger
from collabtime.models.domain import CurrentUserState, Member, UserSource
from collabtime.repositories.kv_store import KeyValueStore, read_model, write_model

logger = get_logger(__name__)

STORAGE_KEY_PREFIX = "collab-time-current-user-"


def storage_key(team_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{team_id}"


def suggest_user(
    state: CurrentUserState,
    members: Sequence[Member],
    viewer_tz: Optional[str],
) -> Optional[Member]:
    """
    The member to offer as "is this you?", or None.
    Offered only when nothing is selected yet, exactly one member's timezone
    equals the viewer's, and that member was not dismissed before.
    """
    if state.member_id or not viewer_tz:
        return None
    matches = [m for m in members if m.timezone == viewer_tz]
    if len(matches) != 1:
        return None
    match = matches[0]
    if match.id in state.dismissed_suggestions:
        return None
    return match


class CurrentUserResolver:
    """Per-team local identity selection over the client key-value store."""

    def __init__(self, store: KeyValueStore, team_id: str) -> None:
        self._store = store
        self._team_id = team_id
        self._key = storage_key(team_id)

    @property
    def state(self) -> CurrentUserState:
        return read_model(self._store, self._key, CurrentUserState, CurrentUserState)

    def _save(self, state: CurrentUserState) -> CurrentUserState:
        write_model(self._store, self._key, state)
        return state

    # ── Commands ──

    def set_current_user(
        self, member_id: Optional[str], source: UserSource = "explicit"
    ) -> CurrentUserState:
        state = self.state.model_copy(
            update={"member_id": member_id, "source": source if member_id else None}
        )
        logger.info("Current user set: team=%s, member=%s, source=%s",
                    self._team_id, member_id, state.source)
        return self._save(state)

    def clear_current_user(self) -> CurrentUserState:
        return self._save(self.state.model_copy(update={"member_id": None, "source": None}))

    def dismiss_suggestion(self, member_id: str) -> CurrentUserState:
        state = self.state
        if member_id in state.dismissed_suggestions:
            return state
        return self._save(state.model_copy(
            update={"dismissed_suggestions": state.dismissed_suggestions + (member_id,)}
        ))

    def accept_suggestion(self, member_id: str) -> CurrentUserState:
        return self.set_current_user(member_id, "suggested")

    # ── Queries ──

    def is_current_user(self, member_id: str) -> bool:
        return self.state.member_id == member_id

    def current_user(self, members: Sequence[Member]) -> Optional[Member]:
        member_id = self.state.member_id
        if not member_id:
            return None
        return next((m for m in members if m.id == member_id), None)

    def suggested_user(
        self, members: Sequence[Member], viewer_tz: Optional[str]
    ) -> Optional[Member]:
        return suggest_user(self.state, members, viewer_tz)

    def reconcile(self, members: Sequence[Member]) -> bool:
        """
        Drop a selection whose member no longer exists. Only acts once the
        member list is known and non-empty. Returns True if it cleared.
        """
        state = self.state
        if not state.member_id or not members:
            return False
        if any(m.id == state.member_id for m in members):
            return False
        logger.info("Clearing stale current user: team=%s, member=%s",
                    self._team_id, state.member_id)
        self.clear_current_user()
        return True
