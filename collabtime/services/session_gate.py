# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Service: Team session storage and the admin/member access gate."""

import time
from typing import Callable, Optional

from collabtime.core.config import settings
from collabtime.core.errors import ActionFailedError, TeamNotFoundError, UnauthorizedError
from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import SESSIONS_CLEARED
from collabtime.models.domain import ActionResult, StoredSession, TeamSession
from collabtime.repositories.kv_store import KeyValueStore, read_model, write_model
from collabtime.services.team_client import TeamActions

logger = get_logger(__name__)

TEAM_SESSION_PREFIX = "collab-time-session:"


def session_key(team_id: str) -> str:
    return f"{TEAM_SESSION_PREFIX}{team_id}"


def has_admin_access(session: Optional[TeamSession]) -> bool:
    return session is not None and session.role == "admin"


def validate_password(password: str) -> str:
    """Shape check done before any network call. Raises ValueError."""
    if not password or not password.strip():
        raise ValueError("Password is required")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )
    if len(password) > settings.PASSWORD_MAX_LENGTH:
        raise ValueError(
            f"Password must be at most {settings.PASSWORD_MAX_LENGTH} characters"
        )
    return password


class SessionGate:
    """One session per team on this client, with a bounded lifetime."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        max_age: Optional[int] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_age = max_age or settings.SESSION_MAX_AGE_SECONDS

    def read(self, team_id: str) -> Optional[TeamSession]:
        stored = read_model(self._store, session_key(team_id), StoredSession, lambda: None)
        if stored is None:
            return None
        if stored.expires_at <= self._clock():
            self.clear(team_id, reason="expired")
            return None
        return TeamSession(token=stored.token, role=stored.role)

    def write(self, team_id: str, session: TeamSession) -> TeamSession:
        stored = StoredSession(
            token=session.token,
            role=session.role,
            expires_at=self._clock() + self._max_age,
        )
        write_model(self._store, session_key(team_id), stored)
        return session

    def clear(self, team_id: str, reason: str = "logout") -> None:
        self._store.delete(session_key(team_id))
        SESSIONS_CLEARED.labels(reason=reason).inc()
        logger.info("Team session cleared: team=%s, reason=%s", team_id, reason)

    def has_admin_access(self, team_id: str) -> bool:
        return has_admin_access(self.read(team_id))

    def handle_unauthorized(self, team_id: str) -> None:
        """Upstream rejected the token: drop it so the client re-authenticates."""
        self.clear(team_id, reason="unauthorized")

    async def authenticate(
        self, team_id: str, password: str, actions: TeamActions
    ) -> TeamSession:
        """
        Exchange the shared team password for a fresh session.
        Raises ValueError for a malformed password, UnauthorizedError when the
        upstream refuses it, TeamNotFoundError when the team does not exist and
        ActionFailedError when the upstream could not answer.
        """
        validate_password(password)
        result: ActionResult = await actions.authenticate_team(team_id, password)
        if not result.success:
            if result.code == "not_found":
                raise TeamNotFoundError(result.error or f"Team '{team_id}' not found")
            if result.code in ("unauthorized", "validation"):
                raise UnauthorizedError(result.error or "Invalid password")
            raise ActionFailedError(result.error or "Authentication failed")
        session = result.data
        logger.info("Team session issued: team=%s, role=%s", team_id, session.role)
        return self.write(team_id, session)
