# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Service: Client preferences, recently visited teams and collapsed groups."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from collabtime.core.config import settings
from collabtime.models.domain import VisitedTeam
from collabtime.repositories.kv_store import KeyValueStore, read_json, write_json

VISITED_TEAMS_KEY = "collab-time-visited-teams"
COLLAPSED_GROUPS_PREFIX = "collab-time-collapsed-groups-"

_visited_adapter = TypeAdapter(list[VisitedTeam])


class VisitedTeams:
    """Most-recent-first list of teams opened on this client, bounded."""

    def __init__(self, store: KeyValueStore, max_teams: Optional[int] = None) -> None:
        self._store = store
        self._max_teams = max_teams or settings.MAX_VISITED_TEAMS

    def get_all(self) -> list[VisitedTeam]:
        try:
            return _visited_adapter.validate_python(read_json(self._store, VISITED_TEAMS_KEY, []))
        except ValidationError:
            return []

    def _save(self, teams: list[VisitedTeam]) -> list[VisitedTeam]:
        write_json(self._store, VISITED_TEAMS_KEY, [t.model_dump(by_alias=True) for t in teams])
        return teams

    def save_visited_team(
        self, team_id: str, member_count: int, name: Optional[str] = None
    ) -> list[VisitedTeam]:
        teams = self.get_all()
        existing = next((t for t in teams if t.id == team_id), None)
        entry = VisitedTeam(
            id=team_id,
            name=name if name is not None else (existing.name if existing else ""),
            member_count=member_count,
            last_visited=datetime.now(timezone.utc).isoformat(),
        )
        others = [t for t in teams if t.id != team_id]
        return self._save([entry] + others[: self._max_teams - 1])

    def update_team_name(self, team_id: str, name: str) -> list[VisitedTeam]:
        return self._save([
            t.model_copy(update={"name": name}) if t.id == team_id else t
            for t in self.get_all()
        ])

    def remove_visited_team(self, team_id: str) -> list[VisitedTeam]:
        return self._save([t for t in self.get_all() if t.id != team_id])

    def get_team_name(self, team_id: str) -> str:
        return next((t.name for t in self.get_all() if t.id == team_id), "")


class CollapsedGroups:
    """Per-team set of group ids collapsed in the member list."""

    def __init__(self, store: KeyValueStore, team_id: str) -> None:
        self._store = store
        self._key = f"{COLLAPSED_GROUPS_PREFIX}{team_id}"

    def ids(self) -> set[str]:
        raw = read_json(self._store, self._key, [])
        if not isinstance(raw, list):
            return set()
        return {item for item in raw if isinstance(item, str)}

    def _save(self, ids: set[str]) -> set[str]:
        write_json(self._store, self._key, sorted(ids))
        return ids

    def is_collapsed(self, group_id: str) -> bool:
        return group_id in self.ids()

    def toggle(self, group_id: str) -> bool:
        """Flip one group; returns the new collapsed state."""
        ids = self.ids()
        collapsed = group_id not in ids
        if collapsed:
            ids.add(group_id)
        else:
            ids.discard(group_id)
        self._save(ids)
        return collapsed

    def prune(self, existing_group_ids: Iterable[str]) -> set[str]:
        """Forget ids of groups that no longer exist."""
        ids = self.ids()
        kept = ids & set(existing_group_ids)
        if kept != ids:
            self._save(kept)
        return kept
