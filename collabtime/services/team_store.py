# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Authoritative team state store.

Holds the single in-memory snapshot of one team for one client. Every
mutation is a pure snapshot -> snapshot transform applied through
TeamStateStore.update(); transforms rebuild what they touch and hand back the
very same object when nothing changed, so a new snapshot reference means new
content. Two writers feed the store: optimistic local edits and realtime
deliveries (see reconciler.py). Ordering between them is last-applied-wins.
"""

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Optional

from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import OPTIMISTIC_ROLLBACKS
from collabtime.models.domain import ActionResult, Group, Member, TeamSnapshot

logger = get_logger(__name__)

Transform = Callable[[TeamSnapshot], TeamSnapshot]
Listener = Callable[[TeamSnapshot], None]


def _with_team(snapshot: TeamSnapshot, **changes: Any) -> TeamSnapshot:
    if "groups" in changes:
        changes["groups"] = tuple(sorted(changes["groups"], key=lambda g: g.order))
    team = snapshot.team.model_copy(update=changes)
    if team == snapshot.team:
        return snapshot
    return snapshot.model_copy(update={"team": team})


def _reorder(items: tuple, order: Iterable[str]) -> tuple:
    """Items in the given id order. Ids missing from order are dropped."""
    by_id = {item.id: item for item in items}
    return tuple(by_id[item_id] for item_id in order if item_id in by_id)


# ── Member transforms ──

def add_member(member: Member) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        if any(m.id == member.id for m in snapshot.team.members):
            return snapshot
        return _with_team(snapshot, members=snapshot.team.members + (member,))
    return apply


def remove_member(member_id: str) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        members = tuple(m for m in snapshot.team.members if m.id != member_id)
        if len(members) == len(snapshot.team.members):
            return snapshot
        return _with_team(snapshot, members=members)
    return apply


def replace_member(member: Member) -> Transform:
    """Last-write-wins replacement by id; unknown ids are ignored."""
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        members = tuple(member if m.id == member.id else m for m in snapshot.team.members)
        return _with_team(snapshot, members=members)
    return apply


def patch_member(member_id: str, changes: dict[str, Any]) -> Transform:
    """Apply a partial update (snake_case field names), re-validating the member."""
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        current = next((m for m in snapshot.team.members if m.id == member_id), None)
        if current is None:
            return snapshot
        updated = Member.model_validate({**current.model_dump(), **changes, "id": member_id})
        return replace_member(updated)(snapshot)
    return apply


def reorder_members(order: Iterable[str]) -> Transform:
    """
    Reorder by the given id sequence. Members whose ids are absent from the
    sequence are dropped, so the sequence must be a complete authoritative order.
    """
    order = tuple(order)

    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        return _with_team(snapshot, members=_reorder(snapshot.team.members, order))
    return apply


def rename_team(name: str) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        return _with_team(snapshot, name=name)
    return apply


# ── Group transforms ──

def add_group(group: Group) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        if any(g.id == group.id for g in snapshot.team.groups):
            return snapshot
        return _with_team(snapshot, groups=snapshot.team.groups + (group,))
    return apply


def replace_group(group: Group) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        groups = tuple(group if g.id == group.id else g for g in snapshot.team.groups)
        return _with_team(snapshot, groups=groups)
    return apply


def patch_group(group_id: str, changes: dict[str, Any]) -> Transform:
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        current = next((g for g in snapshot.team.groups if g.id == group_id), None)
        if current is None:
            return snapshot
        updated = Group.model_validate({**current.model_dump(), **changes, "id": group_id})
        return replace_group(updated)(snapshot)
    return apply


def remove_group(group_id: str) -> Transform:
    """Drop the group and unassign (never delete) its members."""
    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        groups = tuple(g for g in snapshot.team.groups if g.id != group_id)
        members = tuple(
            m.model_copy(update={"group_id": None}) if m.group_id == group_id else m
            for m in snapshot.team.members
        )
        return _with_team(snapshot, groups=groups, members=members)
    return apply


def reorder_groups(order: Iterable[str]) -> Transform:
    """Reorder groups by id and set order = position. Same lossy rule as members."""
    order = tuple(order)

    def apply(snapshot: TeamSnapshot) -> TeamSnapshot:
        groups = tuple(
            g if g.order == position else g.model_copy(update={"order": position})
            for position, g in enumerate(_reorder(snapshot.team.groups, order))
        )
        return _with_team(snapshot, groups=groups)
    return apply


# ── Derived ──

def group_member_count(snapshot: TeamSnapshot, group_id: str) -> int:
    return sum(1 for m in snapshot.team.members if m.group_id == group_id)


def find_member(snapshot: TeamSnapshot, member_id: str) -> Optional[Member]:
    return next((m for m in snapshot.team.members if m.id == member_id), None)


# ── Store ──

class TeamStateStore:
    """Single-writer holder of one team's snapshot."""

    def __init__(self, team_id: str) -> None:
        self.team_id = team_id
        self._snapshot: Optional[TeamSnapshot] = None
        self._generation = 0
        self._listeners: list[Listener] = []

    @property
    def snapshot(self) -> Optional[TeamSnapshot]:
        return self._snapshot

    @property
    def generation(self) -> int:
        """Number of the most recently started fetch."""
        return self._generation

    @property
    def is_seeded(self) -> bool:
        return self._snapshot is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, snapshot: TeamSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    # ── Seeding ──

    def begin_fetch(self) -> int:
        """Start a fetch; only the latest started fetch may seed the store."""
        self._generation += 1
        return self._generation

    def seed(self, snapshot: TeamSnapshot, generation: int) -> bool:
        if generation != self._generation:
            logger.info("Discarding stale fetch: team=%s, generation=%d, current=%d",
                        self.team_id, generation, self._generation)
            return False
        if snapshot != self._snapshot:
            self._publish(snapshot)
        return True

    # ── Mutation ──

    def update(self, transform: Transform) -> Optional[TeamSnapshot]:
        """The one entry point for changes. No-op until the store is seeded."""
        current = self._snapshot
        if current is None:
            return None
        updated = transform(current)
        if updated is not current and updated != current:
            self._publish(updated)
        return self._snapshot

    def restore(self, snapshot: TeamSnapshot) -> None:
        if snapshot is not self._snapshot:
            self._publish(snapshot)

    async def apply_optimistic(
        self,
        action: str,
        transform: Transform,
        request: Callable[[], Awaitable[ActionResult]],
    ) -> ActionResult:
        """
        Apply transform now, then await the request. On failure the store goes
        back to the snapshot captured before the optimistic write, dropping
        anything applied in between.
        """
        previous = self._snapshot
        self.update(transform)
        try:
            result = await request()
        except (Exception, asyncio.CancelledError) as exc:
            self._roll_back(action, previous, repr(exc))
            raise
        if not result.success:
            self._roll_back(action, previous, result.error)
        return result

    def _roll_back(self, action: str, previous: Optional[TeamSnapshot], error: Any) -> None:
        if previous is None:
            return
        OPTIMISTIC_ROLLBACKS.labels(action=action).inc()
        logger.warning("Rolling back optimistic %s: team=%s, error=%s",
                       action, self.team_id, error)
        self.restore(previous)
