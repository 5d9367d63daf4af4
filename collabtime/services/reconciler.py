# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Realtime event reconciler.

Maps inbound realtime events onto team-store transforms. The feed is
at-least-once and may interleave with local optimistic writes, so every
handler is safe under redelivery:

    memberAdded / groupCreated     ignore an id that is already present
    memberRemoved / groupRemoved   removal is idempotent; a second delivery of
                                   the same id inside the de-dup window is
                                   suppressed so the notice is not repeated
    memberUpdated / groupUpdated   last-write-wins replace by id
    membersReordered /
    groupsReordered                reorder by the given ids; absent ids are dropped
    nameUpdated                    last-write-wins

Unknown events and malformed payloads are logged and dropped, never surfaced.
Events that arrive before the store is seeded are dropped as well; the
initial fetch is authoritative for them.
"""

import time
from typing import Any, AsyncIterable, Callable, Optional

from pydantic import ValidationError

from collabtime.core.config import settings
from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import (
    REALTIME_EVENTS_APPLIED,
    REALTIME_EVENTS_REJECTED,
    REALTIME_EVENTS_SUPPRESSED,
)
from collabtime.models.domain import Group, Member, RealtimeMessage
from collabtime.repositories.notice_repository import NoticeRepository
from collabtime.services import team_store
from collabtime.services.team_store import TeamStateStore, Transform

logger = get_logger(__name__)

MEMBER_ADDED = "team.memberAdded"
MEMBER_REMOVED = "team.memberRemoved"
MEMBER_UPDATED = "team.memberUpdated"
MEMBERS_REORDERED = "team.membersReordered"
NAME_UPDATED = "team.nameUpdated"
GROUP_CREATED = "team.groupCreated"
GROUP_UPDATED = "team.groupUpdated"
GROUP_REMOVED = "team.groupRemoved"
GROUPS_REORDERED = "team.groupsReordered"

TEAM_EVENTS: tuple[str, ...] = (
    MEMBER_ADDED,
    MEMBER_REMOVED,
    MEMBER_UPDATED,
    MEMBERS_REORDERED,
    NAME_UPDATED,
    GROUP_CREATED,
    GROUP_UPDATED,
    GROUP_REMOVED,
    GROUPS_REORDERED,
)


def _order(data: Any) -> list[str]:
    order = data["order"]
    if not isinstance(order, list) or not all(isinstance(i, str) for i in order):
        raise TypeError("order must be a list of ids")
    return order


def _string(data: Any, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


class EventReconciler:
    """Applies realtime messages for one team to its state store."""

    def __init__(
        self,
        store: TeamStateStore,
        notices: NoticeRepository,
        clock: Callable[[], float] = time.monotonic,
        dedup_window: Optional[float] = None,
    ) -> None:
        self._store = store
        self._notices = notices
        self._clock = clock
        self._dedup_window = (
            settings.REMOVAL_DEDUP_SECONDS if dedup_window is None else dedup_window
        )
        self._last_removal: dict[str, tuple[str, float]] = {}
        self._handlers: dict[str, Callable[[Any], bool]] = {
            MEMBER_ADDED: self._member_added,
            MEMBER_REMOVED: self._member_removed,
            MEMBER_UPDATED: self._member_updated,
            MEMBERS_REORDERED: self._members_reordered,
            NAME_UPDATED: self._name_updated,
            GROUP_CREATED: self._group_created,
            GROUP_UPDATED: self._group_updated,
            GROUP_REMOVED: self._group_removed,
            GROUPS_REORDERED: self._groups_reordered,
        }

    # ── Entry points ──

    def apply(self, message: RealtimeMessage) -> bool:
        """Apply one delivery. Returns True if the snapshot changed."""
        handler = self._handlers.get(message.event)
        if handler is None:
            REALTIME_EVENTS_REJECTED.labels(reason="unknown_event").inc()
            logger.debug("Ignoring unknown realtime event: %s", message.event)
            return False
        try:
            changed = handler(message.data)
        except (ValidationError, KeyError, TypeError) as exc:
            REALTIME_EVENTS_REJECTED.labels(reason="malformed").inc()
            logger.warning("Dropping malformed realtime event: event=%s, team=%s, error=%s",
                           message.event, self._store.team_id, exc)
            return False
        if changed:
            REALTIME_EVENTS_APPLIED.labels(event=message.event).inc()
        else:
            REALTIME_EVENTS_SUPPRESSED.labels(event=message.event).inc()
        return changed

    async def consume(self, messages: AsyncIterable[RealtimeMessage]) -> int:
        """Drain a message stream until it ends. Returns how many changed state."""
        applied = 0
        async for message in messages:
            if self.apply(message):
                applied += 1
        return applied

    # ── Helpers ──

    def _update(self, transform: Transform) -> bool:
        before = self._store.snapshot
        if before is None:
            return False
        return self._store.update(transform) is not before

    def _recently_removed(self, kind: str, item_id: str) -> bool:
        last = self._last_removal.get(kind)
        return (
            last is not None
            and last[0] == item_id
            and self._clock() - last[1] < self._dedup_window
        )

    # ── Members ──

    def _member_added(self, data: Any) -> bool:
        member = Member.model_validate(data)
        changed = self._update(team_store.add_member(member))
        if changed:
            self._notices.success(f"{member.name} joined the team")
        return changed

    def _member_removed(self, data: Any) -> bool:
        member_id = _string(data, "memberId")
        if self._recently_removed("member", member_id):
            return False
        snapshot = self._store.snapshot
        member = team_store.find_member(snapshot, member_id) if snapshot else None
        changed = self._update(team_store.remove_member(member_id))
        if member is not None:
            self._last_removal["member"] = (member_id, self._clock())
            self._notices.success(f"{member.name} left the team")
        return changed

    def _member_updated(self, data: Any) -> bool:
        return self._update(team_store.replace_member(Member.model_validate(data)))

    def _members_reordered(self, data: Any) -> bool:
        return self._update(team_store.reorder_members(_order(data)))

    def _name_updated(self, data: Any) -> bool:
        return self._update(team_store.rename_team(_string(data, "name")))

    # ── Groups ──

    def _group_created(self, data: Any) -> bool:
        return self._update(team_store.add_group(Group.model_validate(data)))

    def _group_updated(self, data: Any) -> bool:
        return self._update(team_store.replace_group(Group.model_validate(data)))

    def _group_removed(self, data: Any) -> bool:
        group_id = _string(data, "groupId")
        if self._recently_removed("group", group_id):
            return False
        snapshot = self._store.snapshot
        group = next((g for g in snapshot.team.groups if g.id == group_id), None) if snapshot else None
        changed = self._update(team_store.remove_group(group_id))
        if group is not None:
            self._last_removal["group"] = (group_id, self._clock())
            self._notices.success(f"Group {group.name} was removed")
        return changed

    def _groups_reordered(self, data: Any) -> bool:
        return self._update(team_store.reorder_groups(_order(data)))
