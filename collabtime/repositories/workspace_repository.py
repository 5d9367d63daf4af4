# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: open workspaces, one per (client, team).
Encapsulates all reads/writes of the in-memory workspace registry.
NO business rules here, pure CRUD. The registry is bounded: past
MAX_OPEN_WORKSPACES the least recently used workspace is closed.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from collabtime.core.config import settings
from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import OPEN_WORKSPACES, WORKSPACES_EVICTED
from collabtime.repositories.notice_repository import NoticeRepository
from collabtime.services.reconciler import EventReconciler
from collabtime.services.team_store import TeamStateStore

logger = get_logger(__name__)


@dataclass
class Workspace:
    """Everything one client holds for one team."""

    client_id: str
    team_id: str
    store: TeamStateStore
    reconciler: EventReconciler
    notices: NoticeRepository
    realtime_task: Optional[asyncio.Task] = field(default=None, repr=False)
    pending_fetch: Optional[asyncio.Future] = field(default=None, repr=False)
    unsubscribe: Optional[Callable[[], None]] = field(default=None, repr=False)

    def close(self) -> None:
        """Stop the realtime subscription and detach store listeners."""
        if self.realtime_task is not None:
            self.realtime_task.cancel()
        if self.unsubscribe is not None:
            self.unsubscribe()
            self.unsubscribe = None


class WorkspaceRepository:
    """In-memory workspace storage, least recently used first."""

    def __init__(self, max_size: Optional[int] = None) -> None:
        self._store: "OrderedDict[tuple[str, str], Workspace]" = OrderedDict()
        self._max_size = max_size if max_size is not None else settings.MAX_OPEN_WORKSPACES

    # ── Read ──

    def get(self, client_id: str, team_id: str) -> Optional[Workspace]:
        key = (client_id, team_id)
        workspace = self._store.get(key)
        if workspace is not None:
            self._store.move_to_end(key)
        return workspace

    def for_team(self, team_id: str) -> list[Workspace]:
        return [w for (_, t), w in self._store.items() if t == team_id]

    def get_all(self) -> list[Workspace]:
        return list(self._store.values())

    def count(self) -> int:
        return len(self._store)

    # ── Write ──

    def get_or_create(self, client_id: str, team_id: str) -> Workspace:
        workspace = self.get(client_id, team_id)
        if workspace is None:
            store = TeamStateStore(team_id)
            notices = NoticeRepository()
            workspace = Workspace(
                client_id=client_id,
                team_id=team_id,
                store=store,
                reconciler=EventReconciler(store, notices),
                notices=notices,
            )
            self._store[(client_id, team_id)] = workspace
            self._evict()
            OPEN_WORKSPACES.set(len(self._store))
        return workspace

    def _evict(self) -> None:
        while len(self._store) > self._max_size:
            (client_id, team_id), workspace = self._store.popitem(last=False)
            workspace.close()
            WORKSPACES_EVICTED.inc()
            logger.info("Evicted idle workspace: client=%s, team=%s", client_id, team_id)

    def delete(self, client_id: str, team_id: str) -> Optional[Workspace]:
        workspace = self._store.pop((client_id, team_id), None)
        OPEN_WORKSPACES.set(len(self._store))
        return workspace
