# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Team workspace, business logic behind every team endpoint.

Coordinates the session gate, the upstream team API, the per-client team
state store and the client preferences. Edits that the user sees move
immediately (member edits, group moves, reorders, group edits, renames) are
optimistic and roll back on failure; creations and member removal wait for
the upstream answer first. No automatic retries: a failed action records an
error notice and raises ActionFailedError. Once a workspace is open the
client's current-user selection follows its store, whichever writer removed
the member.
"""

import asyncio
from typing import Any, Optional

import httpx
from pydantic.alias_generators import to_camel

from collabtime.core.config import settings
from collabtime.core.errors import (
    ActionFailedError,
    ForbiddenError,
    SessionRequiredError,
    TeamNotFoundError,
    UnauthorizedError,
)
from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import OVERLAP_COMPUTATIONS, REALTIME_RECONNECTS
from collabtime.models.domain import (
    ActionResult,
    Group,
    Member,
    RealtimeMessage,
    TeamSession,
    TeamSnapshot,
    team_channel,
)
from collabtime.repositories.kv_store import KeyValueStore
from collabtime.repositories.workspace_repository import Workspace, WorkspaceRepository
from collabtime.services import team_store
from collabtime.services.identity import CurrentUserResolver
from collabtime.services.overlap import OverlapView, compute_overlap_view
from collabtime.services.preferences import CollapsedGroups, VisitedTeams
from collabtime.services.realtime import stream_sse_events
from collabtime.services.reconciler import TEAM_EVENTS
from collabtime.services.session_gate import SessionGate
from collabtime.services.team_client import TeamActions
from collabtime.services.timezones import resolve_viewer_timezone

logger = get_logger(__name__)


def _wire(changes: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(key): value for key, value in changes.items()}


def _check_order(order: list[str], current_ids: list[str], kind: str) -> None:
    """A reorder must be a complete permutation, or ids would be lost."""
    if len(order) != len(set(order)) or set(order) != set(current_ids):
        raise ValueError(f"Order must list every {kind} exactly once")


class WorkspaceService:
    """Business logic for team workspaces."""

    def __init__(
        self,
        actions: TeamActions,
        workspaces: WorkspaceRepository,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._actions = actions
        self._workspaces = workspaces
        self._http_client = http_client

    @property
    def actions(self) -> TeamActions:
        return self._actions

    # ── Access ──

    def _session(self, kv: KeyValueStore, team_id: str) -> TeamSession:
        session = SessionGate(kv).read(team_id)
        if session is None:
            raise SessionRequiredError(f"A session is required for team '{team_id}'")
        return session

    def _admin_session(self, kv: KeyValueStore, team_id: str) -> TeamSession:
        session = self._session(kv, team_id)
        if session.role != "admin":
            raise ForbiddenError("Admin access is required to change this team")
        return session

    def _raise_for(
        self, workspace: Workspace, kv: KeyValueStore, result: ActionResult
    ) -> None:
        if result.success:
            return
        message = result.error or "Something went wrong"
        workspace.notices.error(message)
        if result.code == "unauthorized":
            SessionGate(kv).handle_unauthorized(workspace.team_id)
            raise UnauthorizedError(message)
        if result.code == "not_found":
            raise TeamNotFoundError(message)
        raise ActionFailedError(message, snapshot=workspace.store.snapshot)

    # ── Workspace lifecycle ──

    async def open_workspace(
        self, client_id: str, kv: KeyValueStore, team_id: str
    ) -> TeamSnapshot:
        """(Re)fetch the team and seed this client's store with it."""
        session = self._session(kv, team_id)
        workspace = self._workspaces.get_or_create(client_id, team_id)

        result = await self._fetch(workspace, session.token)
        if not result.success:
            if result.code == "unauthorized":
                SessionGate(kv).handle_unauthorized(team_id)
                raise UnauthorizedError(result.error or "Session expired")
            if result.code == "not_found":
                self.close_workspace(client_id, team_id)
                raise TeamNotFoundError(result.error or f"Team '{team_id}' not found")
            raise ActionFailedError(result.error or "Could not load team")

        snapshot = workspace.store.snapshot
        self._after_load(kv, snapshot)
        if workspace.unsubscribe is None:
            workspace.unsubscribe = workspace.store.subscribe(
                lambda changed: CurrentUserResolver(kv, team_id).reconcile(changed.team.members)
            )
        self._start_realtime(workspace)
        logger.info("Workspace opened: client=%s, team=%s, members=%d",
                    client_id, team_id, len(snapshot.team.members))
        return snapshot

    async def _fetch(self, workspace: Workspace, token: str) -> ActionResult:
        """
        Fetch the team and seed the store when this is still the newest fetch.
        A superseded fetch on a store that was never seeded follows the newest
        fetch instead, so every successful result leaves the store seeded.
        """
        generation = workspace.store.begin_fetch()
        fetch = asyncio.ensure_future(self._actions.get_team(workspace.team_id, token))
        workspace.pending_fetch = fetch
        result = await fetch
        while result.success and not workspace.store.seed(result.data, generation):
            if workspace.store.is_seeded:
                break
            generation = workspace.store.generation
            result = await workspace.pending_fetch
        return result

    def _after_load(self, kv: KeyValueStore, snapshot: TeamSnapshot) -> None:
        team = snapshot.team
        VisitedTeams(kv).save_visited_team(team.id, len(team.members), team.name or None)
        CurrentUserResolver(kv, team.id).reconcile(team.members)
        CollapsedGroups(kv, team.id).prune(g.id for g in team.groups)

    async def get_workspace(
        self, client_id: str, kv: KeyValueStore, team_id: str
    ) -> Workspace:
        """The open, seeded workspace; fetches on first use."""
        self._session(kv, team_id)
        workspace = self._workspaces.get(client_id, team_id)
        if workspace is None or not workspace.store.is_seeded:
            await self.open_workspace(client_id, kv, team_id)
            workspace = self._workspaces.get(client_id, team_id)
        return workspace

    async def get_snapshot(
        self, client_id: str, kv: KeyValueStore, team_id: str
    ) -> TeamSnapshot:
        workspace = await self.get_workspace(client_id, kv, team_id)
        return workspace.store.snapshot

    def close_workspace(self, client_id: str, team_id: str) -> None:
        workspace = self._workspaces.delete(client_id, team_id)
        if workspace is not None:
            workspace.close()

    # ── Realtime ──

    def _start_realtime(self, workspace: Workspace) -> None:
        if not settings.REALTIME_URL or self._http_client is None:
            return
        if workspace.realtime_task is not None and not workspace.realtime_task.done():
            return
        workspace.realtime_task = asyncio.create_task(self._pump(workspace))

    async def _pump(self, workspace: Workspace) -> None:
        """Stay subscribed until cancelled, reconnecting with capped backoff."""
        delay = settings.REALTIME_RECONNECT_SECONDS
        while True:
            stream = stream_sse_events(
                self._http_client,
                settings.REALTIME_URL,
                [team_channel(workspace.team_id)],
                TEAM_EVENTS,
            )
            try:
                applied = await workspace.reconciler.consume(stream)
                logger.info("Realtime stream ended: team=%s, applied=%d",
                            workspace.team_id, applied)
                REALTIME_RECONNECTS.labels(reason="closed").inc()
                delay = settings.REALTIME_RECONNECT_SECONDS
            except httpx.HTTPError as exc:
                logger.warning("Realtime stream failed: team=%s, error=%s",
                               workspace.team_id, exc)
                REALTIME_RECONNECTS.labels(reason="http_error").inc()
            except Exception:
                logger.exception("Realtime stream crashed: team=%s", workspace.team_id)
                REALTIME_RECONNECTS.labels(reason="error").inc()
            await asyncio.sleep(delay)
            delay = min(delay * 2, settings.REALTIME_RECONNECT_MAX_SECONDS)

    def deliver(self, team_id: str, message: RealtimeMessage) -> int:
        """Apply one realtime delivery to every open workspace of the team."""
        changed = 0
        for workspace in self._workspaces.for_team(team_id):
            if workspace.reconciler.apply(message):
                changed += 1
        return changed

    async def shutdown(self) -> None:
        tasks = [w.realtime_task for w in self._workspaces.get_all() if w.realtime_task]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ── Members ──

    async def add_member(
        self, client_id: str, kv: KeyValueStore, team_id: str, fields: dict[str, Any]
    ) -> Member:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        result = await self._actions.add_member(team_id, session.token, _wire(fields))
        self._raise_for(workspace, kv, result)
        member: Member = result.data
        workspace.store.update(team_store.add_member(member))
        workspace.notices.success("Member added successfully")
        return member

    async def update_member(
        self,
        client_id: str,
        kv: KeyValueStore,
        team_id: str,
        member_id: str,
        changes: dict[str, Any],
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        snapshot = workspace.store.snapshot
        current = team_store.find_member(snapshot, member_id)
        if current is None:
            raise KeyError(f"Member '{member_id}' not found")
        # Validate before dispatch: raises pydantic ValidationError.
        Member.model_validate({**current.model_dump(), **changes})
        group_id = changes.get("group_id")
        if group_id is not None and all(g.id != group_id for g in snapshot.team.groups):
            raise KeyError(f"Group '{group_id}' not found")

        result = await workspace.store.apply_optimistic(
            "update_member",
            team_store.patch_member(member_id, changes),
            lambda: self._actions.update_member(team_id, session.token, member_id, _wire(changes)),
        )
        self._raise_for(workspace, kv, result)
        workspace.notices.success("Member updated")
        return workspace.store.snapshot

    async def move_member_to_group(
        self,
        client_id: str,
        kv: KeyValueStore,
        team_id: str,
        member_id: str,
        group_id: Optional[str],
    ) -> TeamSnapshot:
        return await self.update_member(
            client_id, kv, team_id, member_id, {"group_id": group_id}
        )

    async def remove_member(
        self, client_id: str, kv: KeyValueStore, team_id: str, member_id: str
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        if team_store.find_member(workspace.store.snapshot, member_id) is None:
            raise KeyError(f"Member '{member_id}' not found")
        result = await self._actions.remove_member(team_id, session.token, member_id)
        self._raise_for(workspace, kv, result)
        return workspace.store.update(team_store.remove_member(member_id))

    async def reorder_members(
        self, client_id: str, kv: KeyValueStore, team_id: str, order: list[str]
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        _check_order(order, [m.id for m in workspace.store.snapshot.team.members], "member")
        result = await workspace.store.apply_optimistic(
            "reorder_members",
            team_store.reorder_members(order),
            lambda: self._actions.reorder_members(team_id, session.token, order),
        )
        self._raise_for(workspace, kv, result)
        return workspace.store.snapshot

    # ── Groups ──

    async def add_group(
        self, client_id: str, kv: KeyValueStore, team_id: str, name: str
    ) -> Group:
        session = self._admin_session(kv, team_id)
        name = name.strip()
        if not name:
            raise ValueError("Group name is required")
        workspace = await self.get_workspace(client_id, kv, team_id)
        result = await self._actions.add_group(team_id, session.token, name)
        self._raise_for(workspace, kv, result)
        group: Group = result.data
        workspace.store.update(team_store.add_group(group))
        return group

    async def update_group(
        self,
        client_id: str,
        kv: KeyValueStore,
        team_id: str,
        group_id: str,
        changes: dict[str, Any],
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        current = next((g for g in workspace.store.snapshot.team.groups if g.id == group_id), None)
        if current is None:
            raise KeyError(f"Group '{group_id}' not found")
        Group.model_validate({**current.model_dump(), **changes})
        result = await workspace.store.apply_optimistic(
            "update_group",
            team_store.patch_group(group_id, changes),
            lambda: self._actions.update_group(team_id, session.token, group_id, _wire(changes)),
        )
        self._raise_for(workspace, kv, result)
        return workspace.store.snapshot

    async def remove_group(
        self, client_id: str, kv: KeyValueStore, team_id: str, group_id: str
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        if all(g.id != group_id for g in workspace.store.snapshot.team.groups):
            raise KeyError(f"Group '{group_id}' not found")
        result = await workspace.store.apply_optimistic(
            "remove_group",
            team_store.remove_group(group_id),
            lambda: self._actions.remove_group(team_id, session.token, group_id),
        )
        self._raise_for(workspace, kv, result)
        CollapsedGroups(kv, team_id).prune(g.id for g in workspace.store.snapshot.team.groups)
        return workspace.store.snapshot

    async def reorder_groups(
        self, client_id: str, kv: KeyValueStore, team_id: str, order: list[str]
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        workspace = await self.get_workspace(client_id, kv, team_id)
        _check_order(order, [g.id for g in workspace.store.snapshot.team.groups], "group")
        result = await workspace.store.apply_optimistic(
            "reorder_groups",
            team_store.reorder_groups(order),
            lambda: self._actions.reorder_groups(team_id, session.token, order),
        )
        self._raise_for(workspace, kv, result)
        return workspace.store.snapshot

    # ── Team ──

    async def rename_team(
        self, client_id: str, kv: KeyValueStore, team_id: str, name: str
    ) -> TeamSnapshot:
        session = self._admin_session(kv, team_id)
        name = name.strip()
        if not name:
            raise ValueError("Team name is required")
        workspace = await self.get_workspace(client_id, kv, team_id)
        result = await workspace.store.apply_optimistic(
            "update_team_name",
            team_store.rename_team(name),
            lambda: self._actions.update_team_name(team_id, session.token, name),
        )
        self._raise_for(workspace, kv, result)
        VisitedTeams(kv).update_team_name(team_id, name)
        return workspace.store.snapshot

    # ── Derived views ──

    async def get_overlap(
        self,
        client_id: str,
        kv: KeyValueStore,
        team_id: str,
        viewer_tz: Optional[str] = None,
        selected_a: Optional[str] = None,
        selected_b: Optional[str] = None,
        member_ids: Optional[list[str]] = None,
        group_ids: Optional[list[str]] = None,
    ) -> OverlapView:
        snapshot = await self.get_snapshot(client_id, kv, team_id)
        OVERLAP_COMPUTATIONS.inc()
        return compute_overlap_view(
            snapshot.team.members,
            resolve_viewer_timezone(viewer_tz),
            selected_a=selected_a,
            selected_b=selected_b,
            member_ids=member_ids,
            group_ids=group_ids,
        )
