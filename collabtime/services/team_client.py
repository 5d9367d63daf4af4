# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Team API client, communication with the upstream team service.

Every call returns an ActionResult. Expected failures (rejected input, bad
token, missing team, upstream down) come back as success=False with a code;
nothing here raises for them.
"""

from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from collabtime.core.config import settings
from collabtime.core.logging import get_logger
from collabtime.metrics.prometheus import UPSTREAM_CALLS
from collabtime.models.domain import ActionResult, Group, Member, TeamSession, TeamSnapshot

logger = get_logger(__name__)


class TeamActions(Protocol):
    async def get_team(self, team_id: str, token: str) -> ActionResult: ...

    async def authenticate_team(self, team_id: str, password: str) -> ActionResult: ...

    async def add_member(self, team_id: str, token: str, fields: dict[str, Any]) -> ActionResult: ...

    async def update_member(
        self, team_id: str, token: str, member_id: str, changes: dict[str, Any]
    ) -> ActionResult: ...

    async def remove_member(self, team_id: str, token: str, member_id: str) -> ActionResult: ...

    async def reorder_members(self, team_id: str, token: str, order: list[str]) -> ActionResult: ...

    async def add_group(self, team_id: str, token: str, name: str) -> ActionResult: ...

    async def update_group(
        self, team_id: str, token: str, group_id: str, changes: dict[str, Any]
    ) -> ActionResult: ...

    async def remove_group(self, team_id: str, token: str, group_id: str) -> ActionResult: ...

    async def reorder_groups(self, team_id: str, token: str, order: list[str]) -> ActionResult: ...

    async def update_team_name(self, team_id: str, token: str, name: str) -> ActionResult: ...


def _error_code(status: int) -> str:
    if status == 404:
        return "not_found"
    if status in (401, 403):
        return "unauthorized"
    if status in (400, 422):
        return "validation"
    if status >= 500:
        return "unavailable"
    return "conflict"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if isinstance(body.get(key), str):
                return body[key]
    return f"Request failed with status {resp.status_code}"


class HttpTeamActions:
    """TeamActions over HTTP, sharing one httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, base_url: Optional[str] = None) -> None:
        self._client = client
        self._base_url = (base_url or settings.TEAM_API_URL).rstrip("/")

    async def _call(
        self,
        action: str,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Any = None,
    ) -> ActionResult:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers=headers,
                timeout=settings.TEAM_API_TIMEOUT,
            )
        except httpx.RequestError as exc:
            UPSTREAM_CALLS.labels(action=action, outcome="unreachable").inc()
            logger.warning("Team API unreachable: action=%s, error=%s", action, exc)
            return ActionResult.fail("Team service is unreachable. Try again.", "unavailable")

        if resp.is_success:
            UPSTREAM_CALLS.labels(action=action, outcome="success").inc()
            try:
                data = resp.json() if resp.content else None
            except ValueError:
                data = None
            return ActionResult.ok(data)

        code = _error_code(resp.status_code)
        UPSTREAM_CALLS.labels(action=action, outcome=code).inc()
        logger.info("Team API rejected: action=%s, status=%d", action, resp.status_code)
        return ActionResult.fail(_error_message(resp), code)

    @staticmethod
    def _parse(result: ActionResult, parse) -> ActionResult:
        if not result.success:
            return result
        try:
            return ActionResult.ok(parse(result.data))
        except (ValidationError, KeyError, TypeError) as exc:
            logger.warning("Malformed team API payload: %s", exc)
            return ActionResult.fail("Team service returned an invalid response", "unavailable")

    # ── Queries ──

    async def get_team(self, team_id: str, token: str) -> ActionResult:
        result = await self._call("get_team", "GET", f"/api/teams/{team_id}", token)
        return self._parse(result, TeamSnapshot.model_validate)

    async def authenticate_team(self, team_id: str, password: str) -> ActionResult:
        result = await self._call(
            "authenticate", "POST", f"/api/teams/{team_id}/auth", json={"password": password}
        )
        return self._parse(result, TeamSession.model_validate)

    # ── Members ──

    async def add_member(self, team_id: str, token: str, fields: dict[str, Any]) -> ActionResult:
        result = await self._call(
            "add_member", "POST", f"/api/teams/{team_id}/members", token, json=fields
        )
        return self._parse(result, lambda data: Member.model_validate(data["member"]))

    async def update_member(
        self, team_id: str, token: str, member_id: str, changes: dict[str, Any]
    ) -> ActionResult:
        return await self._call(
            "update_member", "PATCH", f"/api/teams/{team_id}/members/{member_id}", token,
            json=changes,
        )

    async def remove_member(self, team_id: str, token: str, member_id: str) -> ActionResult:
        return await self._call(
            "remove_member", "DELETE", f"/api/teams/{team_id}/members/{member_id}", token
        )

    async def reorder_members(self, team_id: str, token: str, order: list[str]) -> ActionResult:
        return await self._call(
            "reorder_members", "PUT", f"/api/teams/{team_id}/members/order", token,
            json={"order": order},
        )

    # ── Groups ──

    async def add_group(self, team_id: str, token: str, name: str) -> ActionResult:
        result = await self._call(
            "add_group", "POST", f"/api/teams/{team_id}/groups", token, json={"name": name}
        )
        return self._parse(result, lambda data: Group.model_validate(data["group"]))

    async def update_group(
        self, team_id: str, token: str, group_id: str, changes: dict[str, Any]
    ) -> ActionResult:
        return await self._call(
            "update_group", "PATCH", f"/api/teams/{team_id}/groups/{group_id}", token,
            json=changes,
        )

    async def remove_group(self, team_id: str, token: str, group_id: str) -> ActionResult:
        return await self._call(
            "remove_group", "DELETE", f"/api/teams/{team_id}/groups/{group_id}", token
        )

    async def reorder_groups(self, team_id: str, token: str, order: list[str]) -> ActionResult:
        return await self._call(
            "reorder_groups", "PUT", f"/api/teams/{team_id}/groups/order", token,
            json={"order": order},
        )

    # ── Team ──

    async def update_team_name(self, team_id: str, token: str, name: str) -> ActionResult:
        return await self._call(
            "update_team_name", "PATCH", f"/api/teams/{team_id}", token, json={"name": name}
        )
