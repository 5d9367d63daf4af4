# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false

"""
Tests for the Collab Time HTTP API.
The team API is replaced by an in-memory fake wired through
app.dependency_overrides; client-state storage is a fresh in-memory store.
"""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from collabtime.core.config import settings
from collabtime.core.dependencies import get_kv_store, get_workspace_repo, get_workspace_service
from collabtime.models.domain import ActionResult, Group, Member, Team, TeamSession, TeamSnapshot
from collabtime.repositories.kv_store import InMemoryKeyValueStore
from collabtime.repositories.workspace_repository import WorkspaceRepository
from collabtime.services import team_store
from collabtime.services.workspace_service import WorkspaceService
from main import app

client = TestClient(app, headers={"X-Client-ID": "browser-1"})
anonymous = TestClient(app)

TEAM = "t1"
PASSWORDS = {"admin-pass": "admin", "member-pass": "member"}
TOKENS = {"tok-admin": "admin", "tok-member": "member"}


class FakeTeamActions:
    """In-memory team API. failures[action] makes the next call of that action fail."""

    def __init__(self) -> None:
        self.snapshot = TeamSnapshot(
            team=Team(
                id=TEAM,
                name="Core",
                members=(
                    Member(id="alice", name="Alice", timezone="Europe/Paris",
                           working_hours_start=9, working_hours_end=17, group_id="eng"),
                    Member(id="bob", name="Bob", timezone="America/New_York",
                           working_hours_start=9, working_hours_end=17, group_id="eng"),
                    Member(id="kenji", name="Kenji", timezone="Asia/Tokyo",
                           working_hours_start=9, working_hours_end=17),
                ),
                groups=(Group(id="eng", name="Engineering", order=0),),
            ),
            role="admin",
        )
        self.failures: dict[str, ActionResult] = {}
        self.calls: list[str] = []
        self._next_id = 0

    def _check(self, action: str, team_id: str, token: str):
        self.calls.append(action)
        if team_id != TEAM:
            return ActionResult.fail("Team not found", "not_found")
        if action in self.failures:
            return self.failures.pop(action)
        if token not in TOKENS:
            return ActionResult.fail("Session expired", "unauthorized")
        return None

    def _apply(self, transform) -> ActionResult:
        self.snapshot = transform(self.snapshot)
        return ActionResult.ok()

    async def get_team(self, team_id, token):
        error = self._check("get_team", team_id, token)
        if error:
            return error
        return ActionResult.ok(self.snapshot.model_copy(update={"role": TOKENS[token]}))

    async def authenticate_team(self, team_id, password):
        self.calls.append("authenticate")
        if team_id != TEAM:
            return ActionResult.fail("Team not found", "not_found")
        role = PASSWORDS.get(password)
        if role is None:
            return ActionResult.fail("Invalid password", "unauthorized")
        return ActionResult.ok(TeamSession(token=f"tok-{role}", role=role))

    async def add_member(self, team_id, token, fields: dict[str, Any]):
        error = self._check("add_member", team_id, token)
        if error:
            return error
        self._next_id += 1
        member = Member.model_validate({**fields, "id": f"m{self._next_id}"})
        self._apply(team_store.add_member(member))
        return ActionResult.ok(member)

    async def update_member(self, team_id, token, member_id, changes):
        return self._check("update_member", team_id, token) or ActionResult.ok()

    async def remove_member(self, team_id, token, member_id):
        return self._check("remove_member", team_id, token) or self._apply(
            team_store.remove_member(member_id)
        )

    async def reorder_members(self, team_id, token, order):
        return self._check("reorder_members", team_id, token) or ActionResult.ok()

    async def add_group(self, team_id, token, name):
        error = self._check("add_group", team_id, token)
        if error:
            return error
        self._next_id += 1
        group = Group(id=f"g{self._next_id}", name=name, order=len(self.snapshot.team.groups))
        self._apply(team_store.add_group(group))
        return ActionResult.ok(group)

    async def update_group(self, team_id, token, group_id, changes):
        return self._check("update_group", team_id, token) or ActionResult.ok()

    async def remove_group(self, team_id, token, group_id):
        return self._check("remove_group", team_id, token) or ActionResult.ok()

    async def reorder_groups(self, team_id, token, order):
        return self._check("reorder_groups", team_id, token) or ActionResult.ok()

    async def update_team_name(self, team_id, token, name):
        return self._check("update_team_name", team_id, token) or ActionResult.ok()


# ============================================
# Fixtures
# ============================================
@pytest.fixture(autouse=True)
def fake_upstream():
    """Fresh fake team API, workspace registry and client storage per test."""
    actions = FakeTeamActions()
    kv = InMemoryKeyValueStore()
    workspaces = WorkspaceRepository()
    service = WorkspaceService(actions=actions, workspaces=workspaces)
    app.dependency_overrides[get_kv_store] = lambda: kv
    app.dependency_overrides[get_workspace_repo] = lambda: workspaces
    app.dependency_overrides[get_workspace_service] = lambda: service
    yield actions
    app.dependency_overrides.clear()


def login(password="admin-pass", client_id=None):
    headers = {"X-Client-ID": client_id} if client_id else {}
    return client.post(f"/api/v1/teams/{TEAM}/session", json={"password": password}, headers=headers)


@pytest.fixture
def admin():
    assert login().status_code == 200


@pytest.fixture
def member():
    assert login("member-pass").status_code == 200


def get_team():
    return client.get(f"/api/v1/teams/{TEAM}")


def member_ids(body):
    return [m["id"] for m in body["members"]]


def notices(level=None):
    params = {"level": level} if level else {}
    return [n["message"] for n in client.get(f"/api/v1/teams/{TEAM}/notices", params=params).json()]


# ============================================
# Health & Metrics
# ============================================
class TestHealth:
    def test_health_returns_ok(self):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == settings.SERVICE_NAME
        assert data["version"] == settings.SERVICE_VERSION
        assert "timestamp" in data

    def test_health_counts_open_workspaces(self, admin):
        assert client.get("/health").json()["open_workspaces"] == 0
        get_team()
        assert client.get("/health").json()["open_workspaces"] == 1

    def test_readiness(self):
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["storage"] == "InMemoryKeyValueStore"
        assert data["realtime_enabled"] is False


class TestRequestID:
    def test_response_has_request_id_header(self):
        assert "X-Request-ID" in client.get("/health").headers

    def test_request_id_propagated(self):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestMetrics:
    def test_metrics_exposed(self):
        get_team()
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "collabtime_requests_total" in response.text

    def test_rollback_counter(self, admin, fake_upstream):
        get_team()
        fake_upstream.failures["update_team_name"] = ActionResult.fail("Conflict")
        client.patch(f"/api/v1/teams/{TEAM}/name", json={"name": "X"})
        assert "collabtime_optimistic_rollbacks_total" in client.get("/metrics").text


# ============================================
# Timezone tools
# ============================================
class TestTimezoneTools:
    def test_list_timezones(self):
        data = client.get("/api/v1/timezones").json()
        names = [tz["name"] for tz in data]
        assert "America/New_York" in names
        assert all(tz["label"] for tz in data)

    def test_convert(self):
        response = client.get("/api/v1/timezones/convert", params={"hour": 0, "from": "UTC", "to": "Asia/Tokyo"})
        assert response.status_code == 200
        data = response.json()
        assert data["converted"] == 9
        assert data["label"] == "9 AM"

    def test_convert_unknown_zone(self):
        response = client.get("/api/v1/timezones/convert", params={"hour": 0, "from": "UTC", "to": "Nowhere/X"})
        assert response.status_code == 400

    def test_convert_hour_out_of_range(self):
        response = client.get("/api/v1/timezones/convert", params={"hour": 24, "from": "UTC", "to": "UTC"})
        assert response.status_code == 422

    def test_availability_degenerate_window(self):
        data = client.get("/api/v1/timezones/availability", params={"tz": "UTC", "start": 9, "end": 9}).json()
        assert data["working"] is False
        assert data["minutesUntilAvailable"] is None
        assert data["refreshSeconds"] == settings.AVAILABILITY_REFRESH_SECONDS

    def test_availability_around_the_clock_window(self):
        data = client.get("/api/v1/timezones/availability", params={"tz": "UTC", "start": 0, "end": 23}).json()
        assert isinstance(data["minutesUntilAvailable"], int)

    def test_stateless_overlap(self):
        response = client.post("/api/v1/overlap", json={
            "viewerTimezone": "UTC",
            "members": [
                {"id": "a", "name": "A", "timezone": "UTC", "workingHoursStart": 9, "workingHoursEnd": 17},
                {"id": "b", "name": "B", "timezone": "UTC", "workingHoursStart": 13, "workingHoursEnd": 21},
            ],
        })
        assert response.status_code == 200
        data = response.json()
        assert data["pair"] == {"a": "a", "b": "b"}
        assert data["summary"] == "1 PM – 5 PM"
        assert data["intervals"] == [[13, 17]]
        assert sum(data["pairOverlap"]) == 4

    def test_stateless_overlap_invalid_member(self):
        response = client.post("/api/v1/overlap", json={
            "members": [{"id": "a", "name": "A", "timezone": "Nowhere/X", "workingHoursStart": 9, "workingHoursEnd": 17}],
        })
        assert response.status_code == 422


# ============================================
# Sessions
# ============================================
class TestSession:
    def test_admin_login(self):
        response = login()
        assert response.status_code == 200
        assert response.json() == {"teamId": TEAM, "role": "admin", "authenticated": True, "admin": True}

    def test_member_login(self):
        data = login("member-pass").json()
        assert data["role"] == "member"
        assert data["admin"] is False

    def test_wrong_password(self):
        assert login("not-the-password").status_code == 401

    def test_malformed_password(self, fake_upstream):
        assert login("ab").status_code == 400
        assert "authenticate" not in fake_upstream.calls

    def test_unknown_team(self):
        response = client.post("/api/v1/teams/nope/session", json={"password": "admin-pass"})
        assert response.status_code == 404

    def test_session_status(self, admin):
        data = client.get(f"/api/v1/teams/{TEAM}/session").json()
        assert data["authenticated"] is True
        assert data["admin"] is True

    def test_no_session(self):
        data = client.get(f"/api/v1/teams/{TEAM}/session").json()
        assert data == {"teamId": TEAM, "role": None, "authenticated": False, "admin": False}

    def test_logout(self, admin):
        assert client.delete(f"/api/v1/teams/{TEAM}/session").status_code == 204
        assert client.get(f"/api/v1/teams/{TEAM}/session").json()["authenticated"] is False
        assert get_team().status_code == 401

    def test_sessions_scoped_per_client(self, admin):
        response = client.get(f"/api/v1/teams/{TEAM}", headers={"X-Client-ID": "other-device"})
        assert response.status_code == 401

    def test_client_id_header_required(self):
        response = anonymous.post(f"/api/v1/teams/{TEAM}/session", json={"password": "admin-pass"})
        assert response.status_code == 422
        assert anonymous.get(f"/api/v1/teams/{TEAM}/session").status_code == 422

    def test_headerless_caller_cannot_read_team(self, admin):
        assert anonymous.get(f"/api/v1/teams/{TEAM}").status_code == 422


# ============================================
# Team workspace
# ============================================
class TestTeam:
    def test_requires_session(self):
        assert get_team().status_code == 401

    def test_get_team(self, admin):
        response = get_team()
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Core"
        assert data["admin"] is True
        assert member_ids(data) == ["alice", "bob", "kenji"]
        assert data["members"][0]["workingHoursStart"] == 9
        assert data["groups"] == [{"id": "eng", "name": "Engineering", "order": 0, "memberCount": 2}]

    def test_refresh_refetches(self, admin, fake_upstream):
        get_team()
        get_team()
        assert fake_upstream.calls.count("get_team") == 1
        client.get(f"/api/v1/teams/{TEAM}", params={"refresh": True})
        assert fake_upstream.calls.count("get_team") == 2

    def test_member_role_is_read_only(self, member):
        assert get_team().json()["admin"] is False
        response = client.post(f"/api/v1/teams/{TEAM}/members", json={"name": "X", "timezone": "UTC"})
        assert response.status_code == 403

    def test_expired_token_clears_session(self, admin, fake_upstream):
        fake_upstream.failures["get_team"] = ActionResult.fail("Session expired", "unauthorized")
        assert get_team().status_code == 401
        assert client.get(f"/api/v1/teams/{TEAM}/session").json()["authenticated"] is False

    def test_records_visited_team(self, admin):
        get_team()
        visited = client.get("/api/v1/visited-teams").json()
        assert visited[0]["id"] == TEAM
        assert visited[0]["name"] == "Core"
        assert visited[0]["memberCount"] == 3

    def test_rename_team(self, admin):
        response = client.patch(f"/api/v1/teams/{TEAM}/name", json={"name": "Platform"})
        assert response.status_code == 200
        assert response.json()["name"] == "Platform"
        assert client.get("/api/v1/visited-teams").json()[0]["name"] == "Platform"

    def test_rename_blank_rejected(self, admin):
        assert client.patch(f"/api/v1/teams/{TEAM}/name", json={"name": "  "}).status_code == 400


class TestMembers:
    def test_add_member(self, admin):
        response = client.post(f"/api/v1/teams/{TEAM}/members", json={
            "name": "Dana", "timezone": "America/Chicago", "workingHoursStart": 8, "workingHoursEnd": 16,
        })
        assert response.status_code == 201
        created = response.json()
        assert created["name"] == "Dana"
        assert created["id"]
        assert created["id"] in member_ids(get_team().json())
        assert "Member added successfully" in notices("success")

    def test_add_member_defaults_working_hours(self, admin):
        created = client.post(f"/api/v1/teams/{TEAM}/members", json={"name": "Eve", "timezone": "UTC"}).json()
        assert created["workingHoursStart"] == 9
        assert created["workingHoursEnd"] == 17

    def test_add_member_rejected_upstream(self, admin, fake_upstream):
        fake_upstream.failures["add_member"] = ActionResult.fail("Name already taken", "validation")
        response = client.post(f"/api/v1/teams/{TEAM}/members", json={"name": "Dup", "timezone": "UTC"})
        assert response.status_code == 409
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji"]
        assert "Name already taken" in notices("error")

    def test_update_member(self, admin):
        response = client.patch(f"/api/v1/teams/{TEAM}/members/kenji", json={"title": "SRE", "workingHoursEnd": 18})
        assert response.status_code == 200
        kenji = response.json()["members"][2]
        assert kenji["title"] == "SRE"
        assert kenji["workingHoursEnd"] == 18
        assert "Member updated" in notices("success")

    def test_update_member_failure_rolls_back(self, admin, fake_upstream):
        get_team()
        fake_upstream.failures["update_member"] = ActionResult.fail("Conflict with another edit")
        response = client.patch(f"/api/v1/teams/{TEAM}/members/alice", json={"name": "Alicia"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Conflict with another edit"
        assert get_team().json()["members"][0]["name"] == "Alice"
        assert "Conflict with another edit" in notices("error")

    def test_update_member_invalid_timezone(self, admin, fake_upstream):
        response = client.patch(f"/api/v1/teams/{TEAM}/members/alice", json={"timezone": "Nowhere/X"})
        assert response.status_code == 422
        assert "update_member" not in fake_upstream.calls

    def test_update_unknown_member(self, admin):
        assert client.patch(f"/api/v1/teams/{TEAM}/members/zed", json={"name": "Z"}).status_code == 404

    def test_move_member_out_of_group(self, admin):
        data = client.patch(f"/api/v1/teams/{TEAM}/members/alice", json={"groupId": None}).json()
        assert data["members"][0]["groupId"] is None
        assert data["groups"][0]["memberCount"] == 1

    def test_move_member_to_unknown_group(self, admin):
        assert client.patch(f"/api/v1/teams/{TEAM}/members/alice", json={"groupId": "nope"}).status_code == 404

    def test_remove_member(self, admin):
        response = client.delete(f"/api/v1/teams/{TEAM}/members/bob")
        assert response.status_code == 200
        assert member_ids(response.json()) == ["alice", "kenji"]

    def test_remove_member_failure_keeps_member(self, admin, fake_upstream):
        fake_upstream.failures["remove_member"] = ActionResult.fail("Team service is unreachable", "unavailable")
        assert client.delete(f"/api/v1/teams/{TEAM}/members/bob").status_code == 409
        assert "bob" in member_ids(get_team().json())

    def test_reorder_members(self, admin):
        response = client.put(f"/api/v1/teams/{TEAM}/members/order", json={"order": ["kenji", "alice", "bob"]})
        assert response.status_code == 200
        assert member_ids(response.json()) == ["kenji", "alice", "bob"]

    def test_partial_reorder_rejected(self, admin, fake_upstream):
        response = client.put(f"/api/v1/teams/{TEAM}/members/order", json={"order": ["kenji", "alice"]})
        assert response.status_code == 400
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji"]
        assert "reorder_members" not in fake_upstream.calls

    def test_reorder_unauthorized_clears_session(self, admin, fake_upstream):
        get_team()
        fake_upstream.failures["reorder_members"] = ActionResult.fail("Session expired", "unauthorized")
        response = client.put(f"/api/v1/teams/{TEAM}/members/order", json={"order": ["kenji", "alice", "bob"]})
        assert response.status_code == 401
        assert client.get(f"/api/v1/teams/{TEAM}/session").json()["authenticated"] is False


class TestGroups:
    def test_add_group(self, admin):
        response = client.post(f"/api/v1/teams/{TEAM}/groups", json={"name": "Ops"})
        assert response.status_code == 201
        assert response.json()["name"] == "Ops"
        assert [g["name"] for g in get_team().json()["groups"]] == ["Engineering", "Ops"]

    def test_add_blank_group_rejected(self, admin):
        assert client.post(f"/api/v1/teams/{TEAM}/groups", json={"name": " "}).status_code == 400

    def test_rename_group(self, admin):
        response = client.patch(f"/api/v1/teams/{TEAM}/groups/eng", json={"name": "Platform"})
        assert response.status_code == 200
        assert response.json()["groups"][0]["name"] == "Platform"

    def test_update_unknown_group(self, admin):
        assert client.patch(f"/api/v1/teams/{TEAM}/groups/nope", json={"name": "X"}).status_code == 404

    def test_remove_group_unassigns_members(self, admin):
        response = client.delete(f"/api/v1/teams/{TEAM}/groups/eng")
        assert response.status_code == 200
        data = response.json()
        assert data["groups"] == []
        assert member_ids(data) == ["alice", "bob", "kenji"]
        assert all(m["groupId"] is None for m in data["members"])

    def test_remove_group_failure_restores_assignments(self, admin, fake_upstream):
        get_team()
        fake_upstream.failures["remove_group"] = ActionResult.fail("Conflict")
        assert client.delete(f"/api/v1/teams/{TEAM}/groups/eng").status_code == 409
        data = get_team().json()
        assert data["groups"][0]["memberCount"] == 2

    def test_reorder_groups(self, admin):
        group_id = client.post(f"/api/v1/teams/{TEAM}/groups", json={"name": "Ops"}).json()["id"]
        response = client.put(f"/api/v1/teams/{TEAM}/groups/order", json={"order": [group_id, "eng"]})
        assert response.status_code == 200
        assert [(g["id"], g["order"]) for g in response.json()["groups"]] == [(group_id, 0), ("eng", 1)]

    def test_collapsed_groups(self, admin):
        toggle = client.post(f"/api/v1/teams/{TEAM}/collapsed-groups/eng/toggle").json()
        assert toggle == {"groupId": "eng", "collapsed": True}
        assert client.get(f"/api/v1/teams/{TEAM}/collapsed-groups").json() == ["eng"]
        client.delete(f"/api/v1/teams/{TEAM}/groups/eng")
        assert client.get(f"/api/v1/teams/{TEAM}/collapsed-groups").json() == []


# ============================================
# Realtime ingress
# ============================================
class TestRealtimeEvents:
    @pytest.fixture(autouse=True)
    def events_key(self, monkeypatch):
        monkeypatch.setattr(settings, "EVENTS_API_KEYS", ["ingress-key"])

    def post_event(self, event, data, api_key="ingress-key"):
        headers = {"X-API-Key": api_key} if api_key else {}
        return client.post(
            f"/api/v1/teams/{TEAM}/events", json={"event": event, "data": data}, headers=headers
        )

    def test_missing_api_key_rejected(self, admin):
        get_team()
        response = self.post_event("team.membersReordered", {"order": []}, api_key=None)
        assert response.status_code == 401
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji"]

    def test_invalid_api_key_rejected(self, admin):
        get_team()
        response = self.post_event("team.membersReordered", {"order": []}, api_key="guess")
        assert response.status_code == 403
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji"]

    def test_ingress_closed_without_configured_keys(self, monkeypatch):
        monkeypatch.setattr(settings, "EVENTS_API_KEYS", [])
        assert self.post_event("team.nameUpdated", {"name": "X"}).status_code == 403

    def test_event_without_open_workspace(self):
        response = self.post_event("team.nameUpdated", {"name": "X"})
        assert response.status_code == 202
        assert response.json()["applied"] == 0

    def test_member_added_event(self, admin):
        get_team()
        payload = {"id": "zoe", "name": "Zoe", "timezone": "UTC", "workingHoursStart": 9, "workingHoursEnd": 17}
        assert self.post_event("team.memberAdded", payload).json()["applied"] == 1
        assert self.post_event("team.memberAdded", payload).json()["applied"] == 0
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji", "zoe"]
        assert notices().count("Zoe joined the team") == 1

    def test_member_removed_event_deduplicated(self, admin):
        get_team()
        self.post_event("team.memberRemoved", {"memberId": "bob"})
        self.post_event("team.memberRemoved", {"memberId": "bob"})
        assert member_ids(get_team().json()) == ["alice", "kenji"]
        assert notices().count("Bob left the team") == 1

    def test_malformed_event_ignored(self, admin):
        get_team()
        assert self.post_event("team.membersReordered", {"order": "bob"}).json()["applied"] == 0
        assert self.post_event("team.unknownThing", {}).json()["applied"] == 0
        assert member_ids(get_team().json()) == ["alice", "bob", "kenji"]

    def test_event_reaches_every_client(self, admin):
        login(client_id="laptop")
        get_team()
        client.get(f"/api/v1/teams/{TEAM}", headers={"X-Client-ID": "laptop"})
        assert self.post_event("team.nameUpdated", {"name": "Renamed"}).json()["applied"] == 2


# ============================================
# Overlap for a team
# ============================================
class TestTeamOverlap:
    def test_overlap_defaults(self, admin):
        response = client.get(f"/api/v1/teams/{TEAM}/overlap", params={"viewerTz": "UTC"})
        assert response.status_code == 200
        data = response.json()
        assert data["viewerTimezone"] == "UTC"
        assert [row["memberId"] for row in data["rows"]] == ["alice", "bob", "kenji"]
        assert all(len(row["hours"]) == 24 for row in data["rows"])
        assert data["pair"] == {"a": "alice", "b": "bob"}
        assert data["refreshSeconds"] == settings.OVERLAP_REFRESH_SECONDS

    def test_overlap_explicit_pair(self, admin):
        data = client.get(f"/api/v1/teams/{TEAM}/overlap", params={"a": "kenji", "b": "kenji"}).json()
        assert data["pair"] == {"a": "kenji", "b": "alice"}

    def test_overlap_unknown_viewer_zone_falls_back(self, admin):
        data = client.get(f"/api/v1/teams/{TEAM}/overlap", params={"viewerTz": "Nowhere/X"}).json()
        assert data["viewerTimezone"] == "UTC"

    def test_overlap_selection_by_group(self, admin):
        data = client.get(f"/api/v1/teams/{TEAM}/overlap", params={"groupId": "eng"}).json()
        assert data["selectedIds"] == ["alice", "bob"]

    def test_overlap_requires_session(self):
        assert client.get(f"/api/v1/teams/{TEAM}/overlap").status_code == 401


# ============================================
# Identity
# ============================================
class TestIdentity:
    def me(self, viewer_tz=None):
        params = {"viewerTz": viewer_tz} if viewer_tz else {}
        return client.get(f"/api/v1/teams/{TEAM}/me", params=params).json()

    def test_suggestion_by_timezone(self, admin):
        data = self.me("Asia/Tokyo")
        assert data["currentUserId"] is None
        assert data["suggestedUser"]["id"] == "kenji"

    def test_accept_suggestion(self, admin):
        response = client.post(f"/api/v1/teams/{TEAM}/me/accept", json={"memberId": "kenji"})
        assert response.status_code == 200
        data = response.json()
        assert data["currentUserId"] == "kenji"
        assert data["source"] == "suggested"
        assert data["currentUser"]["name"] == "Kenji"

    def test_dismiss_suggestion(self, admin):
        client.post(f"/api/v1/teams/{TEAM}/me/dismiss", json={"memberId": "kenji"})
        data = self.me("Asia/Tokyo")
        assert data["suggestedUser"] is None
        assert data["dismissedSuggestions"] == ["kenji"]

    def test_set_and_clear(self, admin):
        data = client.put(f"/api/v1/teams/{TEAM}/me", json={"memberId": "bob"}).json()
        assert data["currentUserId"] == "bob"
        assert data["source"] == "explicit"
        data = client.delete(f"/api/v1/teams/{TEAM}/me").json()
        assert data["currentUserId"] is None

    def test_set_unknown_member(self, admin):
        assert client.put(f"/api/v1/teams/{TEAM}/me", json={"memberId": "zed"}).status_code == 404

    def test_removed_member_clears_selection(self, admin):
        client.put(f"/api/v1/teams/{TEAM}/me", json={"memberId": "bob"})
        client.delete(f"/api/v1/teams/{TEAM}/members/bob")
        assert self.me()["currentUserId"] is None

    def test_member_role_can_pick_identity(self, member):
        assert client.put(f"/api/v1/teams/{TEAM}/me", json={"memberId": "alice"}).status_code == 200


# ============================================
# Preferences
# ============================================
class TestPreferences:
    def test_no_visited_teams(self):
        assert client.get("/api/v1/visited-teams").json() == []

    def test_forget_visited_team(self, admin):
        get_team()
        assert client.delete(f"/api/v1/visited-teams/{TEAM}").json() == []
