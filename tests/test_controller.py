"""Tests for the calendar HTTP endpoints."""

import pytest
from starlette.testclient import TestClient

from calendar_plugin.business import CalendarBusinessLayer
from calendar_plugin.config import AppConfig, BackendAccount
from calendar_plugin.controller import create_app

ALICE = {"X-OC-CAL-USER": "alice"}


def _make_client(debug: bool = False, default_user: str | None = None) -> TestClient:
    config = AppConfig(
        backends={"local": BackendAccount(name="local", type="local")},
        users={"alice": "Alice Example"},
        debug=debug,
        default_user=default_user,
    )
    business = CalendarBusinessLayer.from_config(config)
    return TestClient(create_app(business, config))


@pytest.fixture
def client() -> TestClient:
    return _make_client()


def _create(client: TestClient, body: dict, headers: dict = ALICE):
    return client.post("/calendars", json=body, headers=headers)


# ---------------------------------------------------------------------------
# GET /calendars
# ---------------------------------------------------------------------------

class TestIndex:
    def test_empty(self, client):
        response = client.get("/calendars", headers=ALICE)
        assert response.status_code == 200
        assert response.json() == []

    def test_lists_created(self, client):
        _create(client, {"displayname": "Work"})
        _create(client, {"displayname": "Home"})
        response = client.get("/calendars", headers=ALICE)
        assert [c["calendarURI"] for c in response.json()] == ["local-work", "local-home"]

    def test_pagination_headers(self, client):
        for name in ("A", "B", "C"):
            _create(client, {"displayname": name})
        headers = {**ALICE, "X-OC-CAL-LIMIT": "1", "X-OC-CAL-OFFSET": "1"}
        response = client.get("/calendars", headers=headers)
        assert [c["calendarURI"] for c in response.json()] == ["local-b"]

    def test_bad_pagination_headers_ignored(self, client):
        _create(client, {"displayname": "Work"})
        headers = {**ALICE, "X-OC-CAL-LIMIT": "many"}
        assert len(client.get("/calendars", headers=headers).json()) == 1

    def test_negative_pagination_headers_ignored(self, client):
        for name in ("A", "B", "C"):
            _create(client, {"displayname": name})
        for header in ("X-OC-CAL-LIMIT", "X-OC-CAL-OFFSET"):
            response = client.get("/calendars", headers={**ALICE, header: "-1"})
            assert [c["calendarURI"] for c in response.json()] == ["local-a", "local-b", "local-c"]

    def test_default_user(self):
        client = _make_client(default_user="alice")
        _create(client, {"displayname": "Work"}, headers={})
        assert len(client.get("/calendars").json()) == 1

    def test_missing_user(self, client):
        response = client.get("/calendars")
        assert response.status_code == 400
        assert response.json() == {}


# ---------------------------------------------------------------------------
# POST /calendars
# ---------------------------------------------------------------------------

class TestCreate:
    def test_created(self, client):
        response = _create(client, {
            "displayname": "Work",
            "color": "#ff0000",
            "components": {"vevent": True},
            "cruds": {"code": 31},
        })
        assert response.status_code == 201
        data = response.json()
        assert data["calendarURI"] == "local-work"
        assert data["url"] == "http://testserver/calendars/local-work"
        assert data["color"] == "#ff0000"
        assert data["components"] == {"vevent": True, "vjournal": False, "vtodo": False}
        assert data["cruds"]["code"] == 31

    def test_user_and_owner_forced(self, client):
        response = _create(client, {
            "displayname": "Work",
            "user": {"userid": "mallory", "displayname": "Mallory"},
            "owner": {"userid": "mallory", "displayname": "Mallory"},
        })
        data = response.json()
        assert data["user"] == {"userid": "alice", "displayname": "Alice Example"}
        assert data["owner"] == {"userid": "alice", "displayname": "Alice Example"}

        stored = client.get("/calendars/local-work", headers=ALICE).json()
        assert stored["owner"]["userid"] == "alice"

    def test_invalid_json(self, client):
        response = client.post("/calendars", content=b"{bad", headers=ALICE)
        assert response.status_code == 400

    def test_components_not_object(self, client):
        response = _create(client, {"displayname": "Work", "components": "vevent"})
        assert response.status_code == 400

    def test_duplicate(self, client):
        _create(client, {"displayname": "Work"})
        assert _create(client, {"displayname": "Work"}).status_code == 400


# ---------------------------------------------------------------------------
# /calendars/{calendarId}
# ---------------------------------------------------------------------------

class TestCalendarById:
    def test_show(self, client):
        _create(client, {"displayname": "Work"})
        response = client.get("/calendars/local-work", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["displayname"] == "Work"

    def test_update_returns_201(self, client):
        _create(client, {"displayname": "Work", "color": "#000"})
        response = client.put("/calendars/local-work", json={"displayname": "Office"}, headers=ALICE)
        assert response.status_code == 201
        data = response.json()
        assert data["displayname"] == "Office"
        assert data["color"] == "#000"

    def test_update_ignores_user(self, client):
        _create(client, {"displayname": "Work"})
        response = client.put(
            "/calendars/local-work",
            json={"user": {"userid": "mallory"}},
            headers=ALICE,
        )
        assert response.json()["user"]["userid"] == "alice"

    def test_patch_not_implemented(self, client):
        _create(client, {"displayname": "Work"})
        response = client.patch("/calendars/local-work", json={"displayname": "x"}, headers=ALICE)
        assert response.status_code == 501
        assert response.content == b""

    def test_patch_unknown_calendar(self, client):
        response = client.patch("/calendars/whatever", content=b"garbage")
        assert response.status_code == 501

    def test_delete(self, client):
        _create(client, {"displayname": "Work"})
        response = client.delete("/calendars/local-work", headers=ALICE)
        assert response.status_code == 204
        assert response.content == b""
        assert client.get("/calendars/local-work", headers=ALICE).status_code == 400


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------

class TestErrors:
    def test_not_found_is_400_without_message(self, client):
        response = client.get("/calendars/local-nope", headers=ALICE)
        assert response.status_code == 400
        assert response.json() == {}

    def test_not_found_message_in_debug(self):
        client = _make_client(debug=True)
        response = client.get("/calendars/local-nope", headers=ALICE)
        assert response.status_code == 400
        assert "does not exist" in response.json()["message"]

    def test_unknown_backend(self):
        client = _make_client(debug=True)
        response = client.delete("/calendars/google-work", headers=ALICE)
        assert response.status_code == 400
        assert "No backend" in response.json()["message"]


# ---------------------------------------------------------------------------
# Failing backends
# ---------------------------------------------------------------------------

class TestBackendFailures:
    def _make_dav_client(self, monkeypatch, debug: bool) -> TestClient:
        monkeypatch.delenv("CAL_DAV_USER", raising=False)
        monkeypatch.delenv("CAL_DAV_PASS", raising=False)
        config = AppConfig(
            backends={
                "local": BackendAccount(name="local", type="local"),
                "dav": BackendAccount(
                    name="dav",
                    type="caldav",
                    config={
                        "url": "https://dav.example.com/",
                        "username_env": "CAL_DAV_USER",
                        "password_env": "CAL_DAV_PASS",
                    },
                ),
            },
            debug=debug,
        )
        business = CalendarBusinessLayer.from_config(config)
        return TestClient(create_app(business, config), raise_server_exceptions=False)

    def test_missing_credentials_is_400(self, monkeypatch):
        client = self._make_dav_client(monkeypatch, debug=False)
        response = client.get("/calendars/dav-work", headers=ALICE)
        assert response.status_code == 400
        assert response.json() == {}

    def test_missing_credentials_message_in_debug(self, monkeypatch):
        client = self._make_dav_client(monkeypatch, debug=True)
        response = client.get("/calendars/dav-work", headers=ALICE)
        assert response.status_code == 400
        assert "credentials not set" in response.json()["message"]

    def test_index_skips_failing_backend(self, monkeypatch):
        client = self._make_dav_client(monkeypatch, debug=False)
        _create(client, {"displayname": "Work"})
        response = client.get("/calendars", headers=ALICE)
        assert response.status_code == 200
        assert [c["calendarURI"] for c in response.json()] == ["local-work"]
