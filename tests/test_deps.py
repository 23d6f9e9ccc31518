"""
Tests for cabin_booking/deps.py: gateway identity headers and role checks.
These use the real identity deps (no overrides) on a small app.
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from cabin_booking.cabins import utcnow
from cabin_booking.deps import (
    CurrentUser,
    get_clock,
    get_current_user,
    get_event_bus,
    get_optional_user,
    require_admin,
    require_owner,
    require_owner_or_admin,
)
from cabin_booking.roles import Role

from .factories import GUEST_ID, identity_headers, make_admin, make_guest, make_owner


def _identity_app() -> FastAPI:
    app = FastAPI()

    @app.get("/me")
    async def me(user: CurrentUser = Depends(get_current_user)):
        return {"id": str(user.id), "username": user.username, "role": user.role, "company": user.company_slug}

    @app.get("/maybe")
    async def maybe(user: CurrentUser | None = Depends(get_optional_user)):
        return {"anonymous": user is None}

    @app.get("/owner")
    async def owner_only(_: CurrentUser = Depends(require_owner)):
        return {"ok": True}

    @app.get("/admin")
    async def admin_only(_: CurrentUser = Depends(require_admin)):
        return {"ok": True}

    @app.get("/staff")
    async def staff(_: CurrentUser = Depends(require_owner_or_admin)):
        return {"ok": True}

    return app


client = TestClient(_identity_app())


class TestGetCurrentUser:
    def test_valid_headers_authenticate(self):
        resp = client.get("/me", headers=identity_headers(make_owner()))
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "owner"
        assert body["company"] == "fjellhytter"

    def test_missing_user_id_returns_401(self):
        assert client.get("/me").status_code == 401

    def test_invalid_user_id_returns_401(self):
        resp = client.get("/me", headers={"X-User-Id": "not-a-uuid", "X-Username": "x"})
        assert resp.status_code == 401

    def test_unknown_role_returns_401(self):
        resp = client.get("/me", headers={"X-User-Id": str(GUEST_ID), "X-User-Role": "superuser"})
        assert resp.status_code == 401

    def test_role_defaults_to_user(self):
        resp = client.get("/me", headers={"X-User-Id": str(GUEST_ID), "X-Username": "ola"})
        assert resp.json()["role"] == "user"

    def test_username_is_url_decoded(self):
        resp = client.get("/me", headers={"X-User-Id": str(GUEST_ID), "X-Username": "Bj%C3%B8rn"})
        assert resp.json()["username"] == "Bjørn"


class TestOptionalUser:
    def test_anonymous_is_none(self):
        assert client.get("/maybe").json() == {"anonymous": True}

    def test_identified(self):
        assert client.get("/maybe", headers=identity_headers(make_guest())).json() == {"anonymous": False}

    def test_bad_identity_still_401(self):
        assert client.get("/maybe", headers={"X-User-Id": "nope"}).status_code == 401


class TestRoleChecks:
    def test_owner_route(self):
        assert client.get("/owner", headers=identity_headers(make_owner())).status_code == 200
        assert client.get("/owner", headers=identity_headers(make_guest())).status_code == 403
        assert client.get("/owner", headers=identity_headers(make_admin())).status_code == 403

    def test_admin_route(self):
        assert client.get("/admin", headers=identity_headers(make_admin())).status_code == 200
        assert client.get("/admin", headers=identity_headers(make_owner())).status_code == 403

    def test_owner_or_admin_route(self):
        assert client.get("/staff", headers=identity_headers(make_owner())).status_code == 200
        assert client.get("/staff", headers=identity_headers(make_admin())).status_code == 200
        resp = client.get("/staff", headers=identity_headers(make_guest()))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Forbidden"

    def test_role_check_needs_identity(self):
        assert client.get("/staff").status_code == 401


class TestCurrentUser:
    def test_role_flags(self):
        assert make_admin().is_admin is True
        assert make_owner().is_owner is True
        assert make_guest().is_admin is False
        assert CurrentUser(id=uuid4(), username="x").role == Role.USER


def test_shared_collaborators_are_singletons():
    assert get_event_bus() is get_event_bus()
    assert get_clock() is utcnow
