"""
API tests for the panel and auth endpoints using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from app import app
from auth_routes import limiter
from auth_utils import create_access_token
from db import get_db
from models import User
from services.port_allocator import PortAllocator


@pytest.fixture
def client(db_session, catalog, fake_runtime):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.method_catalog = catalog
    app.state.port_allocator = PortAllocator(start_port=5001, end_port=5010)
    app.state.container_runtime = fake_runtime
    limiter.enabled = False

    # No context manager: skip lifespan so no real database or Docker is touched
    yield TestClient(app)

    app.dependency_overrides.clear()
    limiter.enabled = True


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


class TestPanelInfo:

    def test_requires_token(self, client):
        response = client.get("/api/user/auth/info")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_rejects_bad_token(self, client):
        response = client.get("/api/user/auth/info", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    def test_info_for_fresh_user(self, client, make_user):
        user = make_user(package_limit=100, package_used=25.0)

        response = client.get("/api/user/auth/info", headers=auth_headers(user.id))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        info = body["data"]["uInfo"]
        assert info["package_left_percent"] == "75.00"
        assert info["service_method"] == "aes-256-cfb"
        assert info["service_type"] == "SS"
        assert body["data"]["servers"] == ["SS", "SSR"]

    def test_deleted_user(self, client):
        response = client.get("/api/user/auth/info", headers=auth_headers(12345))
        assert response.status_code == 200
        assert response.json()["success"] is False


class TestCreateService:

    def test_create_then_info(self, client, make_user, fake_runtime):
        user = make_user(package_limit=20)
        headers = auth_headers(user.id)

        response = client.post(
            "/api/user/auth/service/create",
            data={"server-type": "SSR", "method": "chacha20-ietf"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["port"] == 5001
        assert body["data"]["type"] == "SSR"
        assert body["data"]["package_limit"] == 20
        assert body["data"]["id"] == fake_runtime.created[0][0]

        info = client.get("/api/user/auth/info", headers=headers).json()["data"]["uInfo"]
        assert info["service_port"] == 5001
        assert info["service_url"].startswith("ssr://")

    def test_invalid_method(self, client, make_user, fake_runtime):
        user = make_user()

        response = client.post(
            "/api/user/auth/service/create",
            data={"server-type": "SS", "method": "rc4-md5"},
            headers=auth_headers(user.id),
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["message"] == "Invalid service configuration!"
        assert fake_runtime.created == []

    def test_missing_fields(self, client, make_user):
        user = make_user()
        response = client.post("/api/user/auth/service/create", headers=auth_headers(user.id))
        assert response.json()["success"] is False

    def test_second_create_rejected(self, client, make_user):
        user = make_user()
        form = {"server-type": "SS", "method": "aes-256-cfb"}

        assert client.post("/api/user/auth/service/create", data=form, headers=auth_headers(user.id)).json()["success"]
        second = client.post("/api/user/auth/service/create", data=form, headers=auth_headers(user.id)).json()

        assert second["success"] is False
        assert second["message"] == "Service already created!"

    def test_runtime_failure(self, client, make_user, fake_runtime, db_session):
        user = make_user()
        fake_runtime.fail_create = True

        body = client.post(
            "/api/user/auth/service/create",
            data={"server-type": "SS", "method": "aes-256-cfb"},
            headers=auth_headers(user.id),
        ).json()

        assert body["success"] is False
        db_session.expire_all()
        assert db_session.query(User).filter(User.id == user.id).one().service_id is None

    def test_runtime_unavailable(self, client, make_user):
        user = make_user()
        app.state.container_runtime = None

        response = client.post(
            "/api/user/auth/service/create",
            data={"server-type": "SS", "method": "aes-256-cfb"},
            headers=auth_headers(user.id),
        )
        assert response.status_code == 503


class TestAuthRoutes:

    def test_signup_then_login(self, client, db_session):
        from auth_service import AuthService
        code = AuthService(db_session).create_invite_codes(1, package_limit=30, available_months=1)[0]

        signup = client.post("/api/user/signup", json={
            "invite_code": code.code, "username": "carol", "password": "hunter22",
        }).json()
        assert signup["success"] is True

        login = client.post("/api/user/login", json={"username": "carol", "password": "hunter22"}).json()
        assert login["success"] is True

        info = client.get(
            "/api/user/auth/info",
            headers={"Authorization": f"Bearer {login['data']['token']}"},
        ).json()
        assert info["data"]["uInfo"]["package_limit"] == 30

    def test_bad_login(self, client):
        body = client.post("/api/user/login", json={"username": "nobody", "password": "x"}).json()
        assert body["success"] is False


def test_health(client):
    body = client.get("/health").json()
    assert body["service"] == "relay-panel"
    assert body["container_runtime"] is True
    assert body["ports"]["total_ports"] == 9
    assert body["ports"]["used_ports"] == 0


def test_health_counts_assigned_ports(client, make_user):
    make_user(username="holder", service_id="c-1", service_port=5003)
    make_user(username="outside", service_id="c-2", service_port=7000)

    ports = client.get("/health").json()["ports"]

    assert ports["used_ports"] == 1
    assert ports["available_ports"] == 8
