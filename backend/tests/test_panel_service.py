"""
Tests for the panel query handler and share-link builder
"""

import base64
from datetime import datetime

import pytest

from models import User
from services.panel_service import build_user_info, format_quota_left_percent, get_panel_info
from services.service_url import service_url


HOST = "relay.example.com"


def _b64url_decode(value: str) -> str:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4)).decode("utf-8")


class TestQuotaPercent:

    def test_zero_limit(self):
        assert format_quota_left_percent(0, 0.0) == "0"
        assert format_quota_left_percent(0, 12.5) == "0"

    def test_quarter_used(self):
        assert format_quota_left_percent(100, 25) == "75.00"

    def test_rounds_to_two_decimals(self):
        assert format_quota_left_percent(3, 1) == "66.67"

    def test_overuse_goes_negative(self):
        assert format_quota_left_percent(10, 15) == "-50.00"


class TestBuildUserInfo:

    def test_unprovisioned_user_gets_display_defaults(self, make_user, catalog, db_session):
        user = make_user(package_limit=100, package_used=25.0, expired=datetime(2027, 3, 1))

        info = build_user_info(user, catalog, HOST)

        assert info["service_method"] == "aes-256-cfb"
        assert info["service_type"] == "SS"
        assert info["service_url"] == ""
        assert info["service_port"] == 0
        assert info["package_used"] == "25.00"
        assert info["package_left"] == "75.00"
        assert info["package_left_percent"] == "75.00"
        assert info["expired"] == "2027-03-01"
        assert info["host"] == HOST

        # Defaults are display only
        db_session.expire_all()
        stored = db_session.query(User).filter(User.id == user.id).one()
        assert stored.service_method is None
        assert stored.service_type is None

    def test_provisioned_user(self, make_user, catalog):
        user = make_user(
            service_id="abc123", service_port=5003, service_pwd="secret",
            service_method="chacha20", service_type="SSR", status=1,
        )

        info = build_user_info(user, catalog, HOST)

        assert info["service_method"] == "chacha20"
        assert info["service_type"] == "SSR"
        assert info["service_url"].startswith("ssr://")
        assert info["status"] == 1

    def test_zero_limit(self, make_user, catalog):
        user = make_user(package_limit=0)
        info = build_user_info(user, catalog, HOST)
        assert info["package_left_percent"] == "0"
        assert info["package_left"] == "0.00"


class TestGetPanelInfo:

    def test_missing_user_is_unsuccessful(self, db_session, catalog):
        body = get_panel_info(db_session, 999, catalog, HOST)
        assert body["success"] is False
        assert body["message"]
        assert body["data"] is None

    def test_lists_catalog(self, db_session, make_user, catalog):
        user = make_user()
        body = get_panel_info(db_session, user.id, catalog, HOST)

        assert body["success"] is True
        assert body["data"]["servers"] == ["SS", "SSR"]
        assert "chacha20-ietf-poly1305" in body["data"]["ss_methods"]
        assert "aes-256-ctr" in body["data"]["ssr_methods"]
        assert body["data"]["uInfo"]["username"] == user.username


class TestServiceUrl:

    def test_ss_link(self):
        url = service_url("SS", HOST, 5001, "aes-256-cfb", "pw")
        assert url.startswith("ss://")
        assert base64.b64decode(url[len("ss://"):]).decode() == f"aes-256-cfb:pw@{HOST}:5001"

    def test_ssr_link(self):
        url = service_url("SSR", HOST, 5002, "chacha20", "pw")
        body = _b64url_decode(url[len("ssr://"):])
        host, port, protocol, method, obfs, password = body.split(":")
        assert (host, port, protocol, method, obfs) == (HOST, "5002", "origin", "chacha20", "plain")
        assert _b64url_decode(password) == "pw"
        assert "=" not in url

    @pytest.mark.parametrize("service_type,port", [("SS", 0), ("", 5001), ("VMESS", 5001)])
    def test_nothing_to_share(self, service_type, port):
        assert service_url(service_type, HOST, port, "aes-256-cfb", "pw") == ""
