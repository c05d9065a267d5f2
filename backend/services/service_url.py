"""
Share-link builder for relay services.

SS links use the legacy form `ss://base64(method:password@host:port)`;
SSR links use `ssr://base64url(host:port:protocol:method:obfs:base64url(password))`.
"""

import base64

from services.relay_catalog import SS, SSR

SSR_PROTOCOL = "origin"
SSR_OBFS = "plain"


def _b64(raw: str) -> str:
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _b64url(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def service_url(service_type: str, host: str, port: int, method: str, password: str) -> str:
    """Client import link for a relay, or "" when nothing is provisioned"""
    if not port:
        return ""

    if service_type == SS:
        return "ss://" + _b64(f"{method}:{password}@{host}:{port}")

    if service_type == SSR:
        body = f"{host}:{port}:{SSR_PROTOCOL}:{method}:{SSR_OBFS}:{_b64url(password)}"
        return "ssr://" + _b64url(body)

    return ""
