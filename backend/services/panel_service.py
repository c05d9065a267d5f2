"""
Panel query handling: turns a user row into what the dashboard displays.

Unset method/type are filled with catalog defaults for display only; the
user row is never written from here.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from models import User
from services.relay_catalog import MethodCatalog, SS, SSR
from services.service_url import service_url

logger = logging.getLogger(__name__)


def envelope(success: bool, message: str, data: Optional[Any] = None) -> Dict[str, Any]:
    """Uniform {success, message, data} response body"""
    return {"success": success, "message": message, "data": data}


def format_quota_left_percent(package_limit: int, package_used: float) -> str:
    if package_limit == 0:
        return "0"
    return f"{(package_limit - package_used) / package_limit * 100:.2f}"


def build_user_info(user: User, catalog: MethodCatalog, host: str) -> Dict[str, Any]:
    """
    Display view of a user and their relay

    Args:
        user: User row
        catalog: Method catalog (supplies display defaults)
        host: Public relay host

    Returns:
        Dict in the shape the dashboard expects
    """
    package_used = user.package_used or 0.0
    package_limit = user.package_limit or 0

    return {
        "id": user.id,
        "host": host,
        "username": user.username,
        "status": user.status,
        "package_used": f"{package_used:.2f}",
        "package_limit": package_limit,
        "package_left": f"{package_limit - package_used:.2f}",
        "package_left_percent": format_quota_left_percent(package_limit, package_used),
        "service_port": user.service_port or 0,
        "service_pwd": user.service_pwd or "",
        "service_method": user.service_method or catalog.default_method,
        "service_type": user.service_type or catalog.default_type,
        "expired": user.expired.strftime("%Y-%m-%d") if user.expired else "",
        "service_url": service_url(
            user.service_type or "",
            host,
            user.service_port or 0,
            user.service_method or "",
            user.service_pwd or "",
        ),
    }


def get_panel_info(db: Session, user_id: int, catalog: MethodCatalog, host: str) -> Dict[str, Any]:
    """Envelope for the "get my info" endpoint"""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        # Account removed by an administrator
        logger.info(f"Panel info requested for missing user {user_id}")
        return envelope(False, "User has been deleted!")

    return envelope(True, "User info fetched successfully!", {
        "uInfo": build_user_info(user, catalog, host),
        "ss_methods": list(catalog.methods_for(SS)),
        "ssr_methods": list(catalog.methods_for(SSR)),
        "servers": list(catalog.service_types),
    })
