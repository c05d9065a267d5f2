"""
Relay Panel Backend Settings
Environment variable management with backward compatibility for legacy names.
"""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables (RLP_ENV_FILE points at an alternate env file)
load_dotenv(os.getenv("RLP_ENV_FILE") or None)


def get_env(new_var: str, old_var: Optional[str] = None, default: Optional[str] = None) -> str:
    """
    Get environment variable with backward compatibility.

    Tries new variable name first (RLP_*), falls back to old name if provided,
    then returns default if neither is set.

    Args:
        new_var: New RLP_* prefixed variable name
        old_var: Legacy variable name (for backward compatibility)
        default: Default value if neither variable is set

    Returns:
        Environment variable value or default
    """
    value = os.getenv(new_var)
    if value is not None:
        return value

    if old_var is not None:
        value = os.getenv(old_var)
        if value is not None:
            return value

    return default if default is not None else ""


def get_bool_env(new_var: str, old_var: Optional[str] = None, default: bool = False) -> bool:
    """Boolean flavour of get_env ("1", "true", "yes" are truthy)."""
    value = get_env(new_var, old_var, "true" if default else "false")
    return value.strip().lower() in ("1", "true", "yes", "on")


# Application Configuration
APP_HOST = get_env("RLP_APP_HOST", "APP_HOST", "127.0.0.1")
APP_PORT = int(get_env("RLP_APP_PORT", "APP_PORT", "5000"))

# Public address of the relay host, shown to users and baked into share URLs
HOST_ADDRESS = get_env("RLP_HOST_ADDRESS", "HOST_ADDRESS", "localhost")

# Database Paths
INTERNAL_DB_PATH = get_env("RLP_INTERNAL_DB_PATH", "INTERNAL_DB_PATH", "./data/panel.db")

# Logging
LOG_FILE = get_env("RLP_LOG_FILE", "LOG_FILE", "logs/relay-panel.log")
LOG_LEVEL = get_env("RLP_LOG_LEVEL", "LOG_LEVEL", "INFO")

# Port allocation range for relay containers (end is exclusive)
PORT_RANGE_START = int(get_env("RLP_PORT_RANGE_START", "PORT_RANGE_START", "5001"))
PORT_RANGE_END = int(get_env("RLP_PORT_RANGE_END", "PORT_RANGE_END", "6000"))
PORT_PROBE_SYSTEM = get_bool_env("RLP_PORT_PROBE_SYSTEM", None, False)

# Relay container images
SS_IMAGE = get_env("RLP_SS_IMAGE", "SS_IMAGE", "shadowsocks/shadowsocks-libev:latest")
SSR_IMAGE = get_env("RLP_SSR_IMAGE", "SSR_IMAGE", "breakwa11/shadowsocksr:latest")
CONTAINER_PREFIX = get_env("RLP_CONTAINER_PREFIX", None, "relay-")

# Usage sync worker
USAGE_SYNC_INTERVAL_SECONDS = int(
    get_env("RLP_USAGE_SYNC_INTERVAL_SECONDS", None, "300")  # 5 minutes
)
USAGE_SYNC_ENABLED = get_bool_env("RLP_USAGE_SYNC_ENABLED", None, True)

# Service Identification
SERVICE_NAME = "relay-panel"
SERVICE_VERSION = "0.3.0"


def get_log_config() -> dict:
    """
    Get logging configuration as a dictConfig mapping.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "panel": {
                "format": "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "panel",
            },
            "file": {
                "class": "logging.FileHandler",
                "filename": LOG_FILE,
                "formatter": "panel",
                "encoding": "utf-8",
            }
        },
        "root": {
            "level": LOG_LEVEL,
            "handlers": ["console", "file"]
        }
    }


# Create log directory if it doesn't exist
log_dir = Path(LOG_FILE).parent
log_dir.mkdir(parents=True, exist_ok=True)
