# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for squeezesync.

Loads a single JSON config file.  Search order:
  1. $SQUEEZESYNC_CONFIG            (explicit override)
  2. /etc/squeezesync/config.json   (system install)
  3. config.json                    (CWD — handy for local dev)

Every interval in the "polling" and "request" sections is in milliseconds,
the unit the server-side skins have always used.

Usage:
    from squeezesync.lib.config import cfg

    host     = cfg("server", "host", default="localhost")
    timeout  = cfg("request", "timeout", default=5000)
    polling  = cfg("polling")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/squeezesync/config.json",
    "config.json",
]

# Defaults for every documented key, used by the module constants below
DEFAULT_SERVER_PORT = 9000
DEFAULT_BRIDGE_PORT = 8780
DEFAULT_POLLING = {
    "player_status": 5000,
    "server_status": 10000,
    "server_status_idle": 30000,
    "playtime": 950,
    "scan": 750,
}
DEFAULT_REQUEST_TIMEOUT = 5000


def _search_paths() -> list[str]:
    override = os.environ.get("SQUEEZESYNC_CONFIG")
    return ([override] if override else []) + _SEARCH_PATHS


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    server = config.get("server") or {}
    if not server.get("host"):
        logger.warning("Config %s: missing server.host — using localhost", path)
    port = server.get("port", DEFAULT_SERVER_PORT)
    if not isinstance(port, int) or not 0 < port < 65536:
        logger.warning("Config %s: server.port %r is not a valid port", path, port)
    polling = config.get("polling") or {}
    for key, value in polling.items():
        if key not in DEFAULT_POLLING:
            logger.warning("Config %s: unknown polling.%s", path, key)
        elif not isinstance(value, (int, float)) or value <= 0:
            logger.warning("Config %s: polling.%s must be a positive number of ms", path, key)
    timeout = (config.get("request") or {}).get("timeout", DEFAULT_REQUEST_TIMEOUT)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        logger.warning("Config %s: request.timeout must be a positive number of ms", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.info("No config.json found — using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                   → config["server"]
    cfg("server", "host")           → config["server"]["host"]
    cfg("polling", "playtime", default=950)  → config["polling"]["playtime"] or 950
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def interval(key: str) -> float:
    """Polling interval *key* in seconds."""
    return cfg("polling", key, default=DEFAULT_POLLING[key]) / 1000


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
