"""
Shared configuration loader for the Spotify status bridge.

Loads a single JSON config file.  Search order:
  1. $STATUSBRIDGE_CONFIG                (explicit override)
  2. /etc/statusbridge/config.json       (system install)
  3. config.json                         (CWD — handy for local dev)

Usage:
    from statusbridge.lib.config import cfg

    client_id = cfg("spotify", "client_id", default="")
    interval  = cfg("polling", "interval", default=30)
    bridge    = cfg("bridge")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None


def _search_paths() -> list[str]:
    paths = []
    override = os.getenv("STATUSBRIDGE_CONFIG")
    if override:
        paths.append(override)
    paths.extend(["/etc/statusbridge/config.json", "config.json"])
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    spotify = config.get("spotify") or {}
    if not spotify.get("client_id"):
        logger.warning("Config %s: missing spotify.client_id — authorization will fail", path)
    polling = config.get("polling") or {}
    interval = polling.get("interval")
    if interval is not None and (not isinstance(interval, (int, float)) or interval <= 0):
        logger.warning("Config %s: polling.interval must be a positive number, got %r", path, interval)
    auth = config.get("auth") or {}
    margin = auth.get("safety_margin")
    if margin is not None and (not isinstance(margin, (int, float)) or margin <= 0):
        logger.warning("Config %s: auth.safety_margin must be a positive number, got %r", path, margin)


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

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("bridge")                       → config["bridge"]
    cfg("bridge", "port")               → config["bridge"]["port"]
    cfg("polling", "interval", default=30)  → config["polling"]["interval"] or 30
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
