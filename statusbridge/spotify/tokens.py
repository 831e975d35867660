"""
Atomic on-disk storage for the Spotify client_id + refresh_token pair.

Writes go to a temp file in the same directory followed by os.replace(), so a
crash mid-write never leaves a half-written token file behind.

Storage locations (first match wins):
  1. $STATUSBRIDGE_TOKEN_FILE
  2. /etc/statusbridge/spotify_tokens.json   (if it exists or is writable)
  3. ~/.config/statusbridge/spotify_tokens.json
"""

import json
import os
import tempfile
from datetime import datetime, timezone

SYSTEM_PATH = "/etc/statusbridge/spotify_tokens.json"
USER_PATH = os.path.join(os.path.expanduser("~"), ".config", "statusbridge",
                         "spotify_tokens.json")


def store_path():
    """Resolve where tokens live."""
    override = os.getenv("STATUSBRIDGE_TOKEN_FILE")
    if override:
        return override
    if os.path.exists(SYSTEM_PATH):
        return SYSTEM_PATH
    system_dir = os.path.dirname(SYSTEM_PATH)
    if os.path.isdir(system_dir) and os.access(system_dir, os.W_OK):
        return SYSTEM_PATH
    return USER_PATH


def load_tokens(path=None):
    """Return the stored dict, or None if missing or unreadable."""
    path = path or store_path()
    try:
        with open(path) as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return None


def save_tokens(client_id, refresh_token, path=None):
    """Atomically persist the pair.  Returns the path written."""
    path = path or store_path()
    data = {
        "client_id": client_id,
        "refresh_token": refresh_token,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }

    d = os.path.dirname(path) or "."
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=d, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise

    return path

