"""
Spotify token endpoint calls for the Authorization Code with PKCE flow.

Only a client_id is needed — no client secret is ever stored.  Calls use
blocking urllib.request; TokenScheduler runs them in the default executor.

    verifier  = generate_code_verifier()
    challenge = generate_code_challenge(verifier)
    url       = build_auth_url(client_id, redirect_uri, challenge, SCOPES)
    ...user approves, callback delivers ?code=...
    grant     = exchange_code(code, client_id, verifier, redirect_uri)
    grant     = refresh_access_token(client_id, grant["refresh_token"])

Failure classes (see classify_error):
    "rejected"   — 400/401 from the token endpoint (revoked or invalid grant)
    "transient"  — network trouble, timeouts, 5xx; safe to retry as-is
"""

import base64
import hashlib
import json
import os
import urllib.error
import urllib.parse
import urllib.request

TOKEN_URL = "https://accounts.spotify.com/api/token"
AUTHORIZE_URL = "https://accounts.spotify.com/authorize"

SCOPES = ("user-read-currently-playing user-modify-playback-state "
          "user-read-playback-state user-read-playback-position "
          "user-library-read user-read-private")

REQUEST_TIMEOUT = 10


def generate_code_verifier(length=128):
    """Random URL-safe verifier, 43–128 characters."""
    raw = os.urandom(length)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")[:length]


def generate_code_challenge(verifier):
    """S256 challenge for *verifier*."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_auth_url(client_id, redirect_uri, code_challenge, scopes=SCOPES, state=None):
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": scopes,
        "code_challenge_method": "S256",
        "code_challenge": code_challenge,
    }
    if state:
        params["state"] = state
    return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"


def _post_token(body: dict) -> dict:
    data = urllib.parse.urlencode(body).encode()
    req = urllib.request.Request(
        TOKEN_URL,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    with urllib.request.urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
        return json.loads(resp.read().decode())


def exchange_code(code, client_id, code_verifier, redirect_uri):
    """Trade an authorization code for access + refresh tokens.

    Returns the token response dict ('access_token', 'refresh_token',
    'expires_in', ...).  Raises urllib.error.URLError / HTTPError on failure.
    """
    return _post_token({
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": client_id,
        "code_verifier": code_verifier,
    })


def refresh_access_token(client_id, refresh_token):
    """Trade a refresh token for a new access token.

    The response may carry a rotated 'refresh_token' that replaces the old one.
    """
    return _post_token({
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    })


def error_code(exc: urllib.error.HTTPError) -> str:
    """The OAuth 'error' field of a failed token response, if readable."""
    try:
        body = json.loads(exc.read().decode())
        return body.get("error", "")
    except Exception:
        return ""


def classify_error(exc: BaseException) -> str | None:
    """Return "rejected", "transient", or None for errors that are neither."""
    if isinstance(exc, urllib.error.HTTPError):
        if exc.code in (400, 401):
            return "rejected"
        if exc.code == 429 or exc.code >= 500:
            return "transient"
        return None
    if isinstance(exc, (urllib.error.URLError, TimeoutError, ConnectionError, OSError)):
        return "transient"
    return None
