"""
Spotify access-token lifecycle — the ONE place tokens are obtained.

    UNAUTHENTICATED ──▶ AUTHENTICATING ──▶ AUTHORIZED ◀──▶ REFRESHING
                              ▲                                │
                              └──── refresh token rejected ────┘

  - No stored refresh token: interactive grant, then code exchange.
  - Stored refresh token: refresh straight away.
  - A refresh timer is armed for ``expiry - safety_margin`` after every
    success; there is never more than one.
  - Network trouble while authenticating or refreshing: wait retry_backoff
    seconds, try again, forever.
  - Refresh rejected by Spotify (revoked / invalid grant): fall back to the
    interactive grant.

API callers go through token(): it waits until the scheduler is AUTHORIZED.
Entering AUTHENTICATING or REFRESHING closes the gate for new callers only;
requests already sent with the previous token are left alone.
"""

import asyncio
import logging
from enum import Enum

from ..lib.timer import Timer
from .pkce import classify_error, error_code, exchange_code, refresh_access_token
from .tokens import load_tokens, save_tokens

log = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


class TokenState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHORIZED = "authorized"
    REFRESHING = "refreshing"


class TokenScheduler:
    """Keeps a valid access token around without blocking in-flight requests."""

    def __init__(self, client_id, authorizer, *, safety_margin=120.0,
                 retry_backoff=60.0, token_path=None,
                 exchange=exchange_code, refresh=refresh_access_token):
        self.client_id = client_id
        self.authorizer = authorizer
        self.safety_margin = safety_margin
        self.retry_backoff = retry_backoff
        self.token_path = token_path
        self._exchange = exchange
        self._refresh_call = refresh

        self.state = TokenState.UNAUTHENTICATED
        self.expiry: float | None = None  # event-loop time
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._authorized = asyncio.Event()
        self.refresh_timer = Timer("token-refresh")
        self._task: asyncio.Task | None = None

    # ── Lifecycle ──

    def load(self):
        """Pick up a stored refresh token.  Returns True if one was found."""
        tokens = load_tokens(self.token_path)
        if not tokens or not tokens.get("refresh_token"):
            log.info("No stored Spotify refresh token — interactive authorization needed")
            return False
        if tokens.get("client_id") and tokens["client_id"] != self.client_id:
            log.warning("Stored refresh token belongs to another client_id — ignoring it")
            return False
        self._refresh_token = tokens["refresh_token"]
        log.info("Spotify refresh token loaded (client_id: %s...)", self.client_id[:8])
        return True

    def start(self):
        self.load()
        self._task = asyncio.create_task(self.authorize())

    async def stop(self):
        await self.refresh_timer.shutdown()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except (asyncio.CancelledError, Exception):
                pass
            self._task = None

    # ── Gate ──

    @property
    def is_authorized(self):
        return self._authorized.is_set()

    async def token(self) -> str:
        """Current access token; waits while (re-)authorization is under way."""
        await self._authorized.wait()
        return self._access_token

    async def wait_authorized(self):
        await self._authorized.wait()

    # ── State machine ──

    async def authorize(self):
        """One full pass: refresh or grant, retrying until it succeeds, then re-arm."""
        while True:
            try:
                if self._refresh_token:
                    await self._refresh()
                else:
                    await self._grant()
                break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                kind = classify_error(e) or "error"
                log.warning("Spotify authorization failed (%s: %s) — retrying in %ds",
                            kind, e, self.retry_backoff)
                await asyncio.sleep(self.retry_backoff)
        self._arm_refresh()

    async def _grant(self):
        self._enter(TokenState.AUTHENTICATING)
        code, verifier = await self.authorizer.request_code()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, self._exchange, code, self.client_id, verifier,
            self.authorizer.redirect_uri)
        await self._accept(result)
        log.info("Gained Spotify authorization")

    async def _refresh(self):
        self._enter(TokenState.REFRESHING)
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, self._refresh_call, self.client_id, self._refresh_token)
        except Exception as e:
            if classify_error(e) != "rejected":
                raise
            reason = error_code(e) if hasattr(e, "read") else ""
            log.error("Spotify refresh token rejected (%s) — re-authorization required",
                      reason or e)
            self._refresh_token = None
            await self._grant()
            return
        await self._accept(result)
        log.info("Spotify access refreshed")

    async def _accept(self, result: dict):
        loop = asyncio.get_running_loop()
        expires_in = result.get("expires_in", DEFAULT_EXPIRES_IN)
        self._access_token = result["access_token"]
        self.expiry = loop.time() + expires_in

        rotated = result.get("refresh_token")
        if rotated and rotated != self._refresh_token:
            self._refresh_token = rotated
            try:
                await loop.run_in_executor(
                    None, save_tokens, self.client_id, rotated, self.token_path)
                log.info("Refresh token stored")
            except OSError as e:
                log.warning("Could not store refresh token (%s) — keeping it in memory", e)

        self._enter(TokenState.AUTHORIZED)
        log.info("Access valid for %ds", expires_in)

    def _enter(self, state: TokenState):
        self.state = state
        if state is TokenState.AUTHORIZED:
            self._authorized.set()
        else:
            self._authorized.clear()

    def _arm_refresh(self):
        loop = asyncio.get_running_loop()
        lifetime = self.expiry - loop.time()
        delay = lifetime - self.safety_margin
        if delay <= 0:
            # Token lives shorter than the margin; refresh halfway instead.
            delay = lifetime / 2
        self.refresh_timer.arm(delay, self.authorize)
        log.info("Refreshing access in %.0fs", delay)
