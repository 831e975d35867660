"""
Spotify Web API client (aiohttp).

Every request waits on TokenScheduler.token() first, so nothing hits the API
until authorization has completed.  Non-2xx responses raise SpotifyAPIError;
callers decide whether that is worth more than a log line.
"""

import json
import logging

import aiohttp

from ..models import RepeatMode, Resource, parse_playback, parse_queue

log = logging.getLogger(__name__)

API_BASE = "https://api.spotify.com/v1"
REQUEST_TIMEOUT = 10


class SpotifyAPIError(Exception):

    def __init__(self, status, message=""):
        super().__init__(f"HTTP {status}: {message}" if message else f"HTTP {status}")
        self.status = status
        self.message = message


class SpotifyClient:

    def __init__(self, auth, session: aiohttp.ClientSession | None = None):
        self.auth = auth
        self.session = session
        self._owns_session = session is None

    async def start(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT))

    async def close(self):
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def _request(self, method, path, params=None):
        token = await self.auth.token()
        async with self.session.request(
            method,
            f"{API_BASE}{path}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        ) as resp:
            body = await resp.text()
            if resp.status >= 400:
                try:
                    message = json.loads(body).get("error", {}).get("message", "")
                except (ValueError, AttributeError):
                    message = body[:200]
                raise SpotifyAPIError(resp.status, message)
            if resp.status == 204 or not body.strip():
                return None
            try:
                return json.loads(body)
            except ValueError:
                # Some player endpoints answer 200 with a non-JSON body.
                return None

    # ── Reads ──

    async def current_user(self) -> dict:
        return await self._request("GET", "/me") or {}

    async def current_playback(self):
        """PlaybackSnapshot of the active device, or None when nothing plays."""
        data = await self._request(
            "GET", "/me/player", params={"additional_types": "track,episode"})
        return parse_playback(data)

    async def queue(self):
        """Upcoming QueueEntry list, or None when the queue is unavailable."""
        return parse_queue(await self._request("GET", "/me/player/queue"))

    async def search(self, request) -> list[Resource]:
        data = await self._request("GET", "/search", params={
            "q": request.query,
            "type": ",".join(request.types),
            "limit": str(request.limit),
            "offset": str(request.offset),
        }) or {}
        results = []
        for kind in request.types:
            for item in (data.get(f"{kind}s") or {}).get("items") or []:
                if not item:
                    continue
                url = (item.get("external_urls") or {}).get("spotify", "")
                results.append(Resource(item.get("name", ""), url))
        return results

    # ── Playback control ──

    async def pause(self):
        await self._request("PUT", "/me/player/pause")

    async def resume(self):
        await self._request("PUT", "/me/player/play")

    async def previous(self):
        await self._request("POST", "/me/player/previous")

    async def next(self):
        await self._request("POST", "/me/player/next")

    async def set_repeat(self, mode: RepeatMode):
        await self._request("PUT", "/me/player/repeat", params={"state": mode.api_name})

    async def set_shuffle(self, shuffle: bool):
        await self._request("PUT", "/me/player/shuffle",
                            params={"state": "true" if shuffle else "false"})

    async def seek(self, position_ms: int):
        await self._request("PUT", "/me/player/seek",
                            params={"position_ms": str(position_ms)})

    async def add_to_queue(self, uri: str):
        await self._request("POST", "/me/player/queue", params={"uri": uri})
