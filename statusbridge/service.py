#!/usr/bin/env python3
"""
Spotify Status Bridge (spotify-bridge)

Mirrors the Spotify playback session and queue of one account to any number
of WebSocket subscribers, and lets them control playback.

  ws://<host>:<port>/neos-spotify-bridge   pipe-delimited event/command feed
  GET /status                              JSON health summary

Port: 1011 (loopback by default)
"""

import asyncio
import logging
import signal

from aiohttp import web

from .hub import SessionHub
from .lib.config import cfg
from .poller import SnapshotPoller
from .spotify.auth import TokenScheduler
from .spotify.authorize import InteractiveAuthorizer
from .spotify.client import SpotifyClient

log = logging.getLogger('spotify-bridge')


class BridgeService:

    def __init__(self):
        self.host = cfg("bridge", "host", default="127.0.0.1")
        self.port = int(cfg("bridge", "port", default=1011))
        self.path = cfg("bridge", "path", default="/neos-spotify-bridge")

        client_id = cfg("spotify", "client_id", default="")
        authorizer = InteractiveAuthorizer(
            client_id,
            callback_port=int(cfg("spotify", "callback_port", default=5000)),
        )
        self.auth = TokenScheduler(
            client_id,
            authorizer,
            safety_margin=float(cfg("auth", "safety_margin", default=120)),
            retry_backoff=float(cfg("auth", "retry_backoff", default=60)),
        )
        self.client = SpotifyClient(self.auth)
        self.poller = SnapshotPoller(
            self.client,
            interval=float(cfg("polling", "interval", default=30)),
            lookahead=float(cfg("polling", "lookahead", default=1)),
            min_delay=float(cfg("polling", "min_delay", default=0.5)),
            lyrics=bool(cfg("enrichment", "lyrics", default=False)),
            canvas=bool(cfg("enrichment", "canvas", default=False)),
        )
        self.hub = SessionHub(
            self.client, self.poller,
            settle_delay=float(cfg("polling", "settle_delay", default=0.5)),
        )
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(self.path, self.hub.handle_ws)
        app.router.add_get("/status", self._handle_status)
        return app

    async def _handle_status(self, request: web.Request) -> web.Response:
        status = self.hub.status()
        status["auth"] = self.auth.state.value
        return web.json_response(status)

    async def start(self):
        await self.client.start()
        self.auth.start()

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("WebSocket server running at ws://%s:%d%s", self.host, self.port, self.path)

    async def shutdown(self):
        await self.poller.shutdown()
        await self.auth.stop()
        for ws in list(self.hub.subscribers):
            await ws.close()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        await self.client.close()
        log.info("Spotify bridge stopped")

    async def run(self):
        """Start, wait for SIGINT/SIGTERM, stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(BridgeService().run())


if __name__ == '__main__':
    main()
