# Spotify Status Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SessionHub — WebSocket subscribers, event fan-out and command dispatch.

  attach   register the subscriber with the poller's playback and queue
           listeners, send it a queue-cleared baseline plus a replay of the
           retained state, and wake the poller if it is the first one
  detach   unregister; the last one out puts the poller to sleep
  message  decode, call Spotify, wait SETTLE_DELAY, re-poll

Sends are fire-and-forget: one task per subscriber per batch, so a stalled
connection never holds up the poller or the other subscribers.  Batches for
one subscriber go out whole and in emission order (a per-subscriber lock).
A send that fails drops that subscriber.
"""

import asyncio
import functools
import logging

from aiohttp import WSMsgType, web

from .commands import CommandCode, parse_message, parse_queue_uri
from .events import Event, EventKind, encode_all

log = logging.getLogger(__name__)


class SessionHub:

    def __init__(self, client, poller, *, settle_delay=0.5):
        self.client = client
        self.poller = poller
        self.settle_delay = settle_delay
        self.subscribers: dict = {}  # ws -> send callback, in attach order
        self._send_locks: dict = {}  # ws -> asyncio.Lock
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ── Registry ──

    def attach(self, ws):
        if ws in self.subscribers:
            return
        send = functools.partial(self.send, ws)
        self.subscribers[ws] = send
        self._send_locks[ws] = asyncio.Lock()
        self.poller.playback_listeners.add(send)
        self.poller.queue_listeners.add(send)
        log.info("Subscriber connected (%d total)", len(self.subscribers))

        self.send(ws, [Event(EventKind.QUEUE_CLEARED)] + self.poller.replay())
        if len(self.subscribers) == 1:
            self.poller.activate()

    def detach(self, ws):
        send = self.subscribers.pop(ws, None)
        if send is None:
            return
        self._send_locks.pop(ws, None)
        self.poller.playback_listeners.remove(send)
        self.poller.queue_listeners.remove(send)
        log.info("Subscriber disconnected (%d remaining)", len(self.subscribers))
        if not self.subscribers:
            self.poller.deactivate()

    # ── Outbound ──

    def send(self, ws, events):
        messages = encode_all(events)
        if messages:
            self._spawn(self._deliver(ws, messages))

    async def _deliver(self, ws, messages):
        lock = self._send_locks.get(ws)
        if lock is None:
            return
        async with lock:
            if self._send_locks.get(ws) is not lock:
                return  # detached while queued
            try:
                for message in messages:
                    log.debug("Sending %s", message)
                    await ws.send_str(message)
            except Exception as e:
                log.warning("Send failed, dropping subscriber: %s", e)
                self.detach(ws)

    # ── WebSocket endpoint ──

    async def handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(request)
        self.attach(ws)
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    self._spawn(self.handle_message(ws, msg.data))
                elif msg.type == WSMsgType.ERROR:
                    log.warning("WebSocket error: %s", ws.exception())
        finally:
            self.detach(ws)
        return ws

    # ── Inbound ──

    async def handle_message(self, ws, text):
        command = parse_message(text)
        if command is None:
            return

        log.info("Command %s received, data: %r", command.code.name, command.data)
        update_queue = command.may_alter_queue
        try:
            update_queue = await self._dispatch(ws, command)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Command %s failed: %s", command.code.name, e)

        if command.is_query:
            return

        await asyncio.sleep(self.settle_delay)
        await self.poller.poll(include_queue=False)
        if update_queue:
            await self.poller.poll_queue()

    async def _dispatch(self, ws, command) -> bool:
        """Carry out *command*.  Returns whether the queue may have changed."""
        code = command.code
        last = self.poller.previous

        if code is CommandCode.TOGGLE_PLAYBACK:
            if last is not None and last.is_playing:
                await self.client.pause()
            else:
                await self.client.resume()

        elif code is CommandCode.PREVIOUS:
            await self.client.previous()

        elif code is CommandCode.NEXT:
            await self.client.next()

        elif code is CommandCode.REFRESH:
            await self.poller.reset()

        elif code is CommandCode.CYCLE_REPEAT:
            if last is None:
                log.info("No playback to change repeat on")
            else:
                target = command.argument if command.argument is not None else last.repeat.next()
                await self.client.set_repeat(target)

        elif code is CommandCode.TOGGLE_SHUFFLE:
            playback = await self.client.current_playback()
            if playback is None:
                log.info("No playback detected")
                return False
            await self.client.set_shuffle(not playback.shuffle)

        elif code is CommandCode.SEEK:
            await self.client.seek(command.argument)

        elif code is CommandCode.QUEUE_ITEM:
            uri = parse_queue_uri(command.data)
            if uri is None:
                log.debug("Not a queueable Spotify link: %r", command.data)
                return False
            await self.client.add_to_queue(uri)

        elif code is CommandCode.SEARCH:
            results = await self.client.search(command.argument)
            log.info("Search %r: %d results", command.argument.query, len(results))
            self.send(ws, [Event(EventKind.SEARCH_RESULTS, results)])

        return command.may_alter_queue

    # ── Status ──

    def status(self) -> dict:
        previous = self.poller.previous
        return {
            "subscribers": len(self.subscribers),
            "poller": self.poller.state.value,
            "poll_timer_armed": self.poller.timer.armed,
            "queue_supported": self.poller.queue_supported,
            "now_playing": previous.item.resource.name if previous else None,
        }
