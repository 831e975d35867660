# Spotify Status Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SnapshotPoller — fetches playback + queue state and turns it into events.

States:
    IDLE    no subscribers; the poll timer is disarmed
    ACTIVE  at least one subscriber; the poll timer is armed after every poll

Each poll:
    playback → ChangeTracker → playback_listeners
    queue    → QueueDiffer   → queue_listeners      (premium accounts only)
    re-arm at min(interval, remaining track time + lookahead)

The retained snapshots are only replaced after their events have been handed
to the listeners, and each read-compare-replace runs under its own lock so
a command-triggered poll and a timer poll never interleave on the same state.
A poll already running when the last subscriber leaves is not cancelled.

When the title changes, lyrics are cleared at once and the canvas and lyrics
lookups (if enabled) run side by side.  Lookups still running for the previous
item are cancelled, and late results for an item no longer playing are dropped.
"""

import asyncio
import logging
from enum import Enum

from .events import Event, EventKind
from .lib.listeners import ListenerRegistry
from .lib.timer import Timer
from .queue_diff import diff
from .spotify import extras
from .tracker import evaluate

log = logging.getLogger(__name__)


class PollerState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


def next_poll_delay(interval, remaining, lookahead, minimum=0.0):
    """Seconds until the next poll: the track boundary, capped by *interval*."""
    return max(minimum, min(interval, remaining + lookahead))


class SnapshotPoller:

    def __init__(self, client, *, interval=30.0, lookahead=1.0, min_delay=0.5,
                 lyrics=False, canvas=False):
        self.client = client
        self.interval = interval
        self.lookahead = lookahead
        self.min_delay = min_delay
        self.lyrics = lyrics
        self.canvas = canvas

        self.state = PollerState.IDLE
        self.previous = None
        self.previous_queue = []
        self.queue_supported: bool | None = None
        self.playback_listeners = ListenerRegistry("playback")
        self.queue_listeners = ListenerRegistry("queue")
        self.timer = Timer("poll")
        self._playback_lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._enrichment: asyncio.Task | None = None

    # ── Idle / Active ──

    def activate(self):
        """Idle → Active, polling right away.  No-op when already active."""
        if self.state is PollerState.ACTIVE:
            return
        self.state = PollerState.ACTIVE
        log.info("Poller active")
        self.timer.arm(0, self.poll)

    def deactivate(self):
        if self.state is PollerState.IDLE:
            return
        self.state = PollerState.IDLE
        self.timer.disarm()
        log.info("Poller idle")

    async def shutdown(self):
        self.deactivate()
        await self.timer.shutdown()
        self._cancel_enrichment()

    # ── Polling ──

    def next_delay(self, snapshot) -> float:
        if snapshot is None:
            return self.interval
        return next_poll_delay(self.interval, snapshot.remaining_ms / 1000,
                               self.lookahead, self.min_delay)

    def _schedule(self, snapshot):
        if self.state is PollerState.ACTIVE:
            self.timer.arm(self.next_delay(snapshot), self.poll)

    async def poll(self, include_queue=True):
        """Fetch playback once, emit what changed, and re-arm the timer."""
        async with self._playback_lock:
            try:
                snapshot = await self.client.current_playback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Playback poll failed: %s", e)
                self._schedule(None)
                return

            if snapshot is None:
                self.previous = None
                self._cancel_enrichment()
                self.playback_listeners.emit([Event(EventKind.CLEAR_ALL)])
                self._schedule(None)
                return

            events = evaluate(self.previous, snapshot)
            if events:
                self.playback_listeners.emit(events)
            if any(e.kind is EventKind.TITLE for e in events):
                self._enrich(snapshot.item)
            self.previous = snapshot
            self._schedule(snapshot)

        if include_queue:
            await self.poll_queue()

    async def _queue_available(self) -> bool:
        if self.queue_supported is None:
            try:
                profile = await self.client.current_user()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Could not read account tier: %s", e)
                return False
            self.queue_supported = (profile.get("product") or "").lower() == "premium"
            log.info("Spotify account %s (%s) — queue %s",
                     profile.get("display_name") or profile.get("id"),
                     profile.get("product"),
                     "available" if self.queue_supported else "unavailable")
        return self.queue_supported

    async def poll_queue(self):
        """Fetch the queue once and emit the diff against the retained one."""
        if not await self._queue_available():
            return
        async with self._queue_lock:
            try:
                queue = await self.client.queue()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Queue poll failed: %s", e)
                return
            queue = queue or []
            events = diff(self.previous_queue, queue)
            if events:
                self.queue_listeners.emit(events)
            self.previous_queue = queue

    async def reset(self):
        """Forget retained state so the next polls resend everything."""
        async with self._playback_lock:
            self.previous = None
        async with self._queue_lock:
            self.previous_queue = []
            self.queue_listeners.emit([Event(EventKind.QUEUE_CLEARED)])

    def replay(self) -> list[Event]:
        """Events that rebuild the retained state for a subscriber starting blank."""
        events = []
        if self.previous is not None:
            events.extend(evaluate(None, self.previous))
        if self.previous_queue:
            events.extend(diff([], self.previous_queue))
        return events

    # ── Enrichment ──

    def _cancel_enrichment(self):
        if self._enrichment is not None:
            self._enrichment.cancel()
            self._enrichment = None

    def _enrich(self, item):
        """Start lookups for a new item; whatever ran for the last one is dropped."""
        self._cancel_enrichment()
        if self.lyrics:
            self.playback_listeners.emit([Event(EventKind.LYRICS_CLEARED)])
        if not (self.lyrics or self.canvas):
            return
        self._enrichment = asyncio.create_task(self._fetch_enrichment(item))

    async def _fetch_enrichment(self, item):
        session = self.client.session
        lookups = []
        if self.canvas:
            lookups.append(self._lookup_canvas(session, item))
        if self.lyrics:
            lookups.append(self._lookup_lyrics(session, item))
        await asyncio.gather(*lookups)

    async def _lookup_canvas(self, session, item):
        event = await extras.fetch_canvas(session, item)
        if event is not None:
            self._emit_for(item, [event])

    async def _lookup_lyrics(self, session, item):
        events = await extras.fetch_lyrics(session, item)
        if events:
            self._emit_for(item, events)

    def _emit_for(self, item, events):
        current = self.previous
        if current is None or current.item.resource != item.resource:
            log.debug("Dropping enrichment for %s, no longer playing", item.resource.name)
            return
        self.playback_listeners.emit(events)
