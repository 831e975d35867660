"""
Field-level change detection between two playback snapshots.

TRACKERS is evaluated top to bottom for every poll.  Listeners render fields
incrementally, so the order is part of the protocol: title, creators, cover,
grouping, progress, duration, playing, repeat, shuffle.
"""

from dataclasses import dataclass
from typing import Callable

from .events import Event, EventKind
from .models import PlaybackSnapshot


@dataclass(frozen=True)
class ChangeTracker:
    kind: EventKind
    changed: Callable[[PlaybackSnapshot, PlaybackSnapshot], bool]
    value: Callable[[PlaybackSnapshot], object]

    def event(self, snapshot: PlaybackSnapshot) -> Event:
        return Event(self.kind, self.value(snapshot))


def creators_changed(old: PlaybackSnapshot, new: PlaybackSnapshot) -> bool:
    """Set comparison: order and repeats don't matter, membership does."""
    return bool(set(old.item.creators) ^ set(new.item.creators))


TRACKERS: tuple[ChangeTracker, ...] = (
    ChangeTracker(
        EventKind.TITLE,
        lambda o, n: o.item.resource != n.item.resource,
        lambda s: s.item.resource),
    ChangeTracker(
        EventKind.CREATORS,
        creators_changed,
        lambda s: s.item.creators),
    ChangeTracker(
        EventKind.COVER,
        lambda o, n: o.item.cover != n.item.cover,
        lambda s: s.item.cover),
    ChangeTracker(
        EventKind.GROUPING,
        lambda o, n: o.item.grouping != n.item.grouping,
        lambda s: s.item.grouping),
    ChangeTracker(
        EventKind.PROGRESS,
        lambda o, n: o.progress_ms != n.progress_ms,
        lambda s: s.progress_ms),
    ChangeTracker(
        EventKind.DURATION,
        lambda o, n: o.item.duration_ms != n.item.duration_ms,
        lambda s: s.item.duration_ms),
    ChangeTracker(
        EventKind.PLAYING,
        lambda o, n: o.is_playing != n.is_playing,
        lambda s: s.is_playing),
    ChangeTracker(
        EventKind.REPEAT,
        lambda o, n: o.repeat != n.repeat,
        lambda s: s.repeat),
    ChangeTracker(
        EventKind.SHUFFLE,
        lambda o, n: o.shuffle != n.shuffle,
        lambda s: s.shuffle),
)


def evaluate(previous: PlaybackSnapshot | None,
             current: PlaybackSnapshot) -> list[Event]:
    """Events for every field that differs; all fields when *previous* is None."""
    return [
        tracker.event(current)
        for tracker in TRACKERS
        if previous is None or tracker.changed(previous, current)
    ]
