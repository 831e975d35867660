# Spotify Status Bridge
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Value types for playback state and their construction from Spotify Web API
JSON.

Identity rules:
  - Resource equality and hashing use the URI only; the display name rides
    along but never takes part in comparisons.
  - A QueueEntry's identity is the resource of its item, so the same track
    queued twice is two entries with one identity.

All types are frozen: a new poll produces new objects, never mutates old ones.
"""

from dataclasses import dataclass, field
from enum import IntEnum


@dataclass(frozen=True)
class Resource:
    name: str = field(compare=False)
    uri: str


class RepeatMode(IntEnum):
    """Player repeat state.  The integer value is the wire representation."""

    TRACK = 0
    CONTEXT = 1
    OFF = 2

    @classmethod
    def from_api(cls, state: str) -> "RepeatMode":
        return cls[state.upper()]

    @property
    def api_name(self) -> str:
        return self.name.lower()

    def next(self) -> "RepeatMode":
        return RepeatMode((self.value + 1) % 3)


@dataclass(frozen=True)
class PlayableItem:
    """A track or podcast episode."""

    resource: Resource
    creators: tuple[Resource, ...] = ()
    cover: str = ""
    grouping: Resource | None = None
    duration_ms: int = 0
    id: str = ""
    kind: str = "track"


@dataclass(frozen=True)
class PlaybackSnapshot:
    item: PlayableItem
    progress_ms: int = 0
    is_playing: bool = False
    repeat: RepeatMode = RepeatMode.OFF
    shuffle: bool = False

    @property
    def remaining_ms(self) -> int:
        return self.item.duration_ms - self.progress_ms


@dataclass(frozen=True)
class QueueEntry:
    item: PlayableItem
    position: int

    @property
    def identity(self) -> Resource:
        return self.item.resource


# ── Spotify Web API JSON → model ──

def _spotify_url(obj: dict) -> str:
    return (obj.get("external_urls") or {}).get("spotify", "")


def _resource(obj: dict | None) -> Resource | None:
    if not obj:
        return None
    return Resource(obj.get("name", ""), _spotify_url(obj))


def _first_image(images: list | None) -> str:
    if images:
        return images[0].get("url", "")
    return ""


def parse_item(data: dict | None) -> PlayableItem | None:
    """Build a PlayableItem from a Web API track or episode object.

    Tracks: artists are the creators, the album is the grouping.
    Episodes: the show is both the single creator and the grouping.
    Returns None for anything else (ads, local files without metadata).
    """
    if not data:
        return None
    kind = data.get("type")
    if kind == "track":
        album = data.get("album") or {}
        return PlayableItem(
            resource=_resource(data),
            creators=tuple(_resource(a) for a in data.get("artists") or []),
            cover=_first_image(album.get("images")),
            grouping=_resource(album),
            duration_ms=int(data.get("duration_ms") or 0),
            id=data.get("id") or "",
            kind="track",
        )
    if kind == "episode":
        show = _resource(data.get("show"))
        return PlayableItem(
            resource=_resource(data),
            creators=(show,) if show else (),
            cover=_first_image(data.get("images")),
            grouping=show,
            duration_ms=int(data.get("duration_ms") or 0),
            id=data.get("id") or "",
            kind="episode",
        )
    return None


def parse_playback(data: dict | None) -> PlaybackSnapshot | None:
    """Build a snapshot from GET /me/player, or None when nothing is playing."""
    if not data:
        return None
    item = parse_item(data.get("item"))
    if item is None:
        return None
    return PlaybackSnapshot(
        item=item,
        progress_ms=int(data.get("progress_ms") or 0),
        is_playing=bool(data.get("is_playing")),
        repeat=RepeatMode.from_api(data.get("repeat_state") or "off"),
        shuffle=bool(data.get("shuffle_state")),
    )


def parse_queue(data: dict | None) -> list[QueueEntry] | None:
    """Build queue entries from GET /me/player/queue (positions are zero-based)."""
    if not data or data.get("queue") is None:
        return None
    entries = []
    for raw in data["queue"]:
        item = parse_item(raw)
        if item is not None:
            entries.append(QueueEntry(item, len(entries)))
    return entries
