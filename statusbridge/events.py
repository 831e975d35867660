"""
Change events and their wire encoding.

Outbound messages are ``"<code>|<data>"``.  The code for each event kind comes
from WIRE_CODES; the table is the protocol, so codes are never derived.

  0  clear everything                  12 queued item creator(s)
  1  title                             13 queued item cover URL
  2  artist(s) / show                  14 queued item album / show
  3  cover URL                         15 queued item zero-based position
  4  album / show                      16 queued item duration (ms)
  5  progress (ms)                     17 queued item complete, add to display
  6  duration (ms)                     18 queued item old|new position
  7  is playing                        19 queue has been updated
  8  repeat state                      20 search results (issuer only)
  9  shuffle state                     21 canvas clip URL
  10 clear queue / remove queued item  22 clear lyrics
  11 queued item title                 23 lyrics line

A removed queue item reuses code 10 with the removed index as data.  An
inserted queue item expands to codes 11–16 followed by 17.
"""

from dataclasses import dataclass
from enum import Enum

from .models import QueueEntry, Resource


class EventKind(Enum):
    CLEAR_ALL = "clear_all"
    TITLE = "title"
    CREATORS = "creators"
    COVER = "cover"
    GROUPING = "grouping"
    PROGRESS = "progress"
    DURATION = "duration"
    PLAYING = "playing"
    REPEAT = "repeat"
    SHUFFLE = "shuffle"
    QUEUE_CLEARED = "queue_cleared"
    QUEUE_ITEM_REMOVED = "queue_item_removed"
    QUEUE_ITEM_SHIFTED = "queue_item_shifted"
    QUEUE_ITEM_INSERTED = "queue_item_inserted"
    QUEUE_UPDATED = "queue_updated"
    SEARCH_RESULTS = "search_results"
    CANVAS = "canvas"
    LYRICS_CLEARED = "lyrics_cleared"
    LYRICS_LINE = "lyrics_line"


WIRE_CODES: dict[EventKind, int] = {
    EventKind.CLEAR_ALL: 0,
    EventKind.TITLE: 1,
    EventKind.CREATORS: 2,
    EventKind.COVER: 3,
    EventKind.GROUPING: 4,
    EventKind.PROGRESS: 5,
    EventKind.DURATION: 6,
    EventKind.PLAYING: 7,
    EventKind.REPEAT: 8,
    EventKind.SHUFFLE: 9,
    EventKind.QUEUE_CLEARED: 10,
    EventKind.QUEUE_ITEM_REMOVED: 10,
    EventKind.QUEUE_ITEM_SHIFTED: 18,
    EventKind.QUEUE_UPDATED: 19,
    EventKind.SEARCH_RESULTS: 20,
    EventKind.CANVAS: 21,
    EventKind.LYRICS_CLEARED: 22,
    EventKind.LYRICS_LINE: 23,
}

# Per-field codes for an inserted queue item, in send order.
QUEUED_TITLE = 11
QUEUED_CREATORS = 12
QUEUED_COVER = 13
QUEUED_GROUPING = 14
QUEUED_POSITION = 15
QUEUED_DURATION = 16
QUEUED_COMPLETE = 17


@dataclass(frozen=True)
class Event:
    kind: EventKind
    value: object = None

    def __str__(self):
        return f"{self.kind.value}({self.value!r})"


# ── Payload formatting ──

def format_resource(resource: Resource | None) -> str:
    if resource is None:
        return "|"
    return f"{resource.uri}|{resource.name}"


def format_resources(resources) -> str:
    return "\n".join(format_resource(r) for r in resources)


def parse_resource(payload: str) -> Resource:
    """Inverse of format_resource: split on the first divider."""
    uri, _, name = payload.partition("|")
    return Resource(name, uri)


def format_value(value) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return str(int(value))
    if value is None:
        return ""
    return str(value)


def message(code: int, data: str = "") -> str:
    return f"{code}|{data}"


def _queued_item_messages(entry: QueueEntry) -> list[str]:
    item = entry.item
    return [
        message(QUEUED_TITLE, format_resource(item.resource)),
        message(QUEUED_CREATORS, format_resources(item.creators)),
        message(QUEUED_COVER, item.cover),
        message(QUEUED_GROUPING, format_resource(item.grouping)),
        message(QUEUED_POSITION, format_value(entry.position)),
        message(QUEUED_DURATION, format_value(item.duration_ms)),
        message(QUEUED_COMPLETE),
    ]


def encode(event: Event) -> list[str]:
    """Encode one event into the wire message(s) that carry it."""
    kind = event.kind
    if kind is EventKind.QUEUE_ITEM_INSERTED:
        return _queued_item_messages(event.value)

    code = WIRE_CODES[kind]
    if kind in (EventKind.TITLE, EventKind.GROUPING):
        data = format_resource(event.value)
    elif kind in (EventKind.CREATORS, EventKind.SEARCH_RESULTS):
        data = format_resources(event.value)
    elif kind is EventKind.QUEUE_ITEM_SHIFTED:
        old_index, new_index = event.value
        data = f"{format_value(old_index)}|{format_value(new_index)}"
    else:
        data = format_value(event.value)
    return [message(code, data)]


def encode_all(events) -> list[str]:
    messages = []
    for event in events:
        messages.extend(encode(event))
    return messages

