"""
Inbound subscriber messages.

Messages are ``"<code>|<data>"``, or a single digit followed directly by its
data (usually nothing):

  0 toggle playback          5 toggle shuffle
  1 previous track           6 seek            data: position in ms
  2 next track               7 enqueue item    data: Spotify URI or open.spotify.com link
  3 resend everything        8 search          data: limit|types|offset|query
  4 cycle repeat             data: optional repeat-mode number

parse_message() returns None for anything it cannot use; the caller drops it.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

from .models import RepeatMode

logger = logging.getLogger(__name__)

QUEUEABLE_TYPES = ("track", "episode")
SEARCH_TYPES = ("album", "artist", "playlist", "track", "show", "episode", "audiobook")


class CommandCode(IntEnum):
    TOGGLE_PLAYBACK = 0
    PREVIOUS = 1
    NEXT = 2
    REFRESH = 3
    CYCLE_REPEAT = 4
    TOGGLE_SHUFFLE = 5
    SEEK = 6
    QUEUE_ITEM = 7
    SEARCH = 8


# Commands that read state without changing it: no re-poll afterwards.
QUERY_COMMANDS = frozenset({CommandCode.SEARCH})

# Commands whose effect can reach the queue.
QUEUE_COMMANDS = frozenset({
    CommandCode.PREVIOUS,
    CommandCode.NEXT,
    CommandCode.REFRESH,
    CommandCode.TOGGLE_SHUFFLE,
    CommandCode.QUEUE_ITEM,
})


@dataclass(frozen=True)
class SearchRequest:
    limit: int
    types: tuple[str, ...]
    offset: int
    query: str


@dataclass(frozen=True)
class Command:
    code: CommandCode
    data: str = ""
    argument: object = None

    @property
    def is_query(self) -> bool:
        return self.code in QUERY_COMMANDS

    @property
    def may_alter_queue(self) -> bool:
        return self.code in QUEUE_COMMANDS


# ── Queue URI grammar ──
#
#   spotify:<type>:<id>
#   http(s)://open.spotify.com/<segment>/.../<type>/<id>[?query]
#
# <type> is track or episode, <id> is alphanumeric.

_URI_SCHEME = "spotify:"
_WEB_HOST = "open.spotify.com"


def _valid_id(token: str) -> bool:
    return bool(token) and token.isascii() and token.isalnum()


def parse_queue_uri(text: str) -> str | None:
    """Normalize an enqueue target to ``spotify:<type>:<id>``, or None."""
    text = text.strip()
    if text.startswith(_URI_SCHEME):
        tokens = text[len(_URI_SCHEME):].split(":")
        if len(tokens) != 2:
            return None
        kind, item_id = tokens
    else:
        for scheme in ("https://", "http://"):
            if text.startswith(scheme):
                rest = text[len(scheme):]
                break
        else:
            return None
        host, _, path = rest.partition("/")
        if host != _WEB_HOST:
            return None
        path = path.split("?", 1)[0].split("#", 1)[0]
        segments = [s for s in path.split("/") if s]
        # Locale prefixes like /intl-de/ come before the type segment.
        if len(segments) < 2:
            return None
        kind, item_id = segments[-2], segments[-1]

    if kind not in QUEUEABLE_TYPES or not _valid_id(item_id):
        return None
    return f"spotify:{kind}:{item_id}"


def parse_search(data: str) -> SearchRequest | None:
    parts = data.split("|", 3)
    if len(parts) != 4:
        logger.warning("Search needs limit|types|offset|query, got %r", data)
        return None
    limit, types, offset, query = parts
    try:
        limit = int(limit)
        offset = int(offset)
    except ValueError:
        logger.warning("Search limit/offset not numeric: %r", data)
        return None
    kinds = tuple(t.strip().lower() for t in types.split(",") if t.strip())
    if not kinds or any(k not in SEARCH_TYPES for k in kinds):
        logger.warning("Search types invalid: %r", types)
        return None
    if not query.strip():
        logger.warning("Search query empty")
        return None
    return SearchRequest(limit, kinds, offset, query)


def _split(text: str) -> tuple[int, str] | None:
    divider = text.find("|")
    if divider >= 0:
        try:
            return int(text[:divider]), text[divider + 1:]
        except ValueError:
            pass
    if text[:1].isdigit():
        return int(text[0]), text[1:]
    return None


def parse_message(text: str) -> Command | None:
    """Decode one inbound message.  Logs and returns None when it is unusable."""
    split = _split(text or "")
    if split is None:
        logger.warning("Invalid command received: %r", text)
        return None
    number, data = split
    try:
        code = CommandCode(number)
    except ValueError:
        logger.warning("Unknown command %d (data: %r)", number, data)
        return None

    argument = None
    if code is CommandCode.SEEK:
        try:
            argument = int(data)
        except ValueError:
            logger.warning("Seek position not numeric: %r", data)
            return None
    elif code is CommandCode.CYCLE_REPEAT and data:
        try:
            argument = RepeatMode(int(data))
        except ValueError:
            logger.warning("Repeat override invalid: %r", data)
            return None
    elif code is CommandCode.SEARCH:
        argument = parse_search(data)
        if argument is None:
            return None

    return Command(code, data, argument)
