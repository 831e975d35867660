"""
Optional per-track enrichment: synced lyrics and the canvas background clip.

Both come from community-run lookup services keyed by Spotify item id.  They
are best effort — every failure is logged and yields fewer events, never an
exception.

Lyrics arrive as one event per line, ``"<startMs>|<endMs>|<words>"`` (blank
lines become ♪).  Clearing the previous lyrics is up to the caller.  Tracks
and episodes are both looked up by id.
"""

import logging

import aiohttp

from ..events import Event, EventKind

log = logging.getLogger(__name__)

LYRICS_URL = "https://spotify-lyrics-api-umber.vercel.app/"
CANVAS_URL = "https://spotify-canvas-api-weld.vercel.app/spotify"
LOOKUP_TIMEOUT = aiohttp.ClientTimeout(total=10)


def format_line(line: dict) -> str:
    words = line.get("words") or ""
    if not words.strip():
        words = "♪"
    start = int(line.get("startTimeMs") or 0)
    end = int(line.get("endTimeMs") or 0)
    return f"{start}|{end}|{words}"


async def fetch_lyrics(session: aiohttp.ClientSession, item) -> list[Event]:
    events = []
    if not item.id:
        return events
    try:
        async with session.get(LYRICS_URL, params={"trackid": item.id},
                               timeout=LOOKUP_TIMEOUT) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)
    except aiohttp.ClientError as e:
        log.warning("Lyrics lookup failed for %s: %s", item.id, e)
        return events
    except Exception as e:
        log.warning("Lyrics lookup error for %s: %s", item.id, e)
        return events

    if not data or data.get("error"):
        log.info("No lyrics for %s", item.resource.name)
        return events
    for line in data.get("lines") or []:
        events.append(Event(EventKind.LYRICS_LINE, format_line(line)))
    log.info("Fetched %d lyric lines for %s", len(events), item.resource.name)
    return events


async def fetch_canvas(session: aiohttp.ClientSession, item) -> Event | None:
    if not item.id:
        return None
    try:
        async with session.get(CANVAS_URL, params={"id": item.id},
                               timeout=LOOKUP_TIMEOUT) as resp:
            resp.raise_for_status()
            url = (await resp.text()).strip()
    except aiohttp.ClientError as e:
        log.warning("Canvas lookup failed for %s: %s", item.id, e)
        return None
    except Exception as e:
        log.warning("Canvas lookup error for %s: %s", item.id, e)
        return None
    if not url:
        return None
    return Event(EventKind.CANVAS, url)
