import asyncio
from unittest.mock import AsyncMock

import pytest

from statusbridge.events import Event, EventKind
from statusbridge.poller import PollerState, SnapshotPoller, next_poll_delay
from statusbridge.spotify import extras

from .builders import drain, queue, snapshot, track


def make_client(playback=None, queue_entries=None, product="premium"):
    client = AsyncMock()
    client.current_playback.return_value = playback
    client.queue.return_value = queue_entries
    client.current_user.return_value = {"product": product, "display_name": "Tester"}
    return client


def record(poller):
    playback, queued = [], []
    poller.playback_listeners.add(playback.extend)
    poller.queue_listeners.add(queued.extend)
    return playback, queued


@pytest.mark.parametrize("interval,remaining,lookahead,expected", [
    (30, 100, 1, 30),
    (30, 5, 1, 6),
    (30, 29, 1, 30),
    (30, 0, 1, 1),
])
def test_next_poll_delay(interval, remaining, lookahead, expected):
    assert next_poll_delay(interval, remaining, lookahead) == expected


def test_next_poll_delay_clamps_negative_remaining():
    assert next_poll_delay(30, -10, 1, minimum=0.5) == 0.5


def test_delay_follows_track_end():
    poller = SnapshotPoller(make_client(), interval=30, lookahead=1)
    near_end = snapshot(track("Song", duration_ms=200_000), progress_ms=195_000)
    assert poller.next_delay(near_end) == 6
    assert poller.next_delay(snapshot(progress_ms=0)) == 30
    assert poller.next_delay(None) == 30


@pytest.mark.asyncio
async def test_first_poll_emits_everything_then_only_changes():
    client = make_client(snapshot(progress_ms=0), queue("A"))
    poller = SnapshotPoller(client)
    playback, queued = record(poller)

    await poller.poll()
    assert len(playback) == 9
    assert [e.kind for e in queued] == [EventKind.QUEUE_ITEM_INSERTED, EventKind.QUEUE_UPDATED]

    playback.clear()
    queued.clear()
    client.current_playback.return_value = snapshot(progress_ms=5000)
    await poller.poll()
    assert playback == [Event(EventKind.PROGRESS, 5000)]
    assert queued == []
    assert poller.previous.progress_ms == 5000


@pytest.mark.asyncio
async def test_nothing_playing_clears_all():
    client = make_client(snapshot())
    poller = SnapshotPoller(client)
    playback, _ = record(poller)
    await poller.poll()

    playback.clear()
    client.current_playback.return_value = None
    await poller.poll()
    assert playback == [Event(EventKind.CLEAR_ALL)]
    assert poller.previous is None
    client.queue.assert_awaited_once()


@pytest.mark.asyncio
async def test_free_account_skips_queue():
    client = make_client(snapshot(), queue("A"), product="free")
    poller = SnapshotPoller(client)
    _, queued = record(poller)
    await poller.poll()
    await poller.poll()
    assert poller.queue_supported is False
    assert queued == []
    client.queue.assert_not_awaited()
    client.current_user.assert_awaited_once()


@pytest.mark.asyncio
async def test_empty_queue_clears():
    client = make_client(snapshot(), queue("A", "B"))
    poller = SnapshotPoller(client)
    _, queued = record(poller)
    await poller.poll()
    queued.clear()
    client.queue.return_value = None
    await poller.poll_queue()
    assert queued == [Event(EventKind.QUEUE_CLEARED)]
    assert poller.previous_queue == []


@pytest.mark.asyncio
async def test_failed_fetch_keeps_state_and_does_not_raise():
    client = make_client(snapshot(progress_ms=1))
    poller = SnapshotPoller(client)
    playback, _ = record(poller)
    await poller.poll(include_queue=False)
    before = poller.previous

    client.current_playback.side_effect = RuntimeError("502")
    playback.clear()
    await poller.poll(include_queue=False)
    assert playback == []
    assert poller.previous is before


@pytest.mark.asyncio
async def test_activate_polls_and_rearms():
    client = make_client(snapshot(track("Song", duration_ms=100_000), progress_ms=0))
    poller = SnapshotPoller(client, interval=30, lookahead=1)
    poller.activate()
    assert poller.state is PollerState.ACTIVE
    assert poller.timer.armed
    await drain(10)
    client.current_playback.assert_awaited()
    assert poller.timer.armed
    loop = asyncio.get_running_loop()
    assert 29 < poller.timer.due - loop.time() <= 30
    await poller.shutdown()


@pytest.mark.asyncio
async def test_deactivate_disarms_and_poll_does_not_rearm():
    client = make_client(snapshot())
    poller = SnapshotPoller(client)
    poller.activate()
    poller.deactivate()
    assert poller.state is PollerState.IDLE
    assert not poller.timer.armed

    await poller.poll()
    assert not poller.timer.armed


@pytest.mark.asyncio
async def test_in_flight_poll_finishes_after_deactivate():
    gate = asyncio.Event()
    snap = snapshot()

    async def slow_playback():
        await gate.wait()
        return snap

    client = make_client()
    client.current_playback.side_effect = slow_playback
    poller = SnapshotPoller(client)
    playback, _ = record(poller)
    poller.activate()
    await drain()
    poller.deactivate()
    gate.set()
    await drain(10)
    assert len(playback) == 9
    assert poller.previous is snap
    assert not poller.timer.armed


@pytest.mark.asyncio
async def test_concurrent_polls_are_serialized():
    gate = asyncio.Event()
    snaps = iter([snapshot(progress_ms=1), snapshot(progress_ms=2)])

    async def fetch():
        await gate.wait()
        return next(snaps)

    client = make_client()
    client.current_playback.side_effect = fetch
    poller = SnapshotPoller(client)
    playback, _ = record(poller)

    first = asyncio.create_task(poller.poll(include_queue=False))
    second = asyncio.create_task(poller.poll(include_queue=False))
    await drain()
    assert client.current_playback.await_count == 1
    gate.set()
    await asyncio.gather(first, second)
    assert len(playback) == 10
    assert playback[9:] == [Event(EventKind.PROGRESS, 2)]


@pytest.mark.asyncio
async def test_reset_and_replay():
    client = make_client(snapshot(), queue("A", "B"))
    poller = SnapshotPoller(client)
    _, queued = record(poller)
    await poller.poll()

    replay = poller.replay()
    assert len(replay) == 12
    assert replay[0].kind is EventKind.TITLE
    assert [e.kind for e in replay[9:]] == [
        EventKind.QUEUE_ITEM_INSERTED,
        EventKind.QUEUE_ITEM_INSERTED,
        EventKind.QUEUE_UPDATED,
    ]

    queued.clear()
    await poller.reset()
    assert poller.previous is None
    assert poller.previous_queue == []
    assert queued == [Event(EventKind.QUEUE_CLEARED)]
    assert poller.replay() == []


def enrichment_fakes(monkeypatch, blocked=()):
    """Replace the lookups; items named in *blocked* never answer."""
    calls = []
    never = asyncio.Event()

    async def lyrics(session, item):
        calls.append(("lyrics", item.id))
        if item.id in blocked:
            await never.wait()
        return [Event(EventKind.LYRICS_LINE, f"0|1|{item.id}")]

    async def canvas(session, item):
        calls.append(("canvas", item.id))
        if ("canvas", item.id) in blocked:
            await never.wait()
        return Event(EventKind.CANVAS, f"https://canvas/{item.id}.mp4")

    monkeypatch.setattr(extras, "fetch_lyrics", lyrics)
    monkeypatch.setattr(extras, "fetch_canvas", canvas)
    return calls


@pytest.mark.asyncio
async def test_title_change_broadcasts_enrichment(monkeypatch):
    calls = enrichment_fakes(monkeypatch)
    client = make_client(snapshot(track("A")))
    poller = SnapshotPoller(client, lyrics=True, canvas=True)
    playback, _ = record(poller)

    await poller.poll(include_queue=False)
    assert playback[9] == Event(EventKind.LYRICS_CLEARED)
    await drain()
    assert Event(EventKind.CANVAS, "https://canvas/a.mp4") in playback[10:]
    assert Event(EventKind.LYRICS_LINE, "0|1|a") in playback[10:]
    assert sorted(calls) == [("canvas", "a"), ("lyrics", "a")]


@pytest.mark.asyncio
async def test_progress_change_does_not_refetch(monkeypatch):
    calls = enrichment_fakes(monkeypatch)
    client = make_client(snapshot(track("A"), progress_ms=0))
    poller = SnapshotPoller(client, lyrics=True, canvas=True)
    playback, _ = record(poller)
    await poller.poll(include_queue=False)
    await drain()
    calls.clear()
    playback.clear()

    client.current_playback.return_value = snapshot(track("A"), progress_ms=5000)
    await poller.poll(include_queue=False)
    await drain()
    assert calls == []
    assert playback == [Event(EventKind.PROGRESS, 5000)]


@pytest.mark.asyncio
async def test_disabled_enrichment_sends_nothing_extra(monkeypatch):
    calls = enrichment_fakes(monkeypatch)
    poller = SnapshotPoller(make_client(snapshot()))
    playback, _ = record(poller)
    await poller.poll(include_queue=False)
    await drain()
    assert calls == []
    assert len(playback) == 9


@pytest.mark.asyncio
async def test_stale_lyrics_are_not_sent_after_track_change(monkeypatch):
    enrichment_fakes(monkeypatch, blocked=("a",))
    client = make_client(snapshot(track("A")))
    poller = SnapshotPoller(client, lyrics=True)
    playback, _ = record(poller)
    await poller.poll(include_queue=False)
    await drain()

    client.current_playback.return_value = snapshot(track("B"))
    await poller.poll(include_queue=False)
    await drain()
    lines = [e.value for e in playback if e.kind is EventKind.LYRICS_LINE]
    assert lines == ["0|1|b"]
    cleared = [i for i, e in enumerate(playback) if e.kind is EventKind.LYRICS_CLEARED]
    assert len(cleared) == 2


@pytest.mark.asyncio
async def test_lyrics_do_not_wait_for_canvas(monkeypatch):
    enrichment_fakes(monkeypatch, blocked=(("canvas", "a"),))
    client = make_client(snapshot(track("A")))
    poller = SnapshotPoller(client, lyrics=True, canvas=True)
    playback, _ = record(poller)

    await poller.poll(include_queue=False)
    assert Event(EventKind.LYRICS_CLEARED) in playback
    await drain()
    assert Event(EventKind.LYRICS_LINE, "0|1|a") in playback
    assert not any(e.kind is EventKind.CANVAS for e in playback)
    await poller.shutdown()


@pytest.mark.asyncio
async def test_late_result_for_previous_item_is_dropped(monkeypatch):
    enrichment_fakes(monkeypatch)
    poller = SnapshotPoller(make_client(), lyrics=True)
    playback, _ = record(poller)
    poller.previous = snapshot(track("B"))
    poller._emit_for(track("A"), [Event(EventKind.LYRICS_LINE, "0|1|a")])
    assert playback == []
