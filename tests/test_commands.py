import pytest

from statusbridge.commands import (
    CommandCode,
    SearchRequest,
    parse_message,
    parse_queue_uri,
    parse_search,
)
from statusbridge.models import RepeatMode


@pytest.mark.parametrize("text,code,data", [
    ("0", CommandCode.TOGGLE_PLAYBACK, ""),
    ("1|", CommandCode.PREVIOUS, ""),
    ("2", CommandCode.NEXT, ""),
    ("3", CommandCode.REFRESH, ""),
    ("5|", CommandCode.TOGGLE_SHUFFLE, ""),
    ("7|spotify:track:abc", CommandCode.QUEUE_ITEM, "spotify:track:abc"),
])
def test_simple_commands(text, code, data):
    command = parse_message(text)
    assert command.code is code
    assert command.data == data


def test_seek_position():
    command = parse_message("6|90500")
    assert command.code is CommandCode.SEEK
    assert command.argument == 90500


def test_seek_without_divider():
    assert parse_message("61500").argument == 1500


@pytest.mark.parametrize("text", ["6|", "6|abc", "6|1.5"])
def test_seek_needs_integer(text):
    assert parse_message(text) is None


def test_repeat_cycle_and_override():
    assert parse_message("4").argument is None
    assert parse_message("4|0").argument is RepeatMode.TRACK
    assert parse_message("4|2").argument is RepeatMode.OFF


@pytest.mark.parametrize("text", ["4|7", "4|loop"])
def test_repeat_override_invalid(text):
    assert parse_message(text) is None


@pytest.mark.parametrize("text", ["", "x", "play", "|5", "9", "42|x", "-1|"])
def test_garbage_is_dropped(text):
    assert parse_message(text) is None


def test_query_and_queue_flags():
    assert parse_message("8|5|track|0|hello").is_query
    assert not parse_message("0").is_query
    assert parse_message("2").may_alter_queue
    assert not parse_message("6|10").may_alter_queue


@pytest.mark.parametrize("text,expected", [
    ("spotify:track:4uLU6hMCjMI75M1A2tKUQC", "spotify:track:4uLU6hMCjMI75M1A2tKUQC"),
    ("spotify:episode:512ojhOuo1ktJprKbVcKyQ", "spotify:episode:512ojhOuo1ktJprKbVcKyQ"),
    ("https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC",
     "spotify:track:4uLU6hMCjMI75M1A2tKUQC"),
    ("https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC?si=123abc",
     "spotify:track:4uLU6hMCjMI75M1A2tKUQC"),
    ("http://open.spotify.com/intl-de/episode/512ojhOuo1ktJprKbVcKyQ",
     "spotify:episode:512ojhOuo1ktJprKbVcKyQ"),
    ("  spotify:track:abc123  ", "spotify:track:abc123"),
])
def test_queue_uri_accepted(text, expected):
    assert parse_queue_uri(text) == expected


@pytest.mark.parametrize("text", [
    "spotify:album:4uLU6hMCjMI75M1A2tKUQC",
    "spotify:track:",
    "spotify:track:abc:def",
    "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M",
    "https://example.com/track/abc",
    "https://open.spotify.com/track/ab-cd",
    "https://open.spotify.com/track",
    "just some words",
])
def test_queue_uri_rejected(text):
    assert parse_queue_uri(text) is None


def test_search_arguments():
    request = parse_search("10|track,album|20|daft punk | live")
    assert request == SearchRequest(10, ("track", "album"), 20, "daft punk | live")


@pytest.mark.parametrize("data", [
    "10|track|0",
    "ten|track|0|x",
    "10|track|zero|x",
    "10|video|0|x",
    "10||0|x",
    "10|track|0|   ",
])
def test_search_arguments_invalid(data):
    assert parse_search(data) is None
    assert parse_message(f"8|{data}") is None
