"""Spotify playback state bridge for WebSocket subscribers."""

__version__ = "1.0.0"
