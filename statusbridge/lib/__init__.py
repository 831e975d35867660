"""
Lib — plumbing with no Spotify or protocol knowledge.

  config.py     JSON config loader (cfg)
  timer.py      single-shot asyncio timer with explicit armed state
  listeners.py  ordered listener registry
"""
