"""Ordered listener registry.

Listeners are plain callables taking one argument.  emit() calls them in
registration order; a listener that raises is logged and skipped so the rest
still hear the event.
"""

import logging

logger = logging.getLogger(__name__)


class ListenerRegistry:

    def __init__(self, name: str):
        self.name = name
        self._listeners: list = []

    def add(self, listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener):
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def __len__(self):
        return len(self._listeners)

    def __contains__(self, listener):
        return listener in self._listeners

    def emit(self, payload):
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("%s listener failed", self.name)
