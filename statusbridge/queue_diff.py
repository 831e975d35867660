"""
Positional queue diff that tolerates the same item being queued more than once.

Entries are grouped by identity.  Within a group, the old positions (ascending)
are paired with the new positions (ascending) one by one:

  old 0, new 2  →  shift 0→2
  old 3, new 3  →  nothing
  old 5, —      →  removed 5        (fewer occurrences than before)
  —,     new 7  →  inserted at 7    (more occurrences, or a new identity)

Pairing in ascending order keeps duplicates that merely swapped places from
producing shifts.  Any shift/removal/insert is followed by a single
queue-updated marker.
"""

from collections import defaultdict, deque

from .events import Event, EventKind
from .models import QueueEntry


def _group(entries) -> dict:
    groups: dict = defaultdict(list)
    for entry in entries:
        groups[entry.identity].append(entry)
    for group in groups.values():
        group.sort(key=lambda e: e.position)
    return groups


def diff(previous: list[QueueEntry], current: list[QueueEntry]) -> list[Event]:
    if not current:
        return [Event(EventKind.QUEUE_CLEARED)]

    old_groups = _group(previous)
    new_groups = {identity: deque(group) for identity, group in _group(current).items()}

    events = []
    for identity, old_entries in old_groups.items():
        available = new_groups.get(identity) or deque()
        for old in old_entries:
            if available:
                new = available.popleft()
                if new.position != old.position:
                    events.append(Event(EventKind.QUEUE_ITEM_SHIFTED,
                                        (old.position, new.position)))
            else:
                events.append(Event(EventKind.QUEUE_ITEM_REMOVED, old.position))

    inserted = sorted(
        (entry for remaining in new_groups.values() for entry in remaining),
        key=lambda e: e.position)
    events.extend(Event(EventKind.QUEUE_ITEM_INSERTED, entry) for entry in inserted)

    if events:
        events.append(Event(EventKind.QUEUE_UPDATED))
    return events
