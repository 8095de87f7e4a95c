"""In-memory store of named counters, kept in insertion order."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, replace


class ValidationError(Exception):
    """Raised when an entry cannot be created from the given input."""


class NotFound(Exception):
    """Raised when no entry has the requested id."""


@dataclass
class CounterEntry:
    id: int
    name: str
    count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class EntityStore:
    """Authoritative ordered list of counters.

    Clients render entries in the order they were added, so the store keeps a
    list rather than a mapping and looks entries up by id on demand.
    """

    def __init__(self):
        self._entries: list[CounterEntry] = []
        self._last_id = 0

    def _next_id(self) -> int:
        # Millisecond timestamp, bumped past the previous id when the clock stalls
        candidate = time.time_ns() // 1_000_000
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    def add(self, name: str) -> CounterEntry:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Entry name must not be empty")
        entry = CounterEntry(id=self._next_id(), name=name, count=0)
        self._entries.append(entry)
        return replace(entry)

    def get(self, entry_id: int) -> CounterEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise NotFound(f"No entry with id {entry_id}")

    def update_count(self, entry_id: int, increment: bool) -> CounterEntry:
        entry = self.get(entry_id)
        if increment:
            entry.count += 1
        else:
            entry.count = max(0, entry.count - 1)
        return replace(entry)

    def remove(self, entry_id: int) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.id != entry_id]
        return len(self._entries) != before

    def snapshot(self) -> list[CounterEntry]:
        return [replace(e) for e in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
