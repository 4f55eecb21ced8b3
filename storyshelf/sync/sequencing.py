"""
Per-key monotonic sequence numbers.

Every local mutation takes the next number for its key and marks the key
in flight until its remote write settles. A late result is applied only
if its number is still the latest for the key; a reconciling fetch
leaves alone any key that was mutated after the fetch began or still has
a write in flight.
"""

from collections import defaultdict
from typing import Dict, Hashable, Mapping


class SequenceTracker:
    def __init__(self) -> None:
        self._latest: Dict[Hashable, int] = defaultdict(int)
        self._in_flight: Dict[Hashable, int] = defaultdict(int)

    def begin(self, key: Hashable) -> int:
        self._latest[key] += 1
        self._in_flight[key] += 1
        return self._latest[key]

    def finish(self, key: Hashable) -> None:
        self._in_flight[key] -= 1
        if self._in_flight[key] <= 0:
            del self._in_flight[key]

    def in_flight(self, key: Hashable) -> int:
        return self._in_flight.get(key, 0)

    def is_latest(self, key: Hashable, seq: int) -> bool:
        return self._latest.get(key, 0) == seq

    def snapshot(self) -> Dict[Hashable, int]:
        return dict(self._latest)

    def locally_owned(self, key: Hashable, since: Mapping[Hashable, int]) -> bool:
        """True when local state for key must win over a fetch started at `since`."""
        if self._in_flight.get(key, 0) > 0:
            return True
        return self._latest.get(key, 0) != since.get(key, 0)

    def clear(self) -> None:
        self._latest.clear()
        self._in_flight.clear()
