"""In-memory ledger backend used for tests and local development."""
from bisect import bisect_left, insort
from typing import Iterator, Optional

from docledger.ledger.base import KV, KeyModification, LedgerBackend, Timestamp


class MemoryBackend(LedgerBackend):
    """Ledger state held in process memory, with per-key history."""

    def __init__(self):
        self._state: dict[str, bytes] = {}
        self._keys: list[str] = []
        self._history: dict[str, list[KeyModification]] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._state.get(key)

    def scan(self, start_key: str, end_key: str) -> Iterator[KV]:
        # Snapshot the matching keys so commits during iteration do not shift it
        index = bisect_left(self._keys, start_key)
        keys = []
        for key in self._keys[index:]:
            if end_key and key >= end_key:
                break
            keys.append(key)
        for key in keys:
            if key in self._state:
                yield KV(key, self._state[key])

    def history(self, key: str) -> Iterator[KeyModification]:
        yield from list(self._history.get(key, []))

    def apply(
        self,
        tx_id: str,
        timestamp: Timestamp,
        writes: dict[str, Optional[bytes]],
    ) -> None:
        for key, value in writes.items():
            if value is None:
                if key in self._state:
                    del self._state[key]
                    self._keys.remove(key)
                modification = KeyModification(tx_id, b"", timestamp, True)
            else:
                if key not in self._state:
                    insort(self._keys, key)
                self._state[key] = value
                modification = KeyModification(tx_id, value, timestamp, False)
            self._history.setdefault(key, []).append(modification)
