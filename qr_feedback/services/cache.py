"""Short-lived read cache for QR codes.

Holds per-id entries plus one snapshot of the full listing. Copies go in and
come out, so callers can never mutate a cached record in place.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from qr_feedback.domain.models import QRCodeRecord

DEFAULT_TTL_SECONDS = 180.0

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    fetched_at: float


class QRCodeCache:
    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry[QRCodeRecord]] = {}
        self._snapshot: Optional[_Entry[List[QRCodeRecord]]] = None

    def _fresh(self, entry: _Entry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl_seconds

    def get(self, id: str) -> Optional[QRCodeRecord]:
        entry = self._entries.get(id)
        if entry is None:
            return None
        if not self._fresh(entry):
            del self._entries[id]
            return None
        return entry.value.model_copy(deep=True)

    def put(self, record: QRCodeRecord) -> None:
        self._entries[record.id] = _Entry(record.model_copy(deep=True), self._clock())

    def get_all(self) -> Optional[List[QRCodeRecord]]:
        if self._snapshot is None:
            return None
        if not self._fresh(self._snapshot):
            self._snapshot = None
            return None
        return [r.model_copy(deep=True) for r in self._snapshot.value]

    def put_all(self, records: List[QRCodeRecord]) -> None:
        self._snapshot = _Entry([r.model_copy(deep=True) for r in records], self._clock())

    def invalidate(self, id: str) -> None:
        """Drop one entry; the listing snapshot goes too since it may contain it."""
        self._entries.pop(id, None)
        self._snapshot = None

    def clear(self) -> None:
        self._entries.clear()
        self._snapshot = None

    def __len__(self) -> int:
        return len(self._entries)
