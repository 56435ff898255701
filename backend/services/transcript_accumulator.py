# services/transcript_accumulator.py
"""
Append-only log of finalized utterances for one call session.
"""
import threading
from typing import List, Tuple

from models.session import TranscriptEntry


class TranscriptAccumulator:
    """Ordered (role, text) log; entries are kept in arrival order, duplicates included."""

    def __init__(self):
        self._entries: List[TranscriptEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: TranscriptEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> Tuple[TranscriptEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        return len(self) == 0
