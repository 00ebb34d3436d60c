"""Thread-safe progress aggregation for rasterization workers.

A `ProgressTracker` is created once per run and handed to every worker. Each
worker registers one bar and reports its cumulative processed-cell count
every few thousand cells. A single lock guards the counters and the tqdm
bars; reports are infrequent so contention stays negligible.
"""
from typing import Dict, List, Optional
import logging
import threading

from tqdm import tqdm

from geoburn.config import PROGRESS

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Per-worker progress bars behind one mutual-exclusion boundary.

    Usage:
        with ProgressTracker() as progress:
            bar = progress.add_bar(total=cells, label='Thread 1')
            progress.set_and_draw(bar, 1000)

    With ``enabled=False`` counts are still tracked but nothing is drawn.
    """

    def __init__(self, enabled: bool = PROGRESS['enabled'], file=None):
        self.enabled = bool(enabled)
        self._file = file
        self._lock = threading.Lock()
        self._totals: List[int] = []
        self._counts: List[int] = []
        self._labels: List[str] = []
        self._bars: List[Optional[tqdm]] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def add_bar(self, total: int, label: str) -> int:
        """Register a new track of ``total`` units and return its id."""
        if total < 0:
            raise ValueError(f'progress total must be non-negative, got {total}')
        with self._lock:
            bar_id = len(self._totals)
            self._totals.append(int(total))
            self._counts.append(0)
            self._labels.append(label)
            bar = None
            if self.enabled:
                bar = tqdm(total=int(total), desc=label, position=bar_id, leave=True,
                           file=self._file, dynamic_ncols=True)
            self._bars.append(bar)
        return bar_id

    def advance(self, bar_id: int, delta: int) -> int:
        """Advance track ``bar_id`` by ``delta`` units, redraw, return the count."""
        if delta < 0:
            raise ValueError(f'progress cannot move backwards (delta={delta})')
        with self._lock:
            return self._set(bar_id, self._counts[bar_id] + int(delta))

    def set_and_draw(self, bar_id: int, value: int) -> int:
        """Set the cumulative count of ``bar_id`` and redraw.

        Counts only move forward; a value below the current count is ignored.
        """
        with self._lock:
            return self._set(bar_id, max(self._counts[bar_id], int(value)))

    def _set(self, bar_id: int, value: int) -> int:
        value = min(value, self._totals[bar_id])
        delta = value - self._counts[bar_id]
        self._counts[bar_id] = value
        bar = self._bars[bar_id]
        if bar is not None and delta:
            bar.update(delta)
        return value

    def count(self, bar_id: int) -> int:
        with self._lock:
            return self._counts[bar_id]

    def counts(self) -> Dict[str, int]:
        """Snapshot of the current counts keyed by bar label."""
        with self._lock:
            return dict(zip(self._labels, self._counts))

    def total(self, bar_id: int) -> int:
        return self._totals[bar_id]

    def close(self) -> None:
        with self._lock:
            for bar in self._bars:
                if bar is not None:
                    bar.close()
            self._bars = [None] * len(self._bars)
