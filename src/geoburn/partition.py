"""Split a grid's rows into contiguous bands, one per worker."""
from dataclasses import dataclass
from typing import List, Optional
import logging
import math
import os

from geoburn.config import RASTERIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowBand:
    """Half-open row range ``[start, end)`` of a row-major grid."""
    start: int
    end: int

    @property
    def height(self) -> int:
        return self.end - self.start

    def size(self, cols: int) -> int:
        return self.height * cols

    def slice(self, cols: int) -> slice:
        """Buffer positions covered by this band in a flat row-major buffer."""
        return slice(self.start * cols, self.end * cols)


def default_worker_count(reserved: int = RASTERIZE['reserved_threads'], cpu_count: Optional[int] = None) -> int:
    """Number of workers for this machine: CPUs minus ``reserved``, at least 1."""
    if cpu_count is None:
        cpu_count = os.cpu_count() or 1
    return max(1, int(cpu_count) - int(reserved))


def split_rows(rows: int, worker_count: int) -> List[RowBand]:
    """Partition ``[0, rows)`` into ordered, non-overlapping bands.

    With at least as many workers as rows every row gets its own band.
    Otherwise bands are ``ceil(rows / worker_count)`` rows high and the last
    one is clipped to ``rows``, giving at most ``worker_count`` bands.
    """
    if worker_count <= 0:
        raise ValueError(f'worker_count must be positive, got {worker_count}')
    if rows < 0:
        raise ValueError(f'rows must be non-negative, got {rows}')
    if rows == 0:
        return []

    if worker_count >= rows:
        return [RowBand(i, i + 1) for i in range(rows)]

    height = math.ceil(rows / worker_count)
    bands = [RowBand(start, min(start + height, rows)) for start in range(0, rows, height)]
    logger.debug('Split %d rows into %d bands of height %d', rows, len(bands), height)
    return bands
