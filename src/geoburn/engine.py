"""
engine.py

Threaded rasterization engine. The grid's rows are split into contiguous
bands (`geoburn.partition.split_rows`), every band is burned by its own
worker thread on a private copy of its slice of the buffer, and the
per-band results are concatenated back in row order.

Public functions:
- `burn_band(...)` : the worker, burns one band
- `assemble_bands(results, rows, cols, dtype)` : ordered reassembly
- `burn_geometry(values, rows, cols, transform, geometry, ...)` : full run
- `rasterize_grid(grid, geometry, ...)` : full run on a `GridData`

The geometry is shared read-only by all workers and the progress tracker is
the only object they mutate concurrently. Worker exceptions are not caught
here; the first one propagates out of `burn_geometry` and fails the run.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional, Tuple
import logging

import numpy as np
from shapely.geometry.base import BaseGeometry

from geoburn.config import INTERSECTION_MODES, PROGRESS, RASTERIZE
from geoburn.geometry import GeometryIndex, footprints_intersect, grid_origin, row_centers, row_footprints
from geoburn.partition import RowBand, default_worker_count, split_rows
from geoburn.progress import ProgressTracker
from geoburn.utils import check_burn_value

logger = logging.getLogger(__name__)


def burn_band(band: RowBand, values: np.ndarray, geometry: BaseGeometry, cols: int,
              origin: Tuple[float, float, float], burn_value: int = RASTERIZE['burn_value'],
              set_zero: bool = RASTERIZE['set_zero'], progress: Optional[ProgressTracker] = None,
              bar: Optional[int] = None, mode: str = RASTERIZE['mode'],
              index: Optional[GeometryIndex] = None, interval: int = PROGRESS['interval']) -> np.ndarray:
    """Burn ``geometry`` into one row band and return the new band slice.

    Parameters:
    - band: rows handled by this worker.
    - values: the band's slice of the flat buffer (``band.size(cols)`` cells).
      It is copied; the caller's buffer is left untouched.
    - origin: ``(left, top, resolution)`` of the full grid.
    - progress, bar: tracker and bar id receiving cumulative cell counts
      every ``interval`` cells and once at the end of the band.

    Cells whose footprint intersects the geometry get ``burn_value``; the
    others become 0 when ``set_zero`` is set and keep their value otherwise.
    """
    out, _ = _burn_rows(band, values, geometry, cols, origin, burn_value, set_zero,
                        progress, bar, mode, index, interval)
    return out


def _burn_rows(band, values, geometry, cols, origin, burn_value, set_zero, progress, bar, mode, index,
               interval) -> Tuple[np.ndarray, int]:
    """`burn_band` body; also returns the number of footprints that were hit."""
    out = np.array(values, copy=True).reshape(-1)
    if out.size != band.size(cols):
        raise ValueError(f'band {band.start}:{band.end} expects {band.size(cols)} cells, got {out.size}')
    if interval <= 0:
        raise ValueError(f'progress interval must be positive, got {interval}')

    left, top, resolution = origin
    processed = 0
    burned = 0
    for i, row in enumerate(range(band.start, band.end)):
        xs, y = row_centers(row, cols, resolution, left, top)
        hits = footprints_intersect(row_footprints(xs, y, resolution), geometry, mode=mode, index=index)
        cells = out[i * cols:(i + 1) * cols]
        cells[hits] = burn_value
        if set_zero:
            cells[~hits] = 0
        burned += int(np.count_nonzero(hits))

        before = processed
        processed += cols
        if progress is not None and bar is not None and processed // interval > before // interval:
            progress.set_and_draw(bar, processed)

    if progress is not None and bar is not None:
        progress.set_and_draw(bar, processed)
    logger.debug('Band %d:%d done, %d of %d cells burned', band.start, band.end, burned, processed)
    return out, burned


def assemble_bands(results: Iterable[Tuple[RowBand, np.ndarray]], rows: int, cols: int, dtype=None) -> np.ndarray:
    """Concatenate ``(band, values)`` pairs in ascending row order.

    The input order is irrelevant. Bands must tile ``[0, rows)`` exactly.
    """
    ordered = sorted(results, key=lambda item: item[0].start)
    expected = 0
    for band, arr in ordered:
        if band.start != expected:
            raise ValueError(f'bands do not tile the grid: expected start {expected}, got {band.start}')
        if np.asarray(arr).size != band.size(cols):
            raise ValueError(f'band {band.start}:{band.end} holds {np.asarray(arr).size} cells, '
                             f'expected {band.size(cols)}')
        expected = band.end
    if expected != rows:
        raise ValueError(f'bands cover rows [0, {expected}) but the grid has {rows} rows')

    if not ordered:
        return np.zeros(0, dtype=dtype if dtype is not None else float)
    out = np.concatenate([np.asarray(arr).reshape(-1) for _, arr in ordered])
    if dtype is not None:
        out = out.astype(dtype, copy=False)
    return out


def burn_geometry(values: np.ndarray, rows: int, cols: int, transform, geometry: BaseGeometry,
                  burn_value: int = RASTERIZE['burn_value'], set_zero: bool = RASTERIZE['set_zero'],
                  workers: Optional[int] = None, mode: str = RASTERIZE['mode'],
                  use_index: bool = RASTERIZE['use_index'], progress: Optional[ProgressTracker] = None,
                  interval: int = PROGRESS['interval']) -> np.ndarray:
    """Burn ``geometry`` into a flat row-major buffer using a pool of threads.

    ``transform`` is the grid's `affine.Affine`; ``workers`` defaults to
    `default_worker_count()`. When ``progress`` is None a silent tracker is
    used. Returns a new buffer of the same length and dtype as ``values``.
    The output does not depend on the number of workers.
    """
    values = np.asarray(values).reshape(-1)
    if values.size != rows * cols:
        raise ValueError(f'buffer length {values.size} does not match {rows} rows x {cols} cols')
    burn_value = check_burn_value(burn_value, values.dtype)
    if mode not in INTERSECTION_MODES:
        raise ValueError(f'Unknown intersection mode {mode!r}; expected one of {INTERSECTION_MODES}')
    if workers is None:
        workers = default_worker_count()

    bands = split_rows(rows, workers)
    if not bands:
        return values.copy()

    origin = grid_origin(transform)
    index = GeometryIndex(geometry) if use_index else None
    logger.info('Burning %d rows x %d cols in %d band(s) on %d worker(s), mode=%s, index=%s',
                rows, cols, len(bands), workers, mode, 'on' if index is not None else 'off')

    own_progress = progress is None
    if own_progress:
        progress = ProgressTracker(enabled=False)

    results: List[Tuple[RowBand, np.ndarray]] = []
    burned = 0
    try:
        bars = [progress.add_bar(band.size(cols), PROGRESS['label'].format(n=n))
                for n, band in enumerate(bands, start=1)]
        with ThreadPoolExecutor(max_workers=len(bands), thread_name_prefix='geoburn') as executor:
            futures = {
                executor.submit(
                    _burn_rows, band, values[band.slice(cols)], geometry, cols, origin,
                    burn_value, set_zero, progress, bar, mode, index, interval,
                ): band
                for band, bar in zip(bands, bars)
            }
            for future in as_completed(futures):
                band_values, band_burned = future.result()
                results.append((futures[future], band_values))
                burned += band_burned
    finally:
        if own_progress:
            progress.close()

    out = assemble_bands(results, rows, cols, dtype=values.dtype)
    logger.info('%d of %d cells burned with value %d', burned, out.size, burn_value)
    return out


def rasterize_grid(grid, geometry: BaseGeometry, **kwargs) -> np.ndarray:
    """Run `burn_geometry` on a `geoburn.io.GridData`."""
    return burn_geometry(grid.values, grid.rows, grid.cols, grid.transform, geometry, **kwargs)
