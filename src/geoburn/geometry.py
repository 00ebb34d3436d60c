"""
geometry.py

Cell geometry helpers: conversions from grid (row, col) indices to cell
centers, construction of the square footprint of a cell, and the
footprint/geometry intersection predicate.

Public functions:
- `cell_center(row, col, resolution, left, top)` -> (x, y)
- `row_centers(row, cols, resolution, left, top)` -> (xs, y)
- `cell_footprint(x, y, resolution)` -> Polygon
- `row_footprints(xs, y, resolution)` -> ndarray of Polygons
- `footprint_intersects(footprint, geometry, mode)` -> bool
- `footprints_intersect(footprints, geometry, mode, index)` -> bool ndarray
- `grid_origin(transform)` -> (left, top, resolution)

Cells are assumed square and north-up: the resolution is the x pixel size
and rows grow southward from the top-left origin.
"""
from typing import Optional, Tuple
import logging
import numpy as np
import shapely
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from geoburn.config import INTERSECTION_MODES

logger = logging.getLogger(__name__)


def cell_center(row: int, col: int, resolution: float, left: float, top: float) -> Tuple[float, float]:
    """Return the real-world center of cell (row, col)."""
    x = left + (resolution / 2.0) + (col * resolution)
    y = top - (resolution / 2.0) - (row * resolution)
    return x, y


def row_centers(row: int, cols: int, resolution: float, left: float, top: float) -> Tuple[np.ndarray, float]:
    """Vectorized `cell_center` for every column of one row.

    Returns the x coordinates as a float array and the shared y coordinate.
    """
    xs = left + (resolution / 2.0) + np.arange(cols, dtype=float) * resolution
    y = top - (resolution / 2.0) - (row * resolution)
    return xs, y


def cell_footprint(x: float, y: float, resolution: float) -> Polygon:
    """Build the closed square polygon covering the cell centered on (x, y).

    Vertex order is (left, bottom), (left, top), (right, top), (right, bottom)
    and back to (left, bottom).
    """
    half = resolution / 2.0
    return shapely.box(x - half, y - half, x + half, y + half, ccw=False)


def row_footprints(xs, y: float, resolution: float) -> np.ndarray:
    """Build the footprints of a row of cells in one vectorized call."""
    xs = np.asarray(xs, dtype=float)
    half = resolution / 2.0
    return shapely.box(xs - half, y - half, xs + half, y + half, ccw=False)


def grid_origin(transform) -> Tuple[float, float, float]:
    """Return (left, top, resolution) from an `affine.Affine` transform.

    Rotated transforms and non-square cells are outside what the engine
    models; they are logged and the x pixel size is used for both axes.
    """
    if transform.b != 0.0 or transform.d != 0.0:
        logger.warning('Transform has rotation terms (b=%s, d=%s); they are ignored', transform.b, transform.d)
    if not np.isclose(abs(transform.a), abs(transform.e)):
        logger.warning('Non-square cells (xres=%s, yres=%s); using xres for both axes', transform.a, transform.e)
    return float(transform.c), float(transform.f), float(transform.a)


def _check_mode(mode: str) -> None:
    if mode not in INTERSECTION_MODES:
        raise ValueError(f"Unknown intersection mode {mode!r}; expected one of {INTERSECTION_MODES}")


def footprint_intersects(footprint: BaseGeometry, geometry: BaseGeometry, mode: str = 'intersects') -> bool:
    """Test a single footprint against the target geometry.

    ``'intersects'`` is true when the two share any point, boundary included.
    ``'interior'`` additionally requires that they do not merely touch.
    """
    _check_mode(mode)
    if not footprint.intersects(geometry):
        return False
    if mode == 'interior':
        return not footprint.touches(geometry)
    return True


class GeometryIndex:
    """STRtree over the parts of a geometry, used as a bounding-box prefilter.

    `candidates(footprints)` returns the positions of the footprints whose
    envelope hits at least one part envelope. Footprints outside that set
    cannot intersect the geometry.
    """

    def __init__(self, geometry: BaseGeometry):
        parts = shapely.get_parts(geometry)
        self.parts = parts[~shapely.is_empty(parts)] if len(parts) else parts
        self.tree = STRtree(self.parts)

    def __len__(self):
        return len(self.parts)

    def candidates(self, footprints) -> np.ndarray:
        footprints = np.asarray(footprints)
        if len(self.parts) == 0 or footprints.size == 0:
            return np.array([], dtype=int)
        input_idx, _ = self.tree.query(footprints)
        return np.unique(input_idx)


def footprints_intersect(footprints, geometry: BaseGeometry, mode: str = 'intersects',
                         index: Optional[GeometryIndex] = None) -> np.ndarray:
    """Evaluate the footprint predicate for an array of footprints.

    Each footprint is tested on its own against ``geometry``. When ``index`` is
    given, only the footprints it reports as candidates are tested; the rest
    are known misses. Returns a boolean array aligned with ``footprints``.
    """
    _check_mode(mode)
    footprints = np.asarray(footprints)
    hits = np.zeros(footprints.shape, dtype=bool)
    if footprints.size == 0:
        return hits

    if index is not None:
        cand = index.candidates(footprints)
        if cand.size == 0:
            return hits
        hits[cand] = _predicate(footprints[cand], geometry, mode)
        return hits

    hits[:] = _predicate(footprints, geometry, mode)
    return hits


def _predicate(footprints: np.ndarray, geometry: BaseGeometry, mode: str) -> np.ndarray:
    inter = shapely.intersects(footprints, geometry)
    if mode == 'interior':
        inter &= ~shapely.touches(footprints, geometry)
    return np.asarray(inter, dtype=bool)
