"""Grid and vector IO adapters for geoburn.

Decoding a raster into a flat row-major buffer plus its georeferencing,
decoding a vector document into one shapely geometry, and encoding the
burned buffer back into a raster with the original georeferencing. Library
failures are re-raised as `geoburn.errors` types naming the failing stage.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple
import logging
import os

import numpy as np
import geopandas as gpd
from fiona.errors import DriverError, FionaError
import rasterio
from rasterio.errors import RasterioError, RasterioIOError
from affine import Affine
from pyproj import CRS
from pyproj.exceptions import CRSError
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from geoburn.config import OUTPUT
from geoburn.errors import DecodeError, InputAccessError, OutputError, WriteError

logger = logging.getLogger(__name__)


@dataclass
class GridData:
    """A decoded single-band grid.

    Attributes:
        values (np.ndarray): flat row-major buffer of ``rows * cols`` cells.
        rows (int): number of rows (raster height).
        cols (int): number of columns (raster width).
        transform (Affine): georeferencing of the top-left corner.
        crs: projection as reported by the reader, passed through unmodified.
        nodata: nodata value of the source band, if any.
    """
    values: np.ndarray
    rows: int
    cols: int
    transform: Affine
    crs: Any = None
    nodata: Optional[float] = None

    def __post_init__(self):
        self.values = np.asarray(self.values).reshape(-1)
        if self.rows < 0 or self.cols < 0:
            raise ValueError(f'grid dimensions must be non-negative, got {self.rows}x{self.cols}')
        if self.values.size != self.rows * self.cols:
            raise ValueError(
                f'buffer length {self.values.size} does not match {self.rows} rows x {self.cols} cols')

    @property
    def origin(self) -> Tuple[float, float]:
        return float(self.transform.c), float(self.transform.f)

    @property
    def resolution(self) -> Tuple[float, float]:
        return float(self.transform.a), float(self.transform.e)

    @property
    def geo_transform(self) -> Tuple[float, float, float, float]:
        """``(origin_x, x_resolution, origin_y, y_resolution)``."""
        return float(self.transform.c), float(self.transform.a), float(self.transform.f), float(self.transform.e)

    def as_array(self) -> np.ndarray:
        return self.values.reshape((self.rows, self.cols))


def read_grid(path, band: int = OUTPUT['band'], dtype: Optional[str] = OUTPUT['dtype']) -> GridData:
    """Read one band of a raster into a `GridData`.

    ``dtype`` is the buffer type (default matches the output type); pass None
    to keep the band's native type. The conversion is done by GDAL while
    reading, so out-of-range values saturate to the type's limits and floats
    are rounded to the nearest integer (NaN reads as 0).
    """
    path = str(path)
    if not os.path.exists(path):
        raise InputAccessError(f'raster not found: {path}', stage='read raster')
    try:
        src = rasterio.open(path)
    except RasterioIOError as e:
        raise InputAccessError(f'could not open raster {path}: {e}', stage='read raster') from e

    with src:
        if band < 1 or band > src.count:
            raise DecodeError(f'{path} has {src.count} band(s); band {band} requested', stage='read raster')
        try:
            arr = src.read(band, out_dtype=dtype)
        except RasterioError as e:
            raise DecodeError(f'could not read band {band} of {path}: {e}', stage='read raster') from e
        rows, cols = src.height, src.width
        transform = src.transform
        crs = src.crs
        nodata = src.nodatavals[band - 1]

    logger.info('Read raster %s: %d rows x %d cols, dtype %s, crs %s', path, rows, cols, arr.dtype, crs)
    return GridData(values=arr.reshape(-1), rows=rows, cols=cols, transform=transform, crs=crs, nodata=nodata)


def _merge_geometries(geoms) -> BaseGeometry:
    geoms = [g for g in geoms if g is not None and not g.is_empty]
    if not geoms:
        logger.warning('Vector input contains no geometry; nothing will be burned')
        return GeometryCollection()
    if len(geoms) == 1:
        return geoms[0]
    try:
        return unary_union(geoms)
    except GEOSException as e:
        # invalid input (e.g. self-intersecting rings) is not repaired
        raise DecodeError(f'could not merge {len(geoms)} geometries: {e}', stage='read vector') from e


def geometry_from_geojson(obj: Mapping) -> BaseGeometry:
    """Convert an in-memory GeoJSON geometry, Feature or FeatureCollection."""
    try:
        kind = obj.get('type')
        if kind == 'FeatureCollection':
            return _merge_geometries(
                shape(f['geometry']) for f in obj.get('features', []) if f.get('geometry'))
        if kind == 'Feature':
            geom = obj.get('geometry')
            return _merge_geometries([shape(geom)] if geom else [])
        return shape(obj)
    except (AttributeError, KeyError, TypeError, ValueError, GEOSException) as e:
        raise DecodeError(f'invalid GeoJSON: {e}', stage='read vector') from e


def crs_matches(a, b) -> bool:
    """True when two CRS descriptions are equivalent, or either is unknown."""
    if a is None or b is None:
        return True
    try:
        return CRS.from_user_input(a) == CRS.from_user_input(b)
    except CRSError:
        return False


def read_geometry(path, grid_crs=None) -> BaseGeometry:
    """Read every feature of a vector document and return one geometry.

    No reprojection is done: when ``grid_crs`` is given and differs from the
    document's CRS a warning is logged and the coordinates are used as-is.
    """
    path = str(path)
    if not os.path.exists(path):
        raise InputAccessError(f'vector file not found: {path}', stage='read vector')
    try:
        gdf = gpd.read_file(path, engine='fiona')
    except (DriverError, FionaError, ValueError) as e:
        raise DecodeError(f'could not decode vector file {path}: {e}', stage='read vector') from e

    if not crs_matches(gdf.crs, grid_crs):
        logger.warning('Vector CRS %s differs from grid CRS %s; coordinates are not reprojected', gdf.crs, grid_crs)
    geom = _merge_geometries(gdf.geometry)
    logger.info('Read vector %s: %d feature(s), %s', path, len(gdf), geom.geom_type)
    return geom


def write_grid(path, grid: GridData, values: Optional[np.ndarray] = None,
               driver: str = OUTPUT['driver'], dtype: str = OUTPUT['dtype']) -> str:
    """Write ``values`` (default ``grid.values``) as a single-band raster.

    The output has the same dimensions, transform and CRS as ``grid``.
    """
    path = str(path)
    data = grid.values if values is None else np.asarray(values).reshape(-1)
    if data.size != grid.rows * grid.cols:
        raise ValueError(f'buffer length {data.size} does not match {grid.rows} rows x {grid.cols} cols')

    try:
        out_dtype = np.dtype(dtype)
        dst = rasterio.open(path, 'w', driver=driver, height=grid.rows, width=grid.cols,
                            count=1, dtype=out_dtype.name)
    except (RasterioError, TypeError, ValueError) as e:
        raise OutputError(f'could not create {path} as {driver}/{dtype}: {e}', stage='create output') from e

    with dst:
        try:
            if grid.crs is not None:
                dst.crs = grid.crs
            dst.transform = grid.transform
        except (RasterioError, ValueError, TypeError) as e:
            raise OutputError(f'could not set georeferencing on {path}: {e}', stage='set metadata') from e
        try:
            dst.write(data.reshape((grid.rows, grid.cols)).astype(out_dtype, copy=False), 1)
        except (RasterioError, ValueError) as e:
            raise WriteError(f'could not write band 1 of {path}: {e}', stage='write band') from e

    logger.info('Wrote raster %s (%s, %s)', path, driver, out_dtype.name)
    return path
