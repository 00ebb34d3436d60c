"""geoburn: burn vector geometries into raster grids."""

__version__ = '0.1.0'
