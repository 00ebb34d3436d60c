# -*- coding: utf-8 -*-

"""
geoburn/config.py

This module centralizes the default parameters for the geoburn rasterization
engine. The engine functions, the IO adapters and the command line all read
their defaults from here so a run configured from Python and a run configured
from the shell behave the same way.

Contents:
---------
1. RASTERIZE:
   - Burn value written into intersecting cells and whether the remaining
     cells are zeroed.
   - Intersection mode. `'intersects'` is boundary inclusive (a footprint that
     only touches the geometry is burned). `'interior'` only burns footprints
     that share interior area/points with the geometry.
   - Number of CPU threads held back from the worker pool for the coordinating
     thread and progress rendering.
   - Whether to prefilter footprints with an STRtree over the geometry parts.
     Results are identical either way.

2. PROGRESS:
   - Number of processed cells between two progress reports from a worker.
   - Label template for the per-worker bars.

3. OUTPUT:
   - GDAL driver and numeric type of the written grid, and the band read from
     the input grid.

4. LOGGING:
   - Format string and default level used by the command line.

Usage:
------
    from geoburn.config import RASTERIZE, OUTPUT

    burn_geometry(grid, geom, burn_value=RASTERIZE['burn_value'])

"""

# ───────────────────────────────────────────────────────────────────────────────
# 1) RASTERIZATION DEFAULTS
# ───────────────────────────────────────────────────────────────────────────────
RASTERIZE = {
    'burn_value': 1,              # value written into intersecting cells
    'set_zero': False,            # zero every non-intersecting cell
    'mode': 'intersects',         # 'intersects' (inclusive) or 'interior'
    'reserved_threads': 2,        # cores kept free for coordinator + progress
    'use_index': False,           # STRtree bounding-box prefilter
}

INTERSECTION_MODES = ('intersects', 'interior')

# ───────────────────────────────────────────────────────────────────────────────
# 2) PROGRESS REPORTING
# ───────────────────────────────────────────────────────────────────────────────
PROGRESS = {
    'interval': 1000,             # cells between two reports
    'label': 'Thread {n}',        # bar label, n is 1-based
    'enabled': True,
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) OUTPUT GRID
# ───────────────────────────────────────────────────────────────────────────────
OUTPUT = {
    'driver': 'GTiff',
    'dtype': 'uint32',
    'band': 1,
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) LOGGING
# ───────────────────────────────────────────────────────────────────────────────
LOGGING = {
    'format': '%(asctime)s [%(levelname)s] %(message)s',
    'level': 'INFO',
}
