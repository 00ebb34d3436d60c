"""Command line entry point: burn a vector file into a copy of a raster.

    geoburn boundary.geojson input.tif output.tif --burn-value 9 --set-zero
"""
import argparse
import logging
import sys

from geoburn.config import INTERSECTION_MODES, LOGGING, OUTPUT, PROGRESS, RASTERIZE
from geoburn.engine import rasterize_grid
from geoburn.errors import GeoburnError
from geoburn.io import read_geometry, read_grid, write_grid
from geoburn.partition import default_worker_count
from geoburn.progress import ProgressTracker
from geoburn.utils import check_burn_value, configure_logging, safe_log_exception

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='geoburn',
        description='Burn a value into every raster cell whose footprint intersects a vector geometry.')
    parser.add_argument('vector_path', help='vector file (GeoJSON or any OGR-readable format)')
    parser.add_argument('input_grid_path', help='raster whose band is copied and burned')
    parser.add_argument('output_grid_path', help='raster to create')
    parser.add_argument('--burn-value', '-v', type=int, default=RASTERIZE['burn_value'],
                        help='value written into intersecting cells (default: %(default)s)')
    parser.add_argument('--set-zero', '-z', action='store_true', default=RASTERIZE['set_zero'],
                        help='set every non-intersecting cell to 0')
    parser.add_argument('--workers', '-j', type=int, default=None,
                        help='worker threads (default: CPU count minus %d)' % RASTERIZE['reserved_threads'])
    parser.add_argument('--mode', choices=INTERSECTION_MODES, default=RASTERIZE['mode'],
                        help="'intersects' burns boundary-touching cells, 'interior' does not")
    parser.add_argument('--use-index', action='store_true', default=RASTERIZE['use_index'],
                        help='prefilter cells with an STRtree over the geometry parts')
    parser.add_argument('--band', type=int, default=OUTPUT['band'], help='input band (default: %(default)s)')
    parser.add_argument('--dtype', default=OUTPUT['dtype'], help='output data type (default: %(default)s)')
    parser.add_argument('--driver', default=OUTPUT['driver'], help='output GDAL driver (default: %(default)s)')
    parser.add_argument('--quiet', '-q', action='store_true', help='do not draw progress bars')
    parser.add_argument('--log-level', default=LOGGING['level'],
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], type=str.upper)
    parser.add_argument('--log-file', default=None, help='also write the log to this file')
    return parser


def run(args) -> None:
    """Read both inputs, burn, write. Raises `GeoburnError` on IO failures."""
    grid = read_grid(args.input_grid_path, band=args.band, dtype=args.dtype)
    geometry = read_geometry(args.vector_path, grid_crs=grid.crs)

    with ProgressTracker(enabled=PROGRESS['enabled'] and not args.quiet, file=sys.stderr) as progress:
        burned = rasterize_grid(
            grid, geometry,
            burn_value=args.burn_value,
            set_zero=args.set_zero,
            workers=args.workers,
            mode=args.mode,
            use_index=args.use_index,
            progress=progress,
        )

    write_grid(args.output_grid_path, grid, burned, driver=args.driver, dtype=args.dtype)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.workers is None:
        args.workers = default_worker_count()
    elif args.workers < 1:
        parser.error('--workers must be at least 1')
    try:
        check_burn_value(args.burn_value, args.dtype)
    except (TypeError, ValueError) as e:
        parser.error(str(e))

    configure_logging(args.log_level, args.log_file)
    try:
        run(args)
    except GeoburnError as e:
        safe_log_exception('geoburn run failed', e, output=args.output_grid_path)
        sys.stderr.write(f'Error ({e.stage}): {e.args[0]}\n')
        return 1
    logger.info('Done: %s', args.output_grid_path)
    return 0


if __name__ == '__main__':
    sys.exit(main())
