import random

import numpy as np
import pytest
from affine import Affine
from shapely.geometry import GeometryCollection, LineString, Polygon, box

from geoburn.engine import assemble_bands, burn_band, burn_geometry, rasterize_grid
from geoburn.geometry import footprint_intersects, cell_center, cell_footprint
from geoburn.io import GridData
from geoburn.partition import RowBand, split_rows
from geoburn.progress import ProgressTracker

UNIT = Affine(1.0, 0.0, 0.0, 0.0, -1.0, 0.0)


def grid_4x4(fill=5):
    return np.full(16, fill, dtype=np.uint32)


def test_burn_inset_block_default_mode():
    # square strictly inside the top-left 2x2 block
    geom = box(0.25, -1.75, 1.75, -0.25)
    out = burn_geometry(grid_4x4(), 4, 4, UNIT, geom, burn_value=9, set_zero=False, workers=2)
    expected = np.full((4, 4), 5, dtype=np.uint32)
    expected[:2, :2] = 9
    assert np.array_equal(out.reshape(4, 4), expected)
    assert out.dtype == np.uint32


def test_burn_exact_block_interior_mode():
    geom = box(0.0, -2.0, 2.0, 0.0)
    out = burn_geometry(grid_4x4(), 4, 4, UNIT, geom, burn_value=9, workers=3, mode='interior')
    expected = np.full((4, 4), 5, dtype=np.uint32)
    expected[:2, :2] = 9
    assert np.array_equal(out.reshape(4, 4), expected)


def test_burn_exact_block_default_mode_includes_touching_cells():
    geom = box(0.0, -2.0, 2.0, 0.0)
    out = burn_geometry(grid_4x4(), 4, 4, UNIT, geom, burn_value=9, workers=3).reshape(4, 4)
    # cells sharing the block's right/bottom edge or corner touch the square
    assert (out[:3, :3] == 9).all()
    assert (out[3, :] == 5).all()
    assert (out[:, 3] == 5).all()


def test_burn_with_set_zero():
    geom = box(0.25, -1.75, 1.75, -0.25)
    out = burn_geometry(grid_4x4(), 4, 4, UNIT, geom, burn_value=9, set_zero=True, workers=4)
    expected = np.zeros((4, 4), dtype=np.uint32)
    expected[:2, :2] = 9
    assert np.array_equal(out.reshape(4, 4), expected)


def test_empty_geometry_with_set_zero_clears_grid():
    values = np.arange(1, 31, dtype=np.uint32)
    out = burn_geometry(values, 5, 6, UNIT, GeometryCollection(), burn_value=9, set_zero=True, workers=2)
    assert out.shape == (30,)
    assert not out.any()


def test_empty_geometry_without_set_zero_keeps_values():
    values = np.arange(1, 31, dtype=np.uint32)
    out = burn_geometry(values, 5, 6, UNIT, GeometryCollection(), burn_value=9, workers=2)
    assert np.array_equal(out, values)


def test_input_buffer_is_not_modified():
    values = grid_4x4()
    before = values.copy()
    burn_geometry(values, 4, 4, UNIT, box(0, -4, 4, 0), burn_value=9, set_zero=True, workers=2)
    assert np.array_equal(values, before)


def test_burn_zero_policy_matches_per_cell_predicate():
    rows, cols = 7, 9
    transform = Affine(0.5, 0.0, 100.0, 0.0, -0.5, 200.0)
    geom = Polygon([(100.3, 199.9), (103.1, 198.2), (101.0, 196.6)])
    values = np.arange(rows * cols, dtype=np.int32) + 100
    for set_zero in (False, True):
        out = burn_geometry(values, rows, cols, transform, geom, burn_value=7, set_zero=set_zero, workers=3)
        for r in range(rows):
            for c in range(cols):
                x, y = cell_center(r, c, 0.5, 100.0, 200.0)
                hit = footprint_intersects(cell_footprint(x, y, 0.5), geom)
                cell = out[r * cols + c]
                if hit:
                    assert cell == 7
                elif set_zero:
                    assert cell == 0
                else:
                    assert cell == values[r * cols + c]


def test_worker_count_does_not_change_output():
    rows, cols = 23, 17
    geom = LineString([(0.2, -0.3), (16.5, -22.1)]).buffer(1.5)
    values = np.random.default_rng(42).integers(0, 50, rows * cols).astype(np.uint32)
    reference = burn_geometry(values, rows, cols, UNIT, geom, burn_value=255, workers=1)
    for workers in (2, 3, 5, 8, 23, 40):
        out = burn_geometry(values, rows, cols, UNIT, geom, burn_value=255, workers=workers)
        assert out.tobytes() == reference.tobytes()


def test_index_does_not_change_output():
    rows, cols = 12, 15
    geom = box(1.0, -5.0, 4.0, -2.0).union(box(9.5, -11.5, 13.2, -8.0))
    values = np.full(rows * cols, 3, dtype=np.uint32)
    for mode in ('intersects', 'interior'):
        plain = burn_geometry(values, rows, cols, UNIT, geom, burn_value=1, set_zero=True, workers=4, mode=mode)
        indexed = burn_geometry(values, rows, cols, UNIT, geom, burn_value=1, set_zero=True, workers=4,
                                mode=mode, use_index=True)
        assert plain.tobytes() == indexed.tobytes()


def test_burn_band_only_touches_its_rows():
    band = RowBand(2, 4)
    cols = 4
    values = grid_4x4()
    out = burn_band(band, values[band.slice(cols)], box(0, -4, 4, 0), cols, (0.0, 0.0, 1.0),
                    burn_value=9)
    assert out.shape == (8,)
    assert (out == 9).all()
    assert (values == 5).all()


def test_burn_band_rejects_wrong_slice_length():
    with pytest.raises(ValueError):
        burn_band(RowBand(0, 2), np.zeros(5), box(0, 0, 1, 1), 4, (0.0, 0.0, 1.0))


def test_burn_band_reports_progress():
    progress = ProgressTracker(enabled=False)
    band = RowBand(0, 10)
    bar = progress.add_bar(band.size(30), 'Thread 1')
    burn_band(band, np.zeros(300, dtype=np.uint8), box(0, -3, 3, 0), 30, (0.0, 0.0, 1.0),
              progress=progress, bar=bar, interval=100)
    assert progress.count(bar) == 300


def test_burn_geometry_fills_every_bar():
    progress = ProgressTracker(enabled=False)
    burn_geometry(np.zeros(12 * 5, dtype=np.uint32), 12, 5, UNIT, box(0, -2, 2, 0),
                  workers=5, progress=progress, interval=7)
    counts = progress.counts()
    assert len(counts) == 4   # ceil(12 / 5) = 3 -> bands of 3, 3, 3, 3
    assert all(v == 15 for v in counts.values())


def test_worker_failure_propagates():
    with pytest.raises(TypeError):
        burn_geometry(grid_4x4(), 4, 4, UNIT, 'not a geometry', workers=2)


def test_burn_geometry_rejects_bad_arguments():
    with pytest.raises(ValueError):
        burn_geometry(grid_4x4(), 4, 5, UNIT, box(0, 0, 1, 1))
    with pytest.raises(ValueError):
        burn_geometry(grid_4x4(), 4, 4, UNIT, box(0, 0, 1, 1), mode='within')
    with pytest.raises(ValueError):
        burn_geometry(np.zeros(16, dtype=np.uint8), 4, 4, UNIT, box(0, 0, 1, 1), burn_value=300)
    with pytest.raises(ValueError):
        burn_geometry(grid_4x4(), 4, 4, UNIT, box(0, 0, 1, 1), workers=0)


def test_burn_geometry_zero_rows():
    out = burn_geometry(np.zeros(0, dtype=np.uint32), 0, 4, UNIT, box(0, 0, 1, 1), workers=2)
    assert out.size == 0
    assert out.dtype == np.uint32


def test_assemble_bands_any_completion_order():
    rows, cols = 10, 3
    bands = split_rows(rows, 4)
    pieces = [(band, np.full(band.size(cols), band.start)) for band in bands]
    shuffled = pieces[:]
    random.Random(7).shuffle(shuffled)
    out = assemble_bands(shuffled, rows, cols)
    expected = np.concatenate([np.full(b.size(cols), b.start) for b in bands])
    assert np.array_equal(out, expected)


def test_assemble_bands_detects_gaps_and_bad_sizes():
    with pytest.raises(ValueError):
        assemble_bands([(RowBand(0, 2), np.zeros(6)), (RowBand(3, 4), np.zeros(3))], 4, 3)
    with pytest.raises(ValueError):
        assemble_bands([(RowBand(0, 2), np.zeros(5))], 2, 3)
    with pytest.raises(ValueError):
        assemble_bands([(RowBand(0, 2), np.zeros(6))], 3, 3)
    assert assemble_bands([], 0, 3).size == 0


def test_rasterize_grid_uses_grid_metadata():
    grid = GridData(values=grid_4x4(), rows=4, cols=4, transform=Affine(1.0, 0.0, 10.0, 0.0, -1.0, 10.0))
    out = rasterize_grid(grid, box(10.25, 9.25, 10.75, 9.75), burn_value=2, workers=2)
    assert out[0] == 2
    assert (out[1:] == 5).all()


@pytest.mark.slow
def test_large_grid_order_independence():
    rows, cols = 180, 140
    geom = Polygon([(3.0, -2.0), (120.0, -40.0), (60.0, -170.0), (10.0, -90.0)])
    values = np.random.default_rng(3).integers(0, 100, rows * cols).astype(np.uint32)
    reference = burn_geometry(values, rows, cols, UNIT, geom, burn_value=200, set_zero=True, workers=1)
    for workers in (4, 16, 64):
        out = burn_geometry(values, rows, cols, UNIT, geom, burn_value=200, set_zero=True, workers=workers,
                            use_index=workers == 16)
        assert out.tobytes() == reference.tobytes()


def test_burned_count_ignores_cells_already_holding_the_value(caplog):
    values = np.full(16, 9, dtype=np.uint32)
    with caplog.at_level('INFO', logger='geoburn.engine'):
        burn_geometry(values, 4, 4, UNIT, box(0.25, -0.75, 0.75, -0.25), burn_value=9, workers=2)
    assert '1 of 16 cells burned with value 9' in caplog.text
