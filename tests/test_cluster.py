"""
Unit tests for the clustering loop building blocks.
"""

import numpy as np
import pytest

from palette_extract.cluster import (
    calc_bounds,
    find_nearest,
    init_palette,
    reallocate_palette,
    reorder_by_distance,
    reorder_by_qty,
    run_cluster_loop,
    split_palette,
)
from palette_extract.colour_convert import convert_buffer, rgb_to_lab
from palette_extract.core_types import Bound, ExtractOptions, PaletteEntry


def _entry(colour, qty=0, fixed=False):
    e = PaletteEntry(color=np.array(colour, dtype=np.float64), is_fixed=fixed)
    e.qty = qty
    return e


def _buffer(points, alpha=255):
    """Working buffer straight from working-space points (rgb colourspace)."""
    rows = np.array([list(p) + [alpha] for p in points], dtype=np.float64)
    return convert_buffer(rows, "rgb")


class TestFindNearest:
    def test_lowest_index_wins_ties(self):
        palette = [_entry((0, 0, 0)), _entry((2, 0, 0))]
        idx, dist = find_nearest(np.array([[1.0, 0.0, 0.0]]), palette)
        assert idx.tolist() == [0]
        assert dist.tolist() == [1.0]

    def test_identical_entries_pick_first(self):
        palette = [_entry((5, 5, 5)), _entry((5, 5, 5)), _entry((9, 9, 9))]
        idx, _ = find_nearest(np.array([[5.0, 5.0, 5.0], [9.0, 9.0, 8.0]]), palette)
        assert idx.tolist() == [0, 2]


class TestInitPalette:
    def test_seeds_from_first_opaque_pixel(self):
        buf = _buffer([(1, 1, 1), (7, 8, 9)])
        buf[0, 3] = 0
        palette = init_palette("rgb", [], buf)
        assert len(palette) == 1
        assert palette[0].color.tolist() == [7.0, 8.0, 9.0]
        assert not palette[0].is_fixed

    def test_fixed_colours_are_converted_and_pinned(self):
        buf = _buffer([(1, 1, 1)])
        palette = init_palette("lab", [(255, 0, 0), (0, 0, 255)], buf)
        assert [e.is_fixed for e in palette] == [True, True]
        np.testing.assert_allclose(palette[0].color, rgb_to_lab((255, 0, 0)))

    def test_transparent_buffer_gives_empty_palette(self):
        buf = _buffer([(1, 1, 1), (2, 2, 2)], alpha=0)
        assert init_palette("rgb", [], buf) == []


class TestCalcBounds:
    def test_counts_sums_and_sphere(self):
        palette = [_entry((0, 0, 0))]
        calc_bounds(palette, _buffer([(0, 0, 0), (10, 0, 0)]))
        e = palette[0]
        assert e.qty == 2
        assert e.sum.tolist() == [10.0, 0.0, 0.0]
        assert e.bound.center.tolist() == [5.0, 0.0, 0.0]
        assert e.bound.radius == 5.0
        assert e.bound.vector.tolist() == [5.0, 0.0, 0.0]

    def test_point_inside_sphere_does_not_grow_it(self):
        palette = [_entry((0, 0, 0))]
        calc_bounds(palette, _buffer([(0, 0, 0), (10, 0, 0), (6, 0, 0)]))
        assert palette[0].bound.radius == 5.0
        assert palette[0].bound.center.tolist() == [5.0, 0.0, 0.0]

    def test_transparent_pixels_ignored(self):
        buf = _buffer([(0, 0, 0), (10, 0, 0)])
        buf[1, 3] = 127
        palette = [_entry((0, 0, 0))]
        calc_bounds(palette, buf)
        assert palette[0].qty == 1
        assert palette[0].bound.radius == 0.0

    def test_resets_previous_state(self):
        e = _entry((0, 0, 0), qty=99)
        e.bound = Bound(center=np.zeros(3), radius=3.0, vector=np.ones(3))
        far = _entry((100, 100, 100))
        calc_bounds([far, e], _buffer([(101, 100, 100)]))
        assert e.qty == 0
        assert e.bound.radius == 0.0
        assert far.qty == 1

    def test_interleaved_clusters_match_scan_order_sphere(self):
        rng = np.random.default_rng(7)
        low = rng.uniform(0, 40, size=(500, 3))
        high = rng.uniform(160, 200, size=(500, 3))
        # Alternate the two clusters so each one's points are scattered in the buffer.
        points = np.empty((1000, 3))
        points[0::2] = low
        points[1::2] = high
        palette = [_entry((20, 20, 20)), _entry((180, 180, 180))]
        calc_bounds(palette, _buffer([tuple(p) for p in points]))

        for entry, cloud in zip(palette, (low, high)):
            centre, radius, vector = _reference_sphere(cloud)
            assert entry.qty == 500
            assert entry.bound.center.tolist() == centre
            assert entry.bound.radius == radius
            assert entry.bound.vector.tolist() == vector


def _reference_sphere(cloud):
    """Point-by-point enclosing sphere over cloud, in order."""
    rows = cloud.tolist()
    cx, cy, cz = rows[0]
    radius = 0.0
    vector = None
    for x, y, z in rows[1:]:
        dx, dy, dz = x - cx, y - cy, z - cz
        r = float(np.sqrt(dx * dx + dy * dy + dz * dz))
        if r > radius:
            k = (r - radius) / r / 2.0
            cx, cy, cz = cx + dx * k, cy + dy * k, cz + dz * k
            vector = [x - cx, y - cy, z - cz]
            radius = (r + radius) / 2.0
    return [cx, cy, cz], radius, vector


class TestReallocate:
    def test_moves_free_entries_to_centroid(self):
        e = _entry((0, 0, 0), qty=2)
        e.sum = np.array([10.0, 0.0, 0.0])
        diff = reallocate_palette([e], qty_max=16)
        assert e.color.tolist() == [5.0, 0.0, 0.0]
        assert diff == pytest.approx(10.0)

    def test_fixed_and_single_pixel_entries_stay(self):
        fixed = _entry((1, 2, 3), qty=5, fixed=True)
        fixed.sum = np.array([50.0, 50.0, 50.0])
        single = _entry((4, 4, 4), qty=1)
        single.sum = np.array([9.0, 9.0, 9.0])
        diff = reallocate_palette([fixed, single], qty_max=16)
        assert fixed.color.tolist() == [1.0, 2.0, 3.0]
        assert single.color.tolist() == [4.0, 4.0, 4.0]
        assert diff == 0.0

    def test_diff_only_counts_first_qty_max(self):
        a = _entry((0, 0, 0), qty=2)
        a.sum = np.array([2.0, 0.0, 0.0])
        b = _entry((0, 0, 0), qty=2)
        b.sum = np.array([200.0, 0.0, 0.0])
        diff = reallocate_palette([a, b], qty_max=1)
        assert diff == pytest.approx(2.0)
        assert b.color.tolist() == [100.0, 0.0, 0.0]


class TestReorder:
    def test_by_qty_fixed_first_then_descending(self):
        a = _entry((0, 0, 0), qty=1)
        b = _entry((1, 0, 0), qty=10)
        f = _entry((2, 0, 0), qty=0, fixed=True)
        c = _entry((3, 0, 0), qty=10)
        palette = [a, b, f, c]
        reorder_by_qty(palette)
        assert palette == [f, b, c, a]

    def test_by_distance_prefers_distinct_colours(self):
        a = _entry((0, 0, 0), qty=10)
        near = _entry((1, 0, 0), qty=9)
        far = _entry((100, 0, 0), qty=8)
        palette = [a, near, far]
        reorder_by_distance(palette, 100.0, 0.001)
        assert palette == [a, far, near]

    def test_by_distance_population_can_win(self):
        a = _entry((0, 0, 0), qty=10)
        near = _entry((50, 0, 0), qty=500)
        far = _entry((100, 0, 0), qty=8)
        palette = [a, near, far]
        reorder_by_distance(palette, 100.0, 0.001)
        assert palette == [a, near, far]

    def test_by_distance_leaves_fixed_prefix(self):
        f1 = _entry((0, 0, 0), fixed=True)
        f2 = _entry((1, 0, 0), fixed=True)
        x = _entry((2, 0, 0), qty=1)
        y = _entry((90, 0, 0), qty=1)
        palette = [f1, f2, x, y]
        reorder_by_distance(palette, 100.0, 0.001)
        assert palette[:2] == [f1, f2]
        assert palette[2] is y

    def test_by_distance_with_coincident_colours_leaves_order(self):
        a = _entry((0, 0, 0), qty=3)
        b = _entry((0, 0, 0), qty=1)
        c = _entry((0, 0, 0), qty=2)
        palette = [a, b, c]
        reorder_by_distance(palette, 100.0, 0.001)
        assert palette == [a, b, c]

    def test_by_distance_skips_only_degenerate_positions(self):
        # Position 1 has a distinct candidate; at position 2 the last one sits on a.
        a = _entry((0, 0, 0), qty=5)
        far = _entry((50, 0, 0), qty=1)
        near = _entry((0, 0, 0), qty=4)
        palette = [a, near, far]
        reorder_by_distance(palette, 100.0, 0.001)
        assert palette == [a, far, near]


class TestSplit:
    def test_splits_along_vector(self):
        e = _entry((5, 0, 0))
        e.bound = Bound(
            center=np.array([5.0, 0.0, 0.0]), radius=5.0, vector=np.array([5.0, 0.0, 0.0])
        )
        flat = _entry((9, 9, 9))
        palette = [e, flat]
        assert split_palette(palette) == 1
        assert len(palette) == 3
        assert palette[2].color.tolist() == [7.5, 0.0, 0.0]
        assert not palette[2].is_fixed

    def test_nothing_to_split(self):
        palette = [_entry((1, 1, 1)), _entry((2, 2, 2))]
        assert split_palette(palette) == 0
        assert len(palette) == 2


class TestRunClusterLoop:
    def _gradient(self):
        values = np.linspace(0, 255, 64)
        return _buffer([(v, 255 - v, (v * 3) % 256) for v in values])

    def test_palette_never_exceeds_qty_max(self):
        buf = self._gradient()
        opts = ExtractOptions(qty_max=4, colorspace="rgb")
        palette = run_cluster_loop(init_palette("rgb", [], buf), buf, opts)
        assert 1 <= len(palette) <= 4

    def test_single_iteration_cap(self):
        buf = self._gradient()
        opts = ExtractOptions(qty_max=4, colorspace="rgb", max_iterations=1)
        palette = run_cluster_loop(init_palette("rgb", [], buf), buf, opts)
        assert len(palette) == 1

    def test_transparent_buffer_terminates(self):
        buf = _buffer([(1, 2, 3)] * 4, alpha=0)
        opts = ExtractOptions(colorspace="rgb")
        assert run_cluster_loop(init_palette("rgb", [], buf), buf, opts) == []

    def test_two_colours_separate(self):
        buf = _buffer([(0, 0, 0)] * 5 + [(100, 0, 0)] * 5)
        opts = ExtractOptions(colorspace="rgb")
        palette = run_cluster_loop(init_palette("rgb", [], buf), buf, opts)
        colours = sorted(tuple(e.color.tolist()) for e in palette if e.qty)
        assert colours == [(0.0, 0.0, 0.0), (100.0, 0.0, 0.0)]

    def test_fixed_colour_never_moves(self):
        buf = _buffer([(10, 10, 10)] * 4 + [(200, 0, 0)] * 4)
        opts = ExtractOptions(colorspace="rgb", fixed=((0, 0, 0),))
        palette = run_cluster_loop(init_palette("rgb", [(0, 0, 0)], buf), buf, opts)
        assert palette[0].is_fixed
        assert palette[0].color.tolist() == [0.0, 0.0, 0.0]

    def test_debug_logging(self, capsys):
        buf = _buffer([(0, 0, 0)] * 3 + [(100, 0, 0)] * 3)
        opts = ExtractOptions(colorspace="rgb")
        run_cluster_loop(init_palette("rgb", [], buf), buf, opts, debug=True)
        out = capsys.readouterr().out
        assert "[debug]" in out
        assert "Splits" in out
