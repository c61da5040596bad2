"""
Tests for viewport culling.

Covers:
- The exact visibility predicate (closed intervals, buffer)
- Soundness against a brute-force check on a real layout
- Stable order and degenerate viewports
- SpatialGrid agreement with the pure function
- ViewportCuller memoization
"""

import pytest

from wall_canvas.culling import (
    SpatialGrid,
    ViewportCuller,
    cull_visible_positions,
    is_position_visible,
)
from wall_canvas.layout import compute_signature_layout
from wall_canvas.models import LayoutEntry, Point, SignaturePosition


def pos(entry_id, x, y):
    return SignaturePosition(id=entry_id, x=x, y=y)


@pytest.fixture
def wall_positions():
    entries = [LayoutEntry(id=f"s{i}") for i in range(300)]
    return compute_signature_layout(entries).positions


class TestVisibilityPredicate:
    """Tests for is_position_visible / cull_visible_positions"""

    def test_small_viewport_scenario(self):
        positions = [pos("far", 900, 100), pos("near", 100, 100)]
        visible = cull_visible_positions(positions, Point(), 1.0, 80, 40, 0, 800, 600)
        assert [p.id for p in visible] == ["near"]

    def test_buffer_brings_element_back(self):
        positions = [pos("far", 900, 100)]
        visible = cull_visible_positions(positions, Point(), 1.0, 80, 40, 100, 800, 600)
        assert [p.id for p in visible] == ["far"]

    def test_touching_edge_counts_as_visible(self):
        # Right edge of the viewport at x=800, element starts exactly there.
        assert is_position_visible(pos("a", 800, 0), Point(), 1.0, 80, 40, 0, 800, 600)
        # Element ends exactly at x=0.
        assert is_position_visible(pos("b", -80, 0), Point(), 1.0, 80, 40, 0, 800, 600)
        assert not is_position_visible(pos("c", -80.5, 0), Point(), 1.0, 80, 40, 0, 800, 600)

    def test_pan_and_scale_are_applied(self):
        p = pos("a", 1000, 0)
        assert not is_position_visible(p, Point(), 1.0, 80, 40, 0, 800, 600)
        assert is_position_visible(p, Point(x=-500, y=0), 1.0, 80, 40, 0, 800, 600)
        assert is_position_visible(p, Point(), 0.5, 80, 40, 0, 800, 600)

    def test_order_is_stable(self):
        positions = [pos(f"p{i}", 700 - i * 50, 10) for i in range(10)]
        visible = cull_visible_positions(positions, Point(), 1.0, 80, 40, 0, 800, 600)
        assert [p.id for p in visible] == [p.id for p in positions]

    @pytest.mark.parametrize("scale,width,height", [
        (1.0, 0, 600),
        (1.0, 800, 0),
        (0.0, 800, 600),
        (-1.0, 800, 600),
        (float("nan"), 800, 600),
    ])
    def test_degenerate_viewport_is_empty(self, scale, width, height):
        positions = [pos("a", 0, 0)]
        assert cull_visible_positions(positions, Point(), scale, 80, 40, 500, width, height) == []

    def test_empty_input(self):
        assert cull_visible_positions([], Point(), 1.0, 80, 40, 0, 800, 600) == []


class TestSoundness:
    """Culling never drops an element that intersects the buffered viewport"""

    @pytest.mark.parametrize("pan,scale", [
        (Point(x=640, y=360), 0.85),
        (Point(x=-3000, y=1200), 1.0),
        (Point(x=200, y=-800), 2.5),
        (Point(x=640, y=360), 0.1),
    ])
    def test_matches_brute_force(self, wall_positions, pan, scale):
        w, h, buffer, vw, vh = 240, 120, 500, 1280, 720
        visible = cull_visible_positions(wall_positions, pan, scale, w, h, buffer, vw, vh)

        expected = []
        for p in wall_positions:
            left = p.x * scale + pan.x
            top = p.y * scale + pan.y
            if left <= vw + buffer and left + w * scale >= -buffer \
                    and top <= vh + buffer and top + h * scale >= -buffer:
                expected.append(p.id)
        assert [p.id for p in visible] == expected


class TestSpatialGrid:
    """Tests for SpatialGrid"""

    def test_query_returns_sorted_candidates(self, wall_positions):
        grid = SpatialGrid(wall_positions, 240, 120)
        hits = grid.query(-300, -300, 300, 300)
        assert hits == sorted(hits)
        assert 0 in hits

    def test_huge_query_falls_back(self, wall_positions):
        grid = SpatialGrid(wall_positions, 240, 120)
        assert grid.query(-1e7, -1e7, 1e7, 1e7) is None

    def test_non_finite_query_falls_back(self, wall_positions):
        grid = SpatialGrid(wall_positions, 240, 120)
        assert grid.query(float("-inf"), 0, 10, 10) is None


class TestViewportCuller:
    """Tests for the memoized culler"""

    @pytest.mark.parametrize("pan,scale", [
        (Point(x=640, y=360), 0.85),
        (Point(x=-3000, y=1200), 1.0),
        (Point(x=200, y=-800), 3.0),
        (Point(x=640, y=360), 0.1),
        (Point(x=1e6, y=1e6), 1.0),
    ])
    def test_agrees_with_pure_function(self, wall_positions, pan, scale):
        culler = ViewportCuller(240, 120, buffer=500)
        expected = cull_visible_positions(wall_positions, pan, scale, 240, 120, 500, 1280, 720)
        assert culler.cull(wall_positions, pan, scale, 1280, 720) == expected

    def test_memoizes_unchanged_transform(self, wall_positions):
        culler = ViewportCuller(240, 120)
        first = culler.cull(wall_positions, Point(x=10, y=10), 1.0, 1280, 720)
        second = culler.cull(wall_positions, Point(x=10, y=10), 1.0, 1280, 720)
        assert first == second
        assert culler.computations == 1

    def test_recomputes_on_pan(self, wall_positions):
        culler = ViewportCuller(240, 120)
        culler.cull(wall_positions, Point(x=10, y=10), 1.0, 1280, 720)
        culler.cull(wall_positions, Point(x=11, y=10), 1.0, 1280, 720)
        assert culler.computations == 2

    def test_recomputes_on_new_positions(self, wall_positions):
        culler = ViewportCuller(240, 120)
        culler.cull(wall_positions, Point(), 1.0, 1280, 720)
        culler.cull(tuple(wall_positions[:10]), Point(), 1.0, 1280, 720)
        assert culler.computations == 2

    def test_returned_list_is_a_copy(self, wall_positions):
        culler = ViewportCuller(240, 120)
        first = culler.cull(wall_positions, Point(), 1.0, 1280, 720)
        first.clear()
        assert culler.cull(wall_positions, Point(), 1.0, 1280, 720) != []

    def test_unmeasured_viewport_is_empty(self, wall_positions):
        culler = ViewportCuller(240, 120)
        assert culler.cull(wall_positions, Point(), 1.0, 0, 0) == []
