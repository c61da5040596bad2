"""
Viewport culling for the wall canvas.

With hundreds of signature images on a wall, painting every element on
every frame is the expensive path.  Culling keeps only the elements whose
screen-space box touches the viewport grown by ``buffer`` pixels on every
side (the buffer hides pop-in during fast pans).

Visibility test, per position:

    sx = x * scale + pan.x          sy = y * scale + pan.y
    visible  <=>  [sx, sx + w*scale] ∩ [-buffer, width + buffer]  ≠ ∅
             and  [sy, sy + h*scale] ∩ [-buffer, height + buffer] ≠ ∅

Intervals are closed, so an element touching the buffered edge counts as
visible.  Output keeps the layout's relative order (a stable filter), which
keeps reveal indices meaningful downstream.

Degenerate input returns an **empty** list: a viewport that has not been
measured yet (width or height ≤ 0) or a non-finite / non-positive scale.

``ViewportCuller`` adds two optimizations on top of the pure function:
a ``SpatialGrid`` bucket index built once per position set, and a memo on
the full transform tuple so repeated frames with an unchanged viewport do
no work at all.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Optional

from .models import Point, SignaturePosition


def _viewport_is_degenerate(scale: float, viewport_width: float, viewport_height: float) -> bool:
    if not all(math.isfinite(v) for v in (scale, viewport_width, viewport_height)):
        return True
    return scale <= 0 or viewport_width <= 0 or viewport_height <= 0


def is_position_visible(
    position: SignaturePosition,
    pan: Point,
    scale: float,
    element_width: float,
    element_height: float,
    buffer: float,
    viewport_width: float,
    viewport_height: float,
) -> bool:
    """Exact screen-space intersection test for one element."""
    sx = position.x * scale + pan.x
    sy = position.y * scale + pan.y
    return (
        sx <= viewport_width + buffer
        and sx + element_width * scale >= -buffer
        and sy <= viewport_height + buffer
        and sy + element_height * scale >= -buffer
    )


def cull_visible_positions(
    positions: Sequence[SignaturePosition],
    pan: Point,
    scale: float,
    element_width: float,
    element_height: float,
    buffer: float,
    viewport_width: float,
    viewport_height: float,
) -> list[SignaturePosition]:
    """Return the positions visible in the buffered viewport, in order."""
    if _viewport_is_degenerate(scale, viewport_width, viewport_height):
        return []
    return [
        pos for pos in positions
        if is_position_visible(
            pos, pan, scale, element_width, element_height,
            buffer, viewport_width, viewport_height,
        )
    ]


# ---------------------------------------------------------------------------
# Spatial index
# ---------------------------------------------------------------------------

class SpatialGrid:
    """Uniform bucket grid over element top-left corners.

    Buckets are one element footprint wide and tall.  ``query`` returns the
    indices (into the original sequence, ascending) of every position whose
    top-left corner falls in a world rectangle; callers re-check candidates
    with the exact predicate.
    """

    def __init__(self, positions: Sequence[SignaturePosition], cell_width: float, cell_height: float):
        self.cell_width = cell_width
        self.cell_height = cell_height
        self.size = len(positions)
        self._buckets: dict[tuple[int, int], list[int]] = {}
        for index, pos in enumerate(positions):
            key = (math.floor(pos.x / cell_width), math.floor(pos.y / cell_height))
            self._buckets.setdefault(key, []).append(index)

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def query(self, min_x: float, min_y: float, max_x: float, max_y: float) -> Optional[list[int]]:
        """Candidate indices for corners in the rectangle.

        Returns ``None`` when walking the covered cells would cost more than
        scanning every bucket; the caller then falls back to a linear scan.
        """
        if not all(math.isfinite(v) for v in (min_x, min_y, max_x, max_y)):
            return None

        # One extra cell on each side absorbs floor() rounding at the edges.
        col_lo = math.floor(min_x / self.cell_width) - 1
        col_hi = math.floor(max_x / self.cell_width) + 1
        row_lo = math.floor(min_y / self.cell_height) - 1
        row_hi = math.floor(max_y / self.cell_height) + 1

        covered = (col_hi - col_lo + 1) * (row_hi - row_lo + 1)
        if covered > self.bucket_count:
            return None

        hits: list[int] = []
        for col in range(col_lo, col_hi + 1):
            for row in range(row_lo, row_hi + 1):
                bucket = self._buckets.get((col, row))
                if bucket:
                    hits.extend(bucket)
        hits.sort()
        return hits


# ---------------------------------------------------------------------------
# Memoized culler
# ---------------------------------------------------------------------------

class ViewportCuller:
    """Culls a position set, recomputing only when the transform changes.

    The position sequence is compared by identity: layouts are immutable,
    so a new layout always arrives as a new object.
    """

    def __init__(self, element_width: float, element_height: float, buffer: float = 500.0):
        self.element_width = element_width
        self.element_height = element_height
        self.buffer = buffer
        self._positions: Optional[Sequence[SignaturePosition]] = None
        self._grid: Optional[SpatialGrid] = None
        self._key: Optional[tuple[float, float, float, float, float]] = None
        self._result: list[SignaturePosition] = []
        self.computations = 0

    def cull(
        self,
        positions: Sequence[SignaturePosition],
        pan: Point,
        scale: float,
        viewport_width: float,
        viewport_height: float,
    ) -> list[SignaturePosition]:
        if positions is not self._positions:
            self._positions = positions
            self._grid = SpatialGrid(positions, self.element_width, self.element_height)
            self._key = None

        key = (pan.x, pan.y, scale, viewport_width, viewport_height)
        if key == self._key:
            return list(self._result)

        self._result = self._compute(positions, pan, scale, viewport_width, viewport_height)
        self._key = key
        self.computations += 1
        return list(self._result)

    def _compute(
        self,
        positions: Sequence[SignaturePosition],
        pan: Point,
        scale: float,
        viewport_width: float,
        viewport_height: float,
    ) -> list[SignaturePosition]:
        if _viewport_is_degenerate(scale, viewport_width, viewport_height):
            return []

        # World-space range of top-left corners that can intersect the
        # buffered viewport.
        min_x = (-self.buffer - pan.x) / scale - self.element_width
        max_x = (viewport_width + self.buffer - pan.x) / scale
        min_y = (-self.buffer - pan.y) / scale - self.element_height
        max_y = (viewport_height + self.buffer - pan.y) / scale

        candidates = self._grid.query(min_x, min_y, max_x, max_y) if self._grid else None
        if candidates is None:
            return cull_visible_positions(
                positions, pan, scale, self.element_width, self.element_height,
                self.buffer, viewport_width, viewport_height,
            )

        return [
            positions[index] for index in candidates
            if is_position_visible(
                positions[index], pan, scale, self.element_width, self.element_height,
                self.buffer, viewport_width, viewport_height,
            )
        ]

    def invalidate(self) -> None:
        self._positions = None
        self._grid = None
        self._key = None
        self._result = []
