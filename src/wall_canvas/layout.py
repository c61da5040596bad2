"""
Signature layout engine for the memory-wall canvas.

Places an ordered list of entries on a brick-offset square spiral around a
fixed anchor, then derives the reveal order from the same pass.

The key property is **determinism**: the same ids in the same order always
produce the same layout.  Nothing depends on wall-clock time, on Python's
per-process ``hash`` seed, or on previous layouts, so re-renders are stable
and fixtures are predictable.

Placement, per entry ``i`` (O(1) each, O(n) overall):

  1. Spiral cell — ``i`` is mapped to integer cell coordinates on a square
     spiral: cell 0 is the anchor, cells 1–8 the first ring around it,
     cells 9–24 the second ring, and so on.
  2. Brick offset — odd rows are shifted by half a cell so the wall does
     not read as a rigid grid.
  3. Jitter — each element is nudged by a CRC-32 derived amount of at most
     half the gap on each axis.  Since neighbours are a full gap apart,
     jitter can never make two elements overlap.

There is no pairwise collision solving: the cell lattice already guarantees
separation.

Reveal order is spiral order, i.e. centre outwards.  The render composer
groups it into rings of ``ring_size`` consecutive ids, so with a ring size
of 5 the first five entries appear together, then the next five, and so on.

Cell pitch (with default settings):
  - Horizontal: 240px element + 48px gap
  - Vertical:   120px element + 40px gap
"""

from __future__ import annotations

import logging
import math
import zlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .models import (
    CanvasSettings,
    LayoutEntry,
    SignatureLayout,
    SignaturePosition,
)

logger = logging.getLogger(__name__)


@dataclass
class LayoutOptions:
    """Geometry used by ``compute_signature_layout``."""
    element_width: float
    element_height: float
    horizontal_gap: float
    vertical_gap: float
    anchor_x: float = 0.0
    anchor_y: float = 0.0
    jitter: bool = True
    brick_offset: bool = True

    @classmethod
    def from_settings(cls, settings: CanvasSettings) -> "LayoutOptions":
        return cls(
            element_width=settings.element_width,
            element_height=settings.element_height,
            horizontal_gap=settings.horizontal_gap,
            vertical_gap=settings.vertical_gap,
            anchor_x=settings.anchor_x,
            anchor_y=settings.anchor_y,
        )


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

def spiral_cell(index: int) -> tuple[int, int]:
    """Map a 0-based index to (column, row) on a square spiral.

    Ring ``k`` holds the cells whose Chebyshev distance from the origin is
    ``k``; ring 0 is the origin itself and ring ``k`` ends at index
    ``(2k+1)^2 - 1``.
    """
    if index <= 0:
        return (0, 0)

    n = index + 1
    root = math.isqrt(n)
    if root * root < n:
        root += 1
    k = root // 2

    side = 2 * k
    last = (2 * k + 1) ** 2  # 1-based index of the last cell in ring k

    if n >= last - side:
        return (k - (last - n), -k)
    last -= side
    if n >= last - side:
        return (-k, -k + (last - n))
    last -= side
    if n >= last - side:
        return (-k + (last - n), k)
    return (k, k - (last - n - side))


def _jitter_unit(entry_id: str, salt: str) -> float:
    """Stable pseudo-random value in [-1, 1] derived from an id."""
    digest = zlib.crc32(f"{salt}:{entry_id}".encode("utf-8"))
    return (digest / 0xFFFFFFFF) * 2.0 - 1.0


def _coerce_entry(raw: Any) -> Optional[LayoutEntry]:
    """Accept a LayoutEntry or an ``{id, signature}`` mapping."""
    if isinstance(raw, LayoutEntry):
        return raw
    if isinstance(raw, Mapping) and raw.get("id") is not None:
        return LayoutEntry(id=str(raw["id"]), signature=raw.get("signature"))
    return None


# ---------------------------------------------------------------------------
# Core layout algorithm
# ---------------------------------------------------------------------------

def compute_signature_layout(
    entries: Optional[Iterable[Any]],
    options: Optional[LayoutOptions] = None,
) -> SignatureLayout:
    """
    Compute positions and reveal order for an ordered entry list.

    Steps:
    1. Coerce entries, skipping malformed ones and duplicate ids
    2. Map each surviving entry to its spiral cell
    3. Convert the cell to world coordinates (brick offset + jitter)
    4. Emit positions and reveal order in spiral order
    """
    if entries is None:
        return SignatureLayout()

    opts = options or LayoutOptions.from_settings(CanvasSettings())

    pitch_x = opts.element_width + opts.horizontal_gap
    pitch_y = opts.element_height + opts.vertical_gap
    max_dx = opts.horizontal_gap / 2 if opts.jitter else 0.0
    max_dy = opts.vertical_gap / 2 if opts.jitter else 0.0

    # Cell (0, 0) is centred on the anchor.
    origin_x = opts.anchor_x - opts.element_width / 2
    origin_y = opts.anchor_y - opts.element_height / 2

    positions: list[SignaturePosition] = []
    reveal_order: list[str] = []
    seen: set[str] = set()

    for raw in entries:
        entry = _coerce_entry(raw)
        if entry is None:
            logger.warning("Skipping malformed layout entry: %r", raw)
            continue
        if entry.id in seen:
            logger.warning("Duplicate entry id %r in layout input; keeping first", entry.id)
            continue
        seen.add(entry.id)

        col, row = spiral_cell(len(positions))
        x = origin_x + col * pitch_x
        y = origin_y + row * pitch_y
        if opts.brick_offset and row % 2:
            x += pitch_x / 2
        x += _jitter_unit(entry.id, "x") * max_dx
        y += _jitter_unit(entry.id, "y") * max_dy

        positions.append(SignaturePosition(id=entry.id, x=x, y=y, signature=entry.signature))
        reveal_order.append(entry.id)

    logger.debug("Computed signature layout for %d entries", len(positions))
    return SignatureLayout(positions=tuple(positions), reveal_order=tuple(reveal_order))


def layout_bounds(
    positions: Iterable[SignaturePosition],
    element_width: float,
    element_height: float,
) -> Optional[tuple[float, float, float, float]]:
    """Bounding box (min_x, min_y, max_x, max_y) of all element footprints."""
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for pos in positions:
        min_x = min(min_x, pos.x)
        min_y = min(min_y, pos.y)
        max_x = max(max_x, pos.x + element_width)
        max_y = max(max_y, pos.y + element_height)
    if min_x is math.inf:
        return None
    return (min_x, min_y, max_x, max_y)


def reveal_index_map(reveal_order: Iterable[str]) -> dict[str, int]:
    """Map each id to its rank in the reveal order."""
    return {entry_id: index for index, entry_id in enumerate(reveal_order)}


# ---------------------------------------------------------------------------
# Memoization
# ---------------------------------------------------------------------------

class SignatureLayoutCache:
    """Recompute the layout only when the entry set actually changed.

    The cache key is the tuple of ids in order; the signature payloads are
    compared too, so an edited record (same id, new message) refreshes the
    positions that carry it.
    """

    def __init__(self, options: Optional[LayoutOptions] = None):
        self.options = options or LayoutOptions.from_settings(CanvasSettings())
        self._key: Optional[tuple[str, ...]] = None
        self._signatures: list[Any] = []
        self._layout: Optional[SignatureLayout] = None
        self.computations = 0

    def get(self, entries: Iterable[Any]) -> SignatureLayout:
        coerced = [entry for entry in map(_coerce_entry, entries) if entry is not None]
        key = tuple(entry.id for entry in coerced)
        signatures = [entry.signature for entry in coerced]

        if self._layout is not None and key == self._key and signatures == self._signatures:
            return self._layout

        self._layout = compute_signature_layout(coerced, self.options)
        self._key = key
        self._signatures = signatures
        self.computations += 1
        return self._layout

    def clear(self) -> None:
        self._key = None
        self._signatures = []
        self._layout = None
