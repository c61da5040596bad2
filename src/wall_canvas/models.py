"""
Data models for the memory-wall canvas.

A memory wall is a named collection of signatures left by visitors.  The
canvas turns that flat collection into a spatial picture:

    Wall
    └── SignatureRecord   — one visitor's contribution (the opaque payload)
        └── LayoutEntry       — {id, signature} as fed to the layout engine
            └── SignaturePosition — where that entry sits in world space

Records, positions and layouts are immutable values.  A layout is produced
once per entry set and every downstream consumer (culler, composer,
renderer) treats it as read-only.

The only mutable state on the canvas is the viewport, and even that is
exchanged as frozen ``ViewportState`` snapshots: the controller swaps in a
new snapshot on every change instead of editing one in place.

``CanvasSettings`` collects every tunable of the subsystem (element
footprint, zoom bounds, reveal timing) and validates them on construction.
"""

from __future__ import annotations
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Walls and signatures (owned by the external data layer)
# ---------------------------------------------------------------------------

class WallTheme(BaseModel):
    """Per-wall colours chosen by the owner.

    Attributes:
        primary_color:    Accent colour (header text, glow, share card text).
        background_color: Canvas background.
        font_family:      Font name picked in the wall editor.  The renderer
                          only uses it as a hint.
    """
    model_config = ConfigDict(frozen=True)

    primary_color: str = "#f4f4f5"
    background_color: str = "#09090b"
    font_family: str = "sans-serif"


class Wall(BaseModel):
    """A memory wall as returned by the backend's fetch-by-slug query."""
    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    title: str
    description: Optional[str] = None
    theme: WallTheme = Field(default_factory=WallTheme)
    visibility: str = "public"  # "public" or "private"
    accepting_entries: bool = True


class SignatureRecord(BaseModel):
    """One visitor's entry on a wall.

    The canvas never looks inside a record beyond ``id`` (for keying),
    ``name`` (for labels) and ``signature_image_id`` (to decide whether an
    image can be drawn).  Everything else rides along for the detail view.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    message: Optional[str] = None
    stickers: tuple[str, ...] = ()
    signature_image_id: Optional[str] = None
    email: Optional[str] = None
    is_verified: bool = False
    is_hidden: bool = False
    created_at: float = 0.0

    def get_display_name(self) -> str:
        """Return the signer's name, or "Anonymous" when it was left blank."""
        return self.name if self.name else "Anonymous"


# ---------------------------------------------------------------------------
# Layout values
# ---------------------------------------------------------------------------

class LayoutEntry(BaseModel):
    """An ``{id, signature}`` pair in insertion order.

    ``signature`` is deliberately typed ``Any``: the layout engine only
    carries it through to the positions it produces.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    signature: Any = None


class SignaturePosition(BaseModel):
    """World-space placement of one entry.

    ``x`` and ``y`` are the top-left corner of the element's fixed
    footprint, matching how the paint layer translates each element.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    x: float
    y: float
    signature: Any = None


class SignatureLayout(BaseModel):
    """Positions plus the reveal order derived from the same computation."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    positions: tuple[SignaturePosition, ...] = ()
    reveal_order: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not self.positions

    def get_position(self, entry_id: str) -> Optional[SignaturePosition]:
        """Look up a position by entry id (linear; layouts are small)."""
        for pos in self.positions:
            if pos.id == entry_id:
                return pos
        return None


# ---------------------------------------------------------------------------
# Viewport values
# ---------------------------------------------------------------------------

class Point(BaseModel):
    """A 2D point or translation."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


class ViewportSize(BaseModel):
    """Measured size of the canvas area in screen pixels.

    Both dimensions are 0 until the UI shell reports its first measurement.
    """
    model_config = ConfigDict(frozen=True)

    width: float = 0.0
    height: float = 0.0

    def is_measured(self) -> bool:
        return self.width > 0 and self.height > 0


class ViewportState(BaseModel):
    """Pan/zoom snapshot: ``screen = world * scale + pan``."""
    model_config = ConfigDict(frozen=True)

    pan: Point = Field(default_factory=Point)
    scale: float = 1.0

    def to_screen(self, x: float, y: float) -> tuple[float, float]:
        return (x * self.scale + self.pan.x, y * self.scale + self.pan.y)

    def to_world(self, x: float, y: float) -> tuple[float, float]:
        return ((x - self.pan.x) / self.scale, (y - self.pan.y) / self.scale)


# ---------------------------------------------------------------------------
# Composed output
# ---------------------------------------------------------------------------

class RenderElement(BaseModel):
    """A visible element ready to paint, with its reveal timing."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    x: float
    y: float
    signature: Any = None
    reveal_index: int = 0
    ring_index: int = 0
    delay_ms: float = 0.0


class CanvasFrame(BaseModel):
    """Everything a paint pass needs: visible elements plus viewport."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    elements: tuple[RenderElement, ...] = ()
    viewport: ViewportState = Field(default_factory=ViewportState)
    size: ViewportSize = Field(default_factory=ViewportSize)
    total_count: int = 0
    zoom_percent: int = 100


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

# Fixed element footprint, so no runtime measurement is needed for layout.
ELEMENT_WIDTH = 240.0
ELEMENT_HEIGHT = 120.0


class CanvasSettings(BaseModel):
    """Tunables for layout, viewport, culling and reveal timing.

    Attributes:
        element_width / element_height: Fixed footprint of one signature.
        horizontal_gap / vertical_gap:  Spacing between neighbouring cells.
                                        Jitter never exceeds half a gap, so
                                        elements cannot overlap.
        anchor_x / anchor_y:            World point the first entry is
                                        centred on.
        cull_buffer:    Screen pixels of slack around the viewport.
        min_scale / max_scale: Zoom clamp.  Must contain 1.0.
        initial_scale:  Scale a fresh controller starts at.
        zoom_step:      Factor applied by zoom in / zoom out.
        drag_threshold_px: Movement beyond which a gesture is a drag.
        fit_margin:     Screen pixels left around the fitted bounding box.
        ring_size / ring_count / stagger_ms / base_delay_ms: Reveal timing.
    """
    model_config = ConfigDict(frozen=True)

    element_width: float = ELEMENT_WIDTH
    element_height: float = ELEMENT_HEIGHT
    horizontal_gap: float = 48.0
    vertical_gap: float = 40.0
    anchor_x: float = 0.0
    anchor_y: float = 0.0

    cull_buffer: float = 500.0

    min_scale: float = 0.1
    max_scale: float = 4.0
    initial_scale: float = 0.85
    zoom_step: float = 1.2
    drag_threshold_px: float = 4.0
    fit_margin: float = 48.0

    ring_size: int = 5
    ring_count: int = 10
    stagger_ms: float = 30.0
    base_delay_ms: float = 0.0

    @model_validator(mode="after")
    def _check_ranges(self) -> "CanvasSettings":
        if self.element_width <= 0 or self.element_height <= 0:
            raise ValueError("element footprint must be positive")
        if self.horizontal_gap < 0 or self.vertical_gap < 0:
            raise ValueError("gaps must be non-negative")
        if not (0 < self.min_scale <= 1.0 <= self.max_scale):
            raise ValueError(
                f"scale bounds must satisfy 0 < min_scale <= 1 <= max_scale, "
                f"got [{self.min_scale}, {self.max_scale}]"
            )
        if not (self.min_scale <= self.initial_scale <= self.max_scale):
            raise ValueError("initial_scale must lie within the scale bounds")
        if self.zoom_step <= 1.0:
            raise ValueError("zoom_step must be greater than 1")
        if self.ring_size < 1 or self.ring_count < 1:
            raise ValueError("ring_size and ring_count must be at least 1")
        if self.stagger_ms < 0 or self.base_delay_ms < 0:
            raise ValueError("reveal delays must be non-negative")
        if self.cull_buffer < 0 or self.drag_threshold_px < 0 or self.fit_margin < 0:
            raise ValueError("buffer, drag threshold and fit margin must be non-negative")
        return self
