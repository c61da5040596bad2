"""
Viewport controller - pan/zoom state for the wall canvas.

State Machine:
    IDLE ──pointer down──→ DRAGGING ──pointer up / cancel──→ IDLE

While DRAGGING, every pointer move pans by the delta since the *previous*
move (not since drag start), so rounding never accumulates into drift.

The controller exclusively owns the ``ViewportState``.  Every mutation
builds a new frozen snapshot from the latest one and swaps it in, so rapid
zoom clicks never apply against a stale copy.  Consumers either pull
``get_snapshot()`` once per frame or ``subscribe()`` for change callbacks.

Pointer anomalies (a second pointer-down mid-drag, an orphaned pointer-up,
moves from another pointer) are absorbed as no-ops.

Usage:
    vp = ViewportController(settings)
    vp.set_viewport_size(1280, 720)
    unsubscribe = vp.subscribe(lambda state: print(state.scale))

    vp.on_pointer_down(100, 100)
    vp.on_pointer_move(140, 110)
    vp.on_pointer_up(140, 110)
    vp.was_dragging()   # True - the click that follows should be ignored
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .layout import layout_bounds
from .models import CanvasSettings, Point, SignaturePosition, ViewportSize, ViewportState

logger = logging.getLogger(__name__)

ViewportListener = Callable[[ViewportState], None]


class DragPhase(Enum):
    """Pointer interaction phase."""

    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class PointerDragState:
    """Ephemeral bookkeeping for one pointer-down → pointer-up gesture."""
    pointer_id: Optional[int]
    start_x: float
    start_y: float
    last_x: float
    last_y: float
    moved: bool = False


@dataclass(frozen=True)
class CanvasSurface:
    """Pan half of the viewport control surface."""
    pan: Point
    on_pointer_down: Callable[..., None]
    on_pointer_move: Callable[..., None]
    was_dragging: Callable[[], bool]


@dataclass(frozen=True)
class ZoomSurface:
    """Zoom half of the viewport control surface."""
    scale: float
    percent: int
    zoom_in: Callable[[], None]
    zoom_out: Callable[[], None]
    zoom_to_fit: Callable[..., None]
    zoom_to_100: Callable[[], None]


def _is_finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


class ViewportController:
    """Pan/zoom state machine driven by pointer input and zoom commands."""

    def __init__(self, settings: Optional[CanvasSettings] = None, initial_scale: Optional[float] = None):
        self.settings = settings or CanvasSettings()
        scale = self.settings.initial_scale if initial_scale is None else initial_scale
        self._state = ViewportState(pan=Point(), scale=self._clamp(scale))
        self._size = ViewportSize()
        self._positions: tuple[SignaturePosition, ...] = ()
        self._phase = DragPhase.IDLE
        self._drag: Optional[PointerDragState] = None
        self._last_interaction_dragged = False
        self._listeners: list[ViewportListener] = []

    # --- Read side ---

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def pan(self) -> Point:
        return self._state.pan

    @property
    def scale(self) -> float:
        return self._state.scale

    @property
    def percent(self) -> int:
        """Zoom level as a whole percentage, for the controls readout."""
        return int(round(self._state.scale * 100))

    @property
    def size(self) -> ViewportSize:
        return self._size

    def get_snapshot(self) -> ViewportState:
        return self._state

    def canvas_surface(self) -> CanvasSurface:
        return CanvasSurface(
            pan=self._state.pan,
            on_pointer_down=self.on_pointer_down,
            on_pointer_move=self.on_pointer_move,
            was_dragging=self.was_dragging,
        )

    def zoom_surface(self) -> ZoomSurface:
        return ZoomSurface(
            scale=self._state.scale,
            percent=self.percent,
            zoom_in=self.zoom_in,
            zoom_out=self.zoom_out,
            zoom_to_fit=self.zoom_to_fit,
            zoom_to_100=self.zoom_to_100,
        )

    # --- Observers ---

    def subscribe(self, listener: ViewportListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, pan: Point, scale: float) -> None:
        """Swap in a new snapshot and notify listeners if anything changed."""
        new_state = ViewportState(pan=pan, scale=self._clamp(scale))
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Viewport listener failed")

    # --- Configuration from the shell ---

    def set_viewport_size(self, width: float, height: float) -> None:
        """Record the measured canvas size (0 means not measured yet)."""
        if not _is_finite(width, height):
            return
        self._size = ViewportSize(width=max(0.0, width), height=max(0.0, height))

    def set_positions(self, positions: Iterable[SignaturePosition]) -> None:
        """Positions used by ``zoom_to_fit`` when none are passed explicitly."""
        self._positions = tuple(positions)

    # --- Pointer input ---

    def on_pointer_down(self, x: float, y: float, pointer_id: Optional[int] = None) -> None:
        if self._phase is DragPhase.DRAGGING:
            return
        if not _is_finite(x, y):
            return
        self._drag = PointerDragState(pointer_id=pointer_id, start_x=x, start_y=y, last_x=x, last_y=y)
        self._phase = DragPhase.DRAGGING
        self._last_interaction_dragged = False
        logger.debug("Viewport: idle -> dragging at (%.1f, %.1f)", x, y)

    def on_pointer_move(self, x: float, y: float, pointer_id: Optional[int] = None) -> None:
        drag = self._drag
        if self._phase is not DragPhase.DRAGGING or drag is None:
            return
        if drag.pointer_id is not None and pointer_id is not None and pointer_id != drag.pointer_id:
            return
        if not _is_finite(x, y):
            return

        dx = x - drag.last_x
        dy = y - drag.last_y
        drag.last_x = x
        drag.last_y = y

        if math.hypot(x - drag.start_x, y - drag.start_y) > self.settings.drag_threshold_px:
            drag.moved = True

        if dx or dy:
            pan = self._state.pan
            self._commit(Point(x=pan.x + dx, y=pan.y + dy), self._state.scale)

    def on_pointer_up(self, x: Optional[float] = None, y: Optional[float] = None,
                      pointer_id: Optional[int] = None) -> None:
        self._end_drag(pointer_id)

    def on_pointer_cancel(self, pointer_id: Optional[int] = None) -> None:
        self._end_drag(pointer_id)

    def _end_drag(self, pointer_id: Optional[int]) -> None:
        drag = self._drag
        if self._phase is not DragPhase.DRAGGING or drag is None:
            return
        if drag.pointer_id is not None and pointer_id is not None and pointer_id != drag.pointer_id:
            return
        self._last_interaction_dragged = drag.moved
        self._drag = None
        self._phase = DragPhase.IDLE
        logger.debug("Viewport: dragging -> idle (moved=%s)", drag.moved)

    def was_dragging(self) -> bool:
        """True if the latest gesture moved beyond the drag threshold.

        Element click handlers call this to drop the click that ends a pan.
        """
        if self._drag is not None and self._drag.moved:
            return True
        return self._last_interaction_dragged

    # --- Zoom ---

    def _clamp(self, scale: float) -> float:
        if not math.isfinite(scale) or scale <= 0:
            return self.settings.min_scale
        return min(self.settings.max_scale, max(self.settings.min_scale, scale))

    def _center(self) -> tuple[float, float]:
        return (self._size.width / 2, self._size.height / 2)

    def zoom_at(self, factor: float, screen_x: float, screen_y: float) -> None:
        """Scale by ``factor`` keeping the world point under (x, y) fixed."""
        if not _is_finite(factor, screen_x, screen_y) or factor <= 0:
            return
        self._set_scale_anchored(self._state.scale * factor, screen_x, screen_y)

    def _set_scale_anchored(self, scale: float, screen_x: float, screen_y: float) -> None:
        state = self._state
        new_scale = self._clamp(scale)
        world_x, world_y = state.to_world(screen_x, screen_y)
        pan = Point(x=screen_x - world_x * new_scale, y=screen_y - world_y * new_scale)
        self._commit(pan, new_scale)

    def zoom_in(self) -> None:
        self.zoom_at(self.settings.zoom_step, *self._center())

    def zoom_out(self) -> None:
        self.zoom_at(1 / self.settings.zoom_step, *self._center())

    def zoom_to_100(self) -> None:
        self._set_scale_anchored(1.0, *self._center())

    def on_wheel(self, delta_y: float, screen_x: float, screen_y: float) -> None:
        """Wheel zoom anchored at the cursor; negative delta zooms in."""
        if not _is_finite(delta_y) or delta_y == 0:
            return
        step = self.settings.zoom_step
        self.zoom_at(step if delta_y < 0 else 1 / step, screen_x, screen_y)

    def set_view(self, pan_x: float, pan_y: float, scale: Optional[float] = None) -> None:
        """Jump to an explicit transform (deep links, server-side renders)."""
        scale = self._state.scale if scale is None else scale
        if not _is_finite(pan_x, pan_y, scale):
            return
        self._commit(Point(x=pan_x, y=pan_y), scale)

    def center_on(self, world_x: float, world_y: float) -> None:
        """Pan so the given world point sits at the viewport centre."""
        if not _is_finite(world_x, world_y):
            return
        cx, cy = self._center()
        scale = self._state.scale
        self._commit(Point(x=cx - world_x * scale, y=cy - world_y * scale), scale)

    def zoom_to_fit(self, positions: Optional[Iterable[SignaturePosition]] = None) -> None:
        """Fit every known position into the viewport with a margin."""
        if not self._size.is_measured():
            logger.debug("zoom_to_fit skipped: viewport not measured")
            return
        source = self._positions if positions is None else positions
        bounds = layout_bounds(source, self.settings.element_width, self.settings.element_height)
        if bounds is None:
            return

        min_x, min_y, max_x, max_y = bounds
        box_w = max(max_x - min_x, 1.0)
        box_h = max(max_y - min_y, 1.0)
        margin = self.settings.fit_margin
        avail_w = max(self._size.width - 2 * margin, 1.0)
        avail_h = max(self._size.height - 2 * margin, 1.0)

        scale = self._clamp(min(avail_w / box_w, avail_h / box_h))
        cx, cy = self._center()
        mid_x = (min_x + max_x) / 2
        mid_y = (min_y + max_y) / 2
        self._commit(Point(x=cx - mid_x * scale, y=cy - mid_y * scale), scale)
