"""
Wall canvas composition.

``WallCanvas`` wires the subsystem together for one wall:

    entries ──→ SignatureLayoutCache ──→ positions + reveal order
                                            │
    pointer / zoom ──→ ViewportController ──┤
                                            ▼
                                      ViewportCuller ──→ RevealComposer ──→ CanvasFrame

The UI shell feeds it entry-source answers, pointer events and its
measured size, then pulls one ``frame()`` per paint.  Element clicks go
through ``click()``, which drops the click that ends a pan gesture.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Optional

from .culling import ViewportCuller
from .dialog import SignatureDialogHandle
from .layout import LayoutOptions, SignatureLayoutCache
from .models import CanvasFrame, CanvasSettings, SignatureLayout
from .reveal import RevealComposer, RevealScheduler
from .source import normalize_entries
from .viewport import ViewportController

logger = logging.getLogger(__name__)


class WallCanvas:
    """One wall's canvas: layout, viewport, culling and reveal."""

    def __init__(
        self,
        settings: Optional[CanvasSettings] = None,
        on_open_signature: Optional[Callable[[str], None]] = None,
        dialog: Optional[SignatureDialogHandle] = None,
        scheduler: Optional[RevealScheduler] = None,
        fit_on_first_layout: bool = True,
    ):
        self.settings = settings or CanvasSettings()
        self.on_open_signature = on_open_signature
        self.dialog = dialog
        self.scheduler = scheduler
        self.fit_on_first_layout = fit_on_first_layout

        self.viewport = ViewportController(self.settings)
        self._layout_cache = SignatureLayoutCache(LayoutOptions.from_settings(self.settings))
        self._culler = ViewportCuller(
            self.settings.element_width,
            self.settings.element_height,
            buffer=self.settings.cull_buffer,
        )
        self._composer = RevealComposer(self.settings)
        self._layout: Optional[SignatureLayout] = None
        self._needs_fit = False

    @property
    def layout(self) -> Optional[SignatureLayout]:
        """Current layout, or None while entries are unavailable."""
        return self._layout

    @property
    def total_count(self) -> int:
        return len(self._layout.positions) if self._layout else 0

    def set_entries(self, raw: Any) -> Optional[SignatureLayout]:
        """Feed the latest entry-source answer (pending, not found or list)."""
        entries = normalize_entries(raw)
        if entries is None:
            if self._layout is not None and self.scheduler:
                self.scheduler.reset()
            self._layout = None
            self.viewport.set_positions(())
            return None

        layout = self._layout_cache.get(entries)
        if layout is not self._layout:
            first = self._layout is None
            self._layout = layout
            self.viewport.set_positions(layout.positions)
            if self.scheduler:
                self.scheduler.retain(layout.reveal_order)
            if first and self.fit_on_first_layout:
                self._needs_fit = True
            logger.debug("Wall canvas laid out %d signatures", len(layout.positions))

        self._fit_if_pending()
        return layout

    def set_viewport_size(self, width: float, height: float) -> None:
        self.viewport.set_viewport_size(width, height)
        self._fit_if_pending()

    def _fit_if_pending(self) -> None:
        if self._needs_fit and self.viewport.size.is_measured():
            self._needs_fit = False
            self.viewport.zoom_to_fit()

    def frame(self) -> CanvasFrame:
        """Visible, reveal-annotated elements for the current viewport."""
        state = self.viewport.get_snapshot()
        size = self.viewport.size
        if self._layout is None:
            return CanvasFrame(viewport=state, size=size, zoom_percent=self.viewport.percent)

        visible = self._culler.cull(
            self._layout.positions, state.pan, state.scale, size.width, size.height,
        )
        elements = self._composer.compose(visible, self._layout.reveal_order)
        if self.scheduler:
            self.scheduler.schedule(elements)

        return CanvasFrame(
            elements=tuple(elements),
            viewport=state,
            size=size,
            total_count=self.total_count,
            zoom_percent=self.viewport.percent,
        )

    def click(self, entry_id: str) -> bool:
        """Handle a click on an element; returns True if it opened the detail view."""
        if self.viewport.was_dragging():
            return False
        if self._layout is None:
            return False
        position = self._layout.get_position(entry_id)
        if position is None:
            return False

        if self.on_open_signature:
            self.on_open_signature(entry_id)
        if self.dialog is not None:
            self.dialog.open(position.signature)
        return True


def frame_for_view(
    entries: Any,
    width: float,
    height: float,
    pan_x: Optional[float] = None,
    pan_y: Optional[float] = None,
    zoom: Optional[float] = None,
    settings: Optional[CanvasSettings] = None,
) -> CanvasFrame:
    """One-shot frame for a fixed view; zooms to fit unless a transform is given."""
    explicit = pan_x is not None or pan_y is not None or zoom is not None
    canvas = WallCanvas(settings=settings, fit_on_first_layout=not explicit)
    canvas.set_viewport_size(width, height)
    canvas.set_entries(entries)
    if explicit:
        pan = canvas.viewport.pan
        canvas.viewport.set_view(
            pan.x if pan_x is None else pan_x,
            pan.y if pan_y is None else pan_y,
            zoom,
        )
    return canvas.frame()
