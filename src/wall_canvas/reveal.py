"""
Staggered reveal for the wall canvas.

Elements appear ring by ring instead of all at once.  A ring is a batch of
``ring_size`` consecutive ids in the reveal order; every element of a ring
shares one delay:

    ring_index = (reveal_index // ring_size) % ring_count
    delay_ms   = base_delay_ms + ring_index * stagger_ms

The modulo bounds the longest delay at
``base_delay_ms + (ring_count - 1) * stagger_ms`` however many signatures
the wall holds.

``RevealComposer`` turns culled positions into ``RenderElement`` values.
``RevealScheduler`` performs the timed "become visible" flips with one
timer per distinct delay.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Optional

from .layout import reveal_index_map
from .models import CanvasSettings, RenderElement, SignaturePosition

logger = logging.getLogger(__name__)

# schedule(delay_seconds, callback) -> handle with a ``cancel()`` method
ScheduleFn = Callable[[float, Callable[[], None]], Any]


def ring_index_for(reveal_index: int, ring_size: int, ring_count: int) -> int:
    return (max(0, reveal_index) // ring_size) % ring_count


def reveal_delay_ms(
    reveal_index: int,
    ring_size: int = 5,
    ring_count: int = 10,
    stagger_ms: float = 30.0,
    base_delay_ms: float = 0.0,
) -> float:
    """Delay before the element at ``reveal_index`` becomes visible."""
    return base_delay_ms + ring_index_for(reveal_index, ring_size, ring_count) * stagger_ms


class RevealComposer:
    """Assigns reveal rank, ring and delay to visible positions."""

    def __init__(self, settings: Optional[CanvasSettings] = None):
        self.settings = settings or CanvasSettings()
        self._order_key: Optional[tuple[str, ...]] = None
        self._index_by_id: dict[str, int] = {}

    def _indices(self, reveal_order: Sequence[str]) -> dict[str, int]:
        key = tuple(reveal_order)
        if key != self._order_key:
            self._index_by_id = reveal_index_map(key)
            self._order_key = key
        return self._index_by_id

    def compose(
        self,
        visible: Iterable[SignaturePosition],
        reveal_order: Sequence[str],
    ) -> list[RenderElement]:
        s = self.settings
        index_by_id = self._indices(reveal_order)
        elements = []
        for pos in visible:
            # Ids missing from the reveal order appear with the first ring.
            reveal_index = index_by_id.get(pos.id, 0)
            ring = ring_index_for(reveal_index, s.ring_size, s.ring_count)
            elements.append(RenderElement(
                id=pos.id,
                x=pos.x,
                y=pos.y,
                signature=pos.signature,
                reveal_index=reveal_index,
                ring_index=ring,
                delay_ms=s.base_delay_ms + ring * s.stagger_ms,
            ))
        return elements


def _loop_schedule(delay_seconds: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay_seconds, callback)


class RevealScheduler:
    """Flips elements to visible after their ring's delay.

    Each id is revealed at most once per layout: elements that scroll out
    and back in are not animated again.  Call ``reset()`` when a new layout
    replaces the old one.

    Usage:
        scheduler = RevealScheduler(on_reveal=lambda ids: paint(ids))
        scheduler.schedule(composer.compose(visible, layout.reveal_order))
    """

    def __init__(
        self,
        on_reveal: Callable[[list[str]], None],
        schedule: Optional[ScheduleFn] = None,
    ):
        self.on_reveal = on_reveal
        self._schedule = schedule or _loop_schedule
        self._revealed: set[str] = set()
        self._pending: set[str] = set()
        self._handles: dict[int, Any] = {}
        self._next_token = 0

    @property
    def revealed(self) -> frozenset[str]:
        return frozenset(self._revealed)

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    def is_revealed(self, entry_id: str) -> bool:
        return entry_id in self._revealed

    def schedule(self, elements: Iterable[RenderElement]) -> int:
        """Schedule reveals for new elements; returns the number of timers set."""
        batches: dict[float, list[str]] = {}
        for element in elements:
            if element.id in self._revealed or element.id in self._pending:
                continue
            batches.setdefault(element.delay_ms, []).append(element.id)

        for delay_ms in sorted(batches):
            ids = batches[delay_ms]
            self._pending.update(ids)
            token = self._next_token
            self._next_token += 1
            self._handles[token] = None
            handle = self._schedule(delay_ms / 1000.0, lambda token=token, ids=ids: self._fire(token, ids))
            # A scheduler may run the callback before returning its handle.
            if token in self._handles:
                self._handles[token] = handle
        return len(batches)

    @property
    def timer_count(self) -> int:
        """Timers scheduled and not yet fired or cancelled."""
        return len(self._handles)

    def _fire(self, token: int, ids: list[str]) -> None:
        self._handles.pop(token, None)
        fresh = [entry_id for entry_id in ids if entry_id in self._pending]
        if not fresh:
            return
        self._pending.difference_update(fresh)
        self._revealed.update(fresh)
        try:
            self.on_reveal(fresh)
        except Exception:
            logger.exception("Reveal callback failed for %d elements", len(fresh))

    def cancel(self) -> None:
        """Drop every pending timer; already revealed ids stay revealed."""
        for handle in self._handles.values():
            cancel = getattr(handle, "cancel", None)
            if cancel is not None:
                cancel()
        self._handles.clear()
        self._pending.clear()

    def retain(self, entry_ids: Iterable[str]) -> None:
        """Forget revealed ids that left the layout; the rest stay revealed."""
        keep = set(entry_ids)
        self._revealed.intersection_update(keep)
        self._pending.intersection_update(keep)

    def reset(self) -> None:
        """Cancel pending timers and forget revealed ids (new layout)."""
        self.cancel()
        self._revealed.clear()
