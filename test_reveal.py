"""
Tests for staggered reveal: ring math, RevealComposer and RevealScheduler.

The scheduler is driven by a fake ``schedule`` function so no event loop
or real timers are involved, except in the one test that exercises the
default asyncio scheduling.
"""

import asyncio

import pytest
from unittest.mock import Mock

from wall_canvas.models import CanvasSettings, RenderElement, SignaturePosition
from wall_canvas.reveal import (
    RevealComposer,
    RevealScheduler,
    reveal_delay_ms,
    ring_index_for,
)


class FakeTimers:
    """Collects scheduled callbacks so tests can fire them by hand."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        handle = Mock()
        self.calls.append((delay, callback, handle))
        return handle

    def fire_all(self):
        for _, callback, handle in list(self.calls):
            if not handle.cancel.called:
                callback()


def element(entry_id, delay_ms):
    return RenderElement(id=entry_id, x=0, y=0, delay_ms=delay_ms)


class TestRingMath:
    """Tests for ring_index_for / reveal_delay_ms"""

    @pytest.mark.parametrize("index,ring", [
        (0, 0), (4, 0), (5, 1), (9, 1), (10, 2), (49, 9), (50, 0), (57, 1),
    ])
    def test_ring_index(self, index, ring):
        assert ring_index_for(index, 5, 10) == ring

    def test_delay_defaults(self):
        assert reveal_delay_ms(0) == 0
        assert reveal_delay_ms(5) == 30
        assert reveal_delay_ms(12) == 60

    def test_delay_is_bounded(self):
        delays = {reveal_delay_ms(i) for i in range(1000)}
        assert max(delays) == 9 * 30

    def test_base_delay(self):
        assert reveal_delay_ms(7, ring_size=5, stagger_ms=10, base_delay_ms=100) == 110

    def test_negative_index_treated_as_first(self):
        assert ring_index_for(-3, 5, 10) == 0


class TestRevealComposer:
    """Tests for RevealComposer.compose"""

    def test_assigns_rank_ring_and_delay(self):
        composer = RevealComposer(CanvasSettings())
        order = tuple(f"e{i}" for i in range(12))
        visible = [SignaturePosition(id="e11", x=1, y=2, signature="sig"),
                   SignaturePosition(id="e0", x=3, y=4)]

        elements = composer.compose(visible, order)

        assert [e.id for e in elements] == ["e11", "e0"]
        assert elements[0].reveal_index == 11
        assert elements[0].ring_index == 2
        assert elements[0].delay_ms == 60
        assert elements[0].signature == "sig"
        assert (elements[1].x, elements[1].y) == (3, 4)
        assert elements[1].delay_ms == 0

    def test_unknown_id_reveals_with_first_ring(self):
        composer = RevealComposer()
        elements = composer.compose([SignaturePosition(id="ghost", x=0, y=0)], ("a", "b"))
        assert elements[0].reveal_index == 0
        assert elements[0].delay_ms == 0

    def test_custom_timing(self):
        composer = RevealComposer(CanvasSettings(ring_size=2, stagger_ms=50, base_delay_ms=20))
        elements = composer.compose(
            [SignaturePosition(id=i, x=0, y=0) for i in "abcde"], tuple("abcde"),
        )
        assert [e.delay_ms for e in elements] == [20, 20, 70, 70, 120]


class TestRevealScheduler:
    """Tests for RevealScheduler"""

    def test_one_timer_per_distinct_delay(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)

        count = scheduler.schedule([element("a", 0), element("b", 0), element("c", 30)])

        assert count == 2
        assert [delay for delay, _, _ in timers.calls] == [0.0, 0.03]
        assert scheduler.pending == {"a", "b", "c"}

    def test_fire_reveals_batch(self):
        timers = FakeTimers()
        on_reveal = Mock()
        scheduler = RevealScheduler(on_reveal=on_reveal, schedule=timers)
        scheduler.schedule([element("a", 0), element("b", 30)])

        timers.calls[0][1]()

        on_reveal.assert_called_once_with(["a"])
        assert scheduler.is_revealed("a")
        assert not scheduler.is_revealed("b")
        assert scheduler.pending == {"b"}

    def test_elements_reveal_only_once(self):
        timers = FakeTimers()
        on_reveal = Mock()
        scheduler = RevealScheduler(on_reveal=on_reveal, schedule=timers)

        scheduler.schedule([element("a", 0)])
        timers.fire_all()
        assert scheduler.schedule([element("a", 0)]) == 0
        assert on_reveal.call_count == 1

    def test_pending_elements_not_rescheduled(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)
        scheduler.schedule([element("a", 0)])
        assert scheduler.schedule([element("a", 0)]) == 0
        assert len(timers.calls) == 1

    def test_cancel_drops_pending(self):
        timers = FakeTimers()
        on_reveal = Mock()
        scheduler = RevealScheduler(on_reveal=on_reveal, schedule=timers)
        scheduler.schedule([element("a", 0), element("b", 30)])

        scheduler.cancel()

        assert all(handle.cancel.called for _, _, handle in timers.calls)
        assert scheduler.pending == frozenset()
        timers.calls[0][1]()  # a late timer firing anyway is ignored
        on_reveal.assert_not_called()

    def test_retain_forgets_removed_ids(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)
        scheduler.schedule([element("a", 0), element("b", 0)])
        timers.fire_all()

        scheduler.retain(["a", "c"])

        assert scheduler.revealed == {"a"}

    def test_reset(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)
        scheduler.schedule([element("a", 0)])
        timers.fire_all()
        scheduler.reset()
        assert scheduler.revealed == frozenset()

    def test_failing_callback_is_logged(self, caplog):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(side_effect=RuntimeError("paint")), schedule=timers)
        scheduler.schedule([element("a", 0)])
        timers.fire_all()
        assert scheduler.is_revealed("a")
        assert "Reveal callback failed" in caplog.text

    def test_fired_timers_are_released(self):
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=lambda delay, callback: callback())
        for i in range(1000):
            scheduler.schedule([element(f"s{i}", 0)])

        assert scheduler.timer_count == 0
        assert scheduler.pending == frozenset()
        assert len(scheduler.revealed) == 1000

    def test_timer_released_when_it_fires_later(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)
        scheduler.schedule([element("a", 0), element("b", 30)])
        assert scheduler.timer_count == 2

        timers.calls[0][1]()
        assert scheduler.timer_count == 1
        timers.calls[1][1]()
        assert scheduler.timer_count == 0

    def test_cancel_releases_timers(self):
        timers = FakeTimers()
        scheduler = RevealScheduler(on_reveal=Mock(), schedule=timers)
        scheduler.schedule([element("a", 0)])
        scheduler.cancel()
        assert scheduler.timer_count == 0

    def test_default_schedule_uses_event_loop(self):
        revealed = []

        async def run():
            scheduler = RevealScheduler(on_reveal=revealed.extend)
            scheduler.schedule([element("a", 0), element("b", 10)])
            await asyncio.sleep(0.05)
            return scheduler

        scheduler = asyncio.run(run())
        assert revealed == ["a", "b"]
        assert scheduler.pending == frozenset()
