"""Tests for RunContext cancellation and deadlines."""

from __future__ import annotations

import threading
import time

import pytest

from esprojector.foundation.domain import (
    CancelledError,
    DeadlineExceededError,
    RunContext,
)


@pytest.mark.unit
class TestRunContextCancellation:
    def test_background_is_live(self) -> None:
        ctx = RunContext.background()
        assert not ctx.done()
        assert ctx.err() is None
        assert ctx.remaining() is None

    def test_cancel_sets_cancelled_error(self) -> None:
        ctx = RunContext.background()
        ctx.cancel()
        assert ctx.done()
        assert isinstance(ctx.err(), CancelledError)

    def test_cancel_is_idempotent(self) -> None:
        ctx = RunContext.background()
        ctx.cancel()
        first = ctx.err()
        ctx.cancel()
        assert ctx.err() is first

    def test_context_manager_cancels_on_exit(self) -> None:
        with RunContext.background() as ctx:
            assert not ctx.done()
        assert isinstance(ctx.err(), CancelledError)

    def test_cancel_from_other_thread_wakes_wait(self) -> None:
        ctx = RunContext.background()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        started = time.monotonic()
        assert ctx.wait(5.0) is True
        assert time.monotonic() - started < 2.0
        timer.join()

    def test_wait_returns_false_on_timeout(self) -> None:
        ctx = RunContext.background()
        assert ctx.wait(0.01) is False

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            RunContext.with_timeout(-1)


@pytest.mark.unit
class TestRunContextDeadline:
    def test_zero_timeout_is_immediately_expired(self) -> None:
        ctx = RunContext.with_timeout(0)
        assert isinstance(ctx.err(), DeadlineExceededError)

    def test_deadline_expires(self) -> None:
        ctx = RunContext.with_timeout(0.05)
        assert not ctx.done()
        assert ctx.wait(5.0) is True
        err = ctx.err()
        assert isinstance(err, DeadlineExceededError)
        assert err.timeout == 0.05

    def test_cancel_after_expiry_keeps_deadline_error(self) -> None:
        ctx = RunContext.with_timeout(0)
        ctx.cancel()
        assert isinstance(ctx.err(), DeadlineExceededError)

    def test_remaining_decreases(self) -> None:
        ctx = RunContext.with_timeout(10)
        remaining = ctx.remaining()
        assert remaining is not None
        assert 0 < remaining <= 10


@pytest.mark.unit
class TestRunContextTree:
    def test_cancel_parent_cancels_child(self) -> None:
        parent = RunContext.background()
        child = parent.child()
        parent.cancel()
        assert isinstance(child.err(), CancelledError)

    def test_cancel_child_leaves_parent_live(self) -> None:
        parent = RunContext.background()
        child = parent.child()
        child.cancel()
        assert child.done()
        assert not parent.done()

    def test_child_of_done_parent_is_done(self) -> None:
        parent = RunContext.background()
        parent.cancel()
        assert parent.child().done()

    def test_child_inherits_earlier_parent_deadline(self) -> None:
        parent = RunContext.with_timeout(0.05)
        child = parent.child(timeout=60)
        remaining = child.remaining()
        assert remaining is not None
        assert remaining <= 0.05
        assert child.wait(5.0) is True
        assert isinstance(child.err(), DeadlineExceededError)

    def test_child_keeps_own_earlier_deadline(self) -> None:
        parent = RunContext.with_timeout(60)
        child = parent.child(timeout=0)
        assert child.done()
        assert not parent.done()

    def test_cancelled_children_are_released(self) -> None:
        parent = RunContext.background()
        children = [parent.child() for _ in range(100)]
        for child in children:
            child.cancel()
        assert parent._children == []
        assert not parent.done()

    def test_expired_child_is_released(self) -> None:
        parent = RunContext.background()
        child = parent.child(timeout=0)
        assert isinstance(child.err(), DeadlineExceededError)
        assert parent._children == []

    def test_live_child_stays_attached(self) -> None:
        parent = RunContext.background()
        live = parent.child()
        parent.child().cancel()
        assert parent._children == [live]
        parent.cancel()
        assert isinstance(live.err(), CancelledError)
