"""Tests for ReconcileContext (cancel/deadline/check/wait/note)."""

import time

import pytest

from cloudresources.context import ReconcileContext
from cloudresources.errors import ReconcileCancelledError


def test_check_passes_when_not_cancelled() -> None:
    ctx = ReconcileContext()
    ctx.check()
    assert ctx.cancelled is False
    assert ctx.remaining() is None


def test_cancel_makes_check_raise() -> None:
    """cancel() makes check() raise ReconcileCancelledError."""
    ctx = ReconcileContext()
    ctx.cancel()
    with pytest.raises(ReconcileCancelledError, match="context cancelled"):
        ctx.check()


def test_expired_deadline_raises_deadline_exceeded() -> None:
    ctx = ReconcileContext(deadline=time.monotonic() - 1)
    assert ctx.expired
    assert ctx.remaining() == 0.0
    with pytest.raises(ReconcileCancelledError, match="deadline exceeded"):
        ctx.check()


def test_with_timeout_sets_future_deadline() -> None:
    ctx = ReconcileContext.with_timeout(60)
    remaining = ctx.remaining()
    assert remaining is not None
    assert 0 < remaining <= 60
    ctx.check()


def test_cancelled_error_reports_last_noted_status() -> None:
    """The last noted status is reported so the caller still gets partial progress."""
    ctx = ReconcileContext()
    ctx.note("createReplicationGroup() in progress, current aws elasticache status is creating")
    ctx.cancel()
    with pytest.raises(ReconcileCancelledError) as exc_info:
        ctx.check()
    assert exc_info.value.status_message == ctx.status
    assert "creating" in exc_info.value.status_message


def test_wait_returns_early_and_raises_when_cancelled() -> None:
    """wait() wakes as soon as the context is cancelled instead of sleeping the full interval."""
    ctx = ReconcileContext()
    ctx.cancel()
    started = time.monotonic()
    with pytest.raises(ReconcileCancelledError):
        ctx.wait(30)
    assert time.monotonic() - started < 5


def test_wait_is_bounded_by_deadline() -> None:
    ctx = ReconcileContext.with_timeout(0.05)
    started = time.monotonic()
    with pytest.raises(ReconcileCancelledError):
        ctx.wait(30)
    assert time.monotonic() - started < 5
