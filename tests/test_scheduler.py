"""Tests for the delayed AI-move scheduler."""
import logging
import threading

import pytest

from truco.scheduler import DelayedScheduler


def test_negative_delay():
    with pytest.raises(ValueError):
        DelayedScheduler(delay=-1)


def test_runs_after_delay():
    scheduler = DelayedScheduler(delay=0)
    ran = threading.Event()
    scheduler.schedule(ran.set, label="move")
    assert scheduler.wait(timeout=5)
    assert ran.is_set()
    assert not scheduler.pending


def test_cancel_drops_the_application():
    scheduler = DelayedScheduler(delay=30)
    calls = []
    scheduler.schedule(lambda: calls.append(1))
    assert scheduler.pending
    assert scheduler.cancel()
    assert not scheduler.cancel()
    assert scheduler.wait(timeout=1)
    assert calls == []


def test_new_schedule_supersedes_pending():
    scheduler = DelayedScheduler(delay=30)
    calls = []
    first = scheduler.schedule(lambda: calls.append("first"))
    scheduler.schedule(lambda: calls.append("second"))
    assert first.cancelled
    assert scheduler.run_pending()
    assert not scheduler.run_pending()
    # A superseded timer that fires anyway is discarded.
    scheduler._fire(first)
    assert calls == ["second"]


def test_wait_times_out():
    scheduler = DelayedScheduler(delay=30)
    scheduler.schedule(lambda: None)
    assert not scheduler.wait(timeout=0.05)
    scheduler.cancel()


def test_wait_follows_chained_applications():
    scheduler = DelayedScheduler(delay=0)
    calls = []

    def first():
        calls.append("first")
        scheduler.schedule(lambda: calls.append("second"))

    scheduler.schedule(first)
    assert scheduler.wait(timeout=5)
    assert calls == ["first", "second"]


def test_failing_application_is_logged(caplog):
    scheduler = DelayedScheduler(delay=0)

    def boom():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger="truco.scheduler"):
        scheduler.schedule(boom, label="bad")
        assert scheduler.wait(timeout=5)
    assert any("bad" in r.getMessage() for r in caplog.records)
