"""Unit tests for the polling helper."""

import threading

import pytest

from rollout.polling import Poller


def test_poller_stops_when_done():
    """Test that polling ends on the first satisfying observation."""
    sleeps = []
    values = iter([1, 2, 3, 4])
    poller = Poller(5, 10, sleep=sleeps.append)

    outcome = poller.until(lambda: next(values), lambda v: v == 3)

    assert outcome.satisfied is True
    assert outcome.value == 3
    assert outcome.attempts == 3
    assert sleeps == [5, 5]


def test_poller_exhausts_budget():
    """Test that the last observation is kept and no sleep follows the last attempt."""
    sleeps = []
    poller = Poller(2, 4, sleep=sleeps.append)

    outcome = poller.until(lambda: 'InProgress', lambda v: v == 'Success')

    assert outcome.satisfied is False
    assert outcome.value == 'InProgress'
    assert outcome.attempts == 4
    assert len(sleeps) == 3


def test_poller_reports_each_attempt():
    """Test progress callback receives attempt numbers."""
    seen = []
    poller = Poller(0, 3, sleep=lambda s: None)

    poller.until(lambda: 'x', lambda v: False, on_attempt=lambda attempt, value: seen.append(attempt))

    assert seen == [1, 2, 3]


def test_poller_cancel_event():
    """Test that a set cancel event stops polling before the next probe."""
    cancel = threading.Event()
    probes = []

    def probe():
        probes.append(1)
        if len(probes) == 2:
            cancel.set()
        return len(probes)

    poller = Poller(0, 10, sleep=lambda s: None, cancel_event=cancel)
    outcome = poller.until(probe, lambda v: False)

    assert outcome.cancelled is True
    assert outcome.satisfied is False
    assert outcome.attempts == 2
    assert outcome.value == 2


def test_poller_rejects_empty_budget():
    """Test that zero attempts is refused."""
    with pytest.raises(ValueError):
        Poller(1, 0)
