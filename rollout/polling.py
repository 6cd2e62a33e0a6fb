#!/usr/bin/env python3
"""
Fixed-interval polling helper shared by the health gate and the job monitor.

Sleeping is injectable so tests can drive it with a fake clock.
"""

import time
from dataclasses import dataclass
from typing import Any


@dataclass
class PollOutcome:
    satisfied: bool
    value: Any = None
    attempts: int = 0
    cancelled: bool = False


class Poller:
    """Call a probe until a predicate holds or the attempt budget runs out."""

    def __init__(self, interval, max_attempts, sleep=None, cancel_event=None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep or time.sleep
        self.cancel_event = cancel_event

    def _cancelled(self):
        return self.cancel_event is not None and self.cancel_event.is_set()

    def until(self, probe, done, on_attempt=None):
        """
        Run probe() up to max_attempts times.

        Args:
            probe: callable returning the latest observation
            done: predicate over the observation
            on_attempt: optional callback(attempt, value) for progress output

        Returns:
            PollOutcome with the last observed value
        """
        value = None
        for attempt in range(1, self.max_attempts + 1):
            if self._cancelled():
                return PollOutcome(False, value, attempt - 1, cancelled=True)
            value = probe()
            if on_attempt:
                on_attempt(attempt, value)
            if done(value):
                return PollOutcome(True, value, attempt)
            if attempt < self.max_attempts:
                self.sleep(self.interval)
        return PollOutcome(False, value, self.max_attempts)
