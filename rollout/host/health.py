#!/usr/bin/env python3
"""
Health gate - a started process only counts once its health endpoint
answers 2xx.
"""

import time

import requests

from ..errors import HealthCheckTimeoutError
from ..models import HealthResult
from ..polling import Poller


SNIPPET_LENGTH = 300


def health_url(port, path='/health'):
    return f"http://127.0.0.1:{port}{path}"


class HealthGate:

    def __init__(self, interval=2.0, max_attempts=30, session=None, sleep=None, timeout=5):
        self.interval = interval
        self.max_attempts = max_attempts
        self.session = session or requests.Session()
        self.sleep = sleep
        self.timeout = timeout

    def probe(self, url):
        started = time.monotonic()
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            return HealthResult(False, latency=time.monotonic() - started, error=str(e))
        return HealthResult(
            passed=200 <= response.status_code < 300,
            status_code=response.status_code,
            latency=time.monotonic() - started,
            snippet=response.text[:SNIPPET_LENGTH],
        )

    def wait(self, url, on_attempt=None):
        """
        Poll url until it passes.

        Raises:
            HealthCheckTimeoutError: retry budget exhausted
        """
        poller = Poller(self.interval, self.max_attempts, sleep=self.sleep)
        outcome = poller.until(lambda: self.probe(url), lambda result: result.passed, on_attempt)
        if not outcome.satisfied:
            last = outcome.value
            reason = f"HTTP {last.status_code}" if last.status_code else last.error
            raise HealthCheckTimeoutError(
                f"{url} not healthy after {outcome.attempts} attempts (last: {reason})"
            )
        return outcome.value
