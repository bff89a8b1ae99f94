"""Back-off retry strategies for reconnecting a channel."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

SLEEP_CONSTANT = 2


def retry(log: Any, attempts: int, sleep: float, fn: Callable[[], Any]) -> Any:
    """Call fn up to attempts times, doubling the sleep (seconds) after each failure.

    Returns fn's result on success and re-raises the last error once attempts run out.
    """
    log.info("Retrying connection to channel")
    last_error: Exception | None = None
    while attempts > 0:
        attempts -= 1
        try:
            return fn()
        except Exception as exc:
            last_error = exc
            time.sleep(sleep)
            sleep *= SLEEP_CONSTANT
            log.debugf("%s attempts to connect web socket connection.", attempts)
    if last_error is not None:
        raise last_error
    return None


@dataclass
class RepeatableExponentialRetryer:
    """Retries a callable with exponential delays that restart once they exceed a maximum."""

    callable_func: Callable[[], Any]
    geometric_ratio: float
    initial_delay_in_milli: int
    max_delay_in_milli: int
    max_attempts: int

    def next_sleep_time(self, attempt: int) -> timedelta:
        """Return the delay before the given retry attempt, in whole milliseconds."""
        millis = int(self.initial_delay_in_milli * self.geometric_ratio**attempt)
        return timedelta(milliseconds=millis)

    def call(self) -> Any:
        """Call the function, retrying on error; re-raise after max_attempts failed retries."""
        attempt = 0
        failed_attempts = 0
        while True:
            try:
                return self.callable_func()
            except Exception:
                if failed_attempts == self.max_attempts:
                    raise
            delay = self.next_sleep_time(attempt)
            if delay // timedelta(milliseconds=1) > self.max_delay_in_milli:
                attempt = 0
                delay = self.next_sleep_time(attempt)
            time.sleep(delay.total_seconds())
            attempt += 1
            failed_attempts += 1