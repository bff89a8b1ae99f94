"""Retry delays for service API requests."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import timedelta

_TIMEOUT_DELAY = timedelta(milliseconds=100)


@dataclass
class SsmCliRetryer:
    """Chooses the delay before retrying a failed service request."""

    num_max_retries: int = 3
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def retry_rules(self, operation_name: str, error: BaseException | str | None, retry_count: int) -> timedelta:
        """Return a short delay for GetMessages timeouts, otherwise an exponential one above a second."""
        if operation_name == "GetMessages" and error is not None and "Client.Timeout" in str(error):
            return _TIMEOUT_DELAY
        millis = 2**retry_count * (self.rng.randrange(500) + 1000)
        return timedelta(milliseconds=millis)