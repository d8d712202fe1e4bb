"""Retry policy for cloud requests."""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from loguru import logger

from .exceptions import TransportError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a cloud request is attempted and how long to wait between.

    The default of a single attempt keeps the fail-fast behaviour: the user
    retries the whole operation manually.
    """

    max_attempts: int = 1
    backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0

    @classmethod
    def from_config(cls, sync_config) -> "RetryPolicy":
        return cls(
            max_attempts=sync_config.max_attempts,
            backoff_seconds=sync_config.backoff_seconds,
            backoff_multiplier=sync_config.backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))

    def call(
        self,
        fn: Callable[..., T],
        *args,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ) -> T:
        """Call ``fn``, retrying TransportError up to max_attempts in total."""
        attempt = 1
        while True:
            try:
                return fn(*args, **kwargs)
            except TransportError as e:
                if attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Cloud request failed (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                sleep(delay)
                attempt += 1


SINGLE_ATTEMPT = RetryPolicy(max_attempts=1)
