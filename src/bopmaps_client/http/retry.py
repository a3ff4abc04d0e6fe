"""Bounded exponential-backoff retry for transient transport failures."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from bopmaps_client.constants import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_BASE_DELAY
from bopmaps_client.http.envelope import ResponseEnvelope

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetryState:
    """Per-call retry bookkeeping."""

    attempt: int = 0
    delay: float = DEFAULT_RETRY_BASE_DELAY


class RetryPolicy:
    """Re-runs an operation while it fails with ``network`` or ``timeout``.

    Retry loop:
    1. Run the operation
    2. If it succeeded, or failed with any non-transient kind: return it
    3. If ``max_retries`` retries were already spent: return the last failure
    4. Otherwise sleep ``delay``, double it, and go to 1

    The operation therefore runs between 1 and ``max_retries + 1`` times, and
    sleeps happen only between attempts.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_RETRY_BASE_DELAY,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def execute(self, operation: Callable[[], Awaitable[ResponseEnvelope]]) -> ResponseEnvelope:
        state = RetryState(delay=self.initial_delay)
        while True:
            envelope = await operation()
            if envelope.success or not envelope.is_transient:
                return envelope

            if state.attempt >= self.max_retries:
                if self.max_retries:
                    logger.warning(
                        "Giving up after %d retries (%s)",
                        self.max_retries,
                        envelope.error_kind,
                        extra={"error_kind": envelope.error_kind, "max_retries": self.max_retries},
                    )
                return envelope

            logger.warning(
                "Transient %s failure, sleeping %.1fs (attempt %d/%d)",
                envelope.error_kind,
                state.delay,
                state.attempt + 1,
                self.max_retries,
                extra={
                    "error_kind": envelope.error_kind,
                    "attempt": state.attempt + 1,
                    "max_retries": self.max_retries,
                },
            )
            await self._sleep(state.delay)
            state.delay *= 2
            state.attempt += 1
