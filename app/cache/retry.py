from typing import Iterator

from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff

MAX_RECONNECT_DELAY_MS = 2000


def reconnect_delay(attempt: int, max_attempts: int, base_delay: int) -> int | None:
    """
    Delay in milliseconds before reconnect attempt number `attempt` (1-based).

    Grows linearly with the attempt number and is capped at 2s. Returns None
    once max_attempts is exceeded, meaning give up.
    """
    if attempt > max_attempts:
        return None
    return min(max(attempt, 0) * base_delay, MAX_RECONNECT_DELAY_MS)


def reconnect_delays(max_attempts: int, base_delay: int) -> Iterator[float]:
    """Seconds to wait before each reconnect attempt, until reconnect_delay gives up."""
    attempt = 1
    delay = reconnect_delay(attempt, max_attempts, base_delay)
    while delay is not None:
        yield delay / 1000
        attempt += 1
        delay = reconnect_delay(attempt, max_attempts, base_delay)


def command_retry() -> Retry:
    """Commands fail on the first connection error; reconnecting is done separately."""
    return Retry(NoBackoff(), 0)
