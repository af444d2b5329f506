"""
Call-with-retry-and-fallback combinator for the generation boundary.

Every caller of the external generation boundary goes through
call_with_retry. An attempt is an async callable returning a
GenerationResult; a raised exception or a timeout counts as a
GenerationCallError. After each failed attempt except the last, the
combinator sleeps for backoff(attempt) seconds. When every attempt has
failed, the fallback producer supplies the value.

Example:
    >>> outcome = await call_with_retry(
    ...     lambda: generator.generate(request),
    ...     fallback=lambda: fallback_resolution(request),
    ...     max_attempts=3,
    ...     backoff=linear_backoff(1.0),
    ... )
    >>> outcome.used_fallback
    False
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

from castaway.models.outcome import (
    GenerationCallError,
    GenerationOk,
    GenerationParseError,
    GenerationResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GenerationFailure = Union[GenerationParseError, GenerationCallError]
Backoff = Callable[[int], float]


def linear_backoff(base: float) -> Backoff:
    """Delay of base x attempt number (1s, 2s, 3s for base 1.0)."""

    def _delay(attempt: int) -> float:
        return base * attempt

    return _delay


@dataclass
class RetryOutcome(Generic[T]):
    """What call_with_retry produced and how it got there"""

    value: T
    attempts: int
    used_fallback: bool
    failures: list[GenerationFailure] = field(default_factory=list)


async def _run_attempt(
    attempt: Callable[[], Awaitable[GenerationResult]],
    timeout: float | None,
) -> GenerationResult:
    try:
        if timeout is None:
            return await attempt()
        return await asyncio.wait_for(attempt(), timeout)
    except asyncio.TimeoutError:
        return GenerationCallError(f"timed out after {timeout}s")
    except Exception as e:
        return GenerationCallError(f"{type(e).__name__}: {e}")


async def call_with_retry(
    attempt: Callable[[], Awaitable[GenerationResult]],
    *,
    fallback: Callable[[], T],
    max_attempts: int = 3,
    backoff: Backoff = linear_backoff(1.0),
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "generation",
) -> RetryOutcome[T]:
    """
    Run attempt until it yields GenerationOk or the attempt cap is reached.

    Args:
        attempt: Zero-argument async callable producing a GenerationResult
        fallback: Producer for the value used when every attempt fails
        max_attempts: Total attempts, including the first
        backoff: Maps a failed attempt number to a delay in seconds
        timeout: Per-attempt timeout in seconds (None for no limit)
        sleep: Awaitable sleep, injectable for tests
        label: Name used in log messages

    Returns:
        RetryOutcome with the generated or fallback value
    """
    failures: list[GenerationFailure] = []

    for number in range(1, max_attempts + 1):
        result = await _run_attempt(attempt, timeout)

        if isinstance(result, GenerationOk):
            if number > 1:
                logger.info(f"{label}: succeeded on attempt {number}/{max_attempts}")
            return RetryOutcome(
                value=result.value,
                attempts=number,
                used_fallback=False,
                failures=failures,
            )

        failures.append(result)
        kind = "parse" if isinstance(result, GenerationParseError) else "call"
        logger.warning(
            f"{label}: attempt {number}/{max_attempts} failed ({kind} error): {result.message}"
        )

        if number < max_attempts:
            await sleep(backoff(number))

    logger.error(f"{label}: all {max_attempts} attempts failed, using fallback")
    return RetryOutcome(
        value=fallback(),
        attempts=max_attempts,
        used_fallback=True,
        failures=failures,
    )
