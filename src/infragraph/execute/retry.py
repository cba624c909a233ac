"""Retry with exponential backoff for transient provider errors."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from ..utils.errors import ActionFailed, ProviderTransientError, RunCancelled
from ..utils.logging import get_logger
from .cancellation import CancellationToken

logger = get_logger("execute.retry")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0

    def wait(self) -> wait_exponential:
        """Backoff of base_delay * multiplier ** (failed attempt - 1), capped at max_delay."""
        return wait_exponential(multiplier=self.base_delay, exp_base=self.multiplier, min=0, max=self.max_delay)


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{label}: transient error on attempt {retry_state.attempt_number} ({error}); "
            f"retrying in {delay:.2f}s"
        )
    return before_sleep


async def call_with_retry(
    label: str,
    operation: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    token: Optional[CancellationToken] = None,
) -> Tuple[Any, int]:
    """
    Await ``operation()`` until it succeeds or fails for good.

    Only ProviderTransientError is retried. Anything else, or the last
    transient failure, is raised as ActionFailed.

    Returns:
        (result, number of attempts used)

    Raises:
        ActionFailed: On a fatal error or when attempts are exhausted
        RunCancelled: If the token is set before an attempt
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(ProviderTransientError),
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait(),
        before_sleep=_log_retry(label),
        reraise=True,
    )
    attempts = 0
    result = None
    try:
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                if token is not None and token.cancelled:
                    raise RunCancelled(f"{label} not attempted: run cancelled")
                result = await operation()
    except ProviderTransientError as e:
        logger.error(f"{label}: giving up after {attempts} attempts: {e}")
        raise ActionFailed(label, e, attempts) from e
    except (asyncio.CancelledError, RunCancelled, ActionFailed):
        raise
    except Exception as e:
        logger.error(f"{label}: fatal error on attempt {attempts}: {e}")
        raise ActionFailed(label, e, attempts) from e
    return result, attempts
