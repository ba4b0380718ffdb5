"""Bounded retry for store mutations."""

from typing import Callable

from sqlalchemy.exc import OperationalError
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_incrementing

from superintern.logging_config import get_logger
from superintern.settings import settings

logger = get_logger(__name__)


def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "store_retry",
            operation=operation,
            attempt=state.attempt_number,
            wait_seconds=state.next_action.sleep if state.next_action else None,
            error=str(error),
        )

    return before_sleep


def store_retry(
    operation: str,
    max_attempts: int | None = None,
    base_delay: float | None = None,
):
    """Retry a store mutation on transient connection errors.

    The delay grows linearly (``base_delay``, ``2 * base_delay``...). Only
    ``OperationalError`` is retried; integrity and programming errors surface
    on the first attempt.

    Args:
        operation: Name used in retry log events
        max_attempts: Total attempts (defaults to settings)
        base_delay: Delay before the second attempt in seconds (defaults to settings)
    """
    delay = settings.store_retry_delay if base_delay is None else base_delay
    return retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(max_attempts or settings.store_retry_attempts),
        wait=wait_incrementing(start=delay, increment=delay),
        before_sleep=_log_retry(operation),
        reraise=True,
    )
