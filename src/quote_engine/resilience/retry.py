"""Resilient API call decorator with tenacity retry and final-failure reporting.

Retries 3 times with exponential backoff and jitter, then logs the failure,
hands it to the configured error notifier, and re-raises the last exception.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

# Called as notifier(api_name, attempts, exception) once retries are exhausted.
ErrorNotifier = Callable[[str, int, BaseException | None], None]

_notifier: ErrorNotifier | None = None

F = TypeVar("F", bound=Callable[..., Any])


def configure_error_notifier(notifier: ErrorNotifier | None) -> None:
    """Set the module-level notifier used on final retry exhaustion.

    Call this at application startup (for example with a Sentry capture
    function).  Pass ``None`` to disable notification.
    """
    global _notifier
    _notifier = notifier


def _api_name(retry_state: RetryCallState) -> str:
    return getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"


def report_final_failure(retry_state: RetryCallState) -> Any:
    """Log and report the final failure, then re-raise the last exception.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = _api_name(retry_state)

    logger.error(
        "api_call_failed_after_retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )

    if _notifier is not None:
        try:
            _notifier(api_name, retry_state.attempt_number, exception)
        except Exception:
            logger.exception("error_notifier_failed", api_name=api_name)

    if retry_state.outcome is None:
        return None
    # Re-raises the original exception.
    return retry_state.outcome.result()


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt."""
    logger.warning(
        "api_call_retrying",
        api_name=_api_name(retry_state),
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(
    api_name: str,
    retry_on: type[BaseException] | tuple[type[BaseException], ...] = Exception,
    attempts: int = 3,
) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Returns a tenacity retry decorator configured with:
    - *attempts* attempts maximum (default 3)
    - Exponential backoff with jitter (1s initial, 30s max, 5s jitter)
    - Warning log before each retry
    - Error log and notifier call on final failure
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs and alerts).
        retry_on: Exception types worth retrying; anything else propagates
            immediately.
        attempts: Maximum number of attempts.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            retry=retry_if_exception_type(retry_on),
            before_sleep=_before_sleep_log,
            retry_error_callback=report_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
