"""
Caller-side retry for recoverable bridge failures.

The engine and the façade never retry on their own. Callers that want to
retry opt in through :func:`call_with_retry`, which only repeats calls whose
:class:`~deploy_tunnel.bridge.errors.BridgeError` is flagged ``recoverable``
and re-raises the last error unchanged once attempts are exhausted.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..core.logging import get_logger
from .errors import BridgeError

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3


def is_recoverable(exc: BaseException) -> bool:
    """Return ``True`` for bridge errors that may be retried unchanged."""

    return isinstance(exc, BridgeError) and exc.recoverable


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    extra: dict[str, object] = {"attempt": state.attempt_number}
    if isinstance(exc, BridgeError):
        extra.update({"code": exc.code.value, "recoverable": exc.recoverable})
    sleep = state.next_action.sleep if state.next_action else None
    get_logger(__name__).warning("Retrying recoverable bridge call", extra={**extra, "sleep": sleep})


def call_with_retry(
    call: Callable[[], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    min_wait: float = 1.0,
    max_wait: float = 8.0,
    on_retry: Optional[Callable[[BridgeError, int], None]] = None,
) -> T:
    """
    Invoke ``call`` and retry it while it fails with a recoverable bridge error.

    Parameters
    ----------
    call:
        Zero-argument callable, typically a bound façade method wrapped in a lambda.
    attempts:
        Total number of attempts including the first one.
    min_wait, max_wait:
        Bounds in seconds for the exponential backoff between attempts.
    on_retry:
        Optional hook receiving the error and the number of the attempt that failed.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    def before_sleep(state: RetryCallState) -> None:
        _log_retry(state)
        exc = state.outcome.exception() if state.outcome else None
        if on_retry is not None and isinstance(exc, BridgeError):
            on_retry(exc, state.attempt_number)

    retrying = Retrying(
        retry=retry_if_exception(is_recoverable),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        stop=stop_after_attempt(attempts),
        before_sleep=before_sleep,
        reraise=True,
    )
    return retrying(call)


__all__ = ["DEFAULT_ATTEMPTS", "call_with_retry", "is_recoverable"]
