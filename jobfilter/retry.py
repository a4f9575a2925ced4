"""Retry decorator with exponential backoff for provider HTTP calls."""
from __future__ import annotations

import functools
import random
import time
from typing import Any, Callable, Tuple, Type

from jobfilter.log import get_logger

log = get_logger(__name__)


def retry(
    *,
    max_attempts: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    give_up: Callable[[BaseException], bool] | None = None,
) -> Callable:
    """Retry the wrapped call on ``retryable`` errors.

    ``give_up`` lets the caller stop early on errors that will not improve with
    another attempt (a 401 from the provider, for instance). The last error is
    re-raised once attempts run out.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if attempt == max_attempts or (give_up is not None and give_up(exc)):
                        log.debug(
                            "%s gave up after %d attempt(s): %s",
                            fn.__qualname__,
                            attempt,
                            exc,
                        )
                        raise
                    delay = min(
                        base_delay * (backoff_factor ** (attempt - 1)), max_delay
                    )
                    if jitter:
                        delay *= 0.5 + random.random()
                    log.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    time.sleep(delay)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator
