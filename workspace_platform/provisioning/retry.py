from __future__ import annotations

import time
from typing import Callable, Optional, Tuple, Type, TypeVar


T = TypeVar("T")


def _debug(msg: str) -> None:
    print(f"[retry] {msg}")


def backoff_delay(base_delay: float, attempt_index: int) -> float:
    """Delay after the failure of attempt `attempt_index` (0-based): base * 2^i."""
    return float(base_delay) * (2 ** int(attempt_index))


def run_with_retry(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.1,
    name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    fatal: Tuple[Type[BaseException], ...] = (),
) -> T:
    """Run `operation`, retrying any exception with exponential backoff.

    With the defaults the worst case waits 100ms + 200ms before giving up.
    Exceptions in `fatal` are raised straight away. After the last attempt the
    last error is re-raised unchanged.
    """
    n = int(attempts)
    if n < 1:
        raise ValueError("attempts_must_be_positive")

    last_error: Optional[Exception] = None
    for i in range(n):
        try:
            return operation()
        except Exception as e:
            if fatal and isinstance(e, fatal):
                raise
            last_error = e
            if i < n - 1:
                delay = backoff_delay(base_delay, i)
                _debug(f"Retry {i + 1}/{n} for {name} after {int(delay * 1000)}ms: {e!r}")
                sleep(delay)

    if last_error is None:
        raise RuntimeError(f"{name}: no attempt ran")
    raise last_error
