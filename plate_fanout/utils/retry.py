"""Bounded retries for filesystem operations on shared plate directories.

Slot directories often live on network shares that the RIP and the CTP
lock briefly while they scan them.  Such ``OSError``s are retried a fixed
number of times with a pause in between; the last attempt's failure is
raised as ``TransferError``.

Usage:
    from plate_fanout.utils.retry import retry_io
    retry_io(lambda: shutil.move(src, dst), retries=3, delay_s=0.5,
             description=f"move {src.name}")
"""

import logging
import time
from typing import Callable, TypeVar

from plate_fanout.errors import TransferError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_io(
    operation: Callable[[], T],
    *,
    retries: int,
    delay_s: float,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *operation*, retrying on ``OSError``.

    Parameters
    ----------
    operation : Callable[[], T]
        Zero-argument callable doing the I/O.
    retries : int
        Attempts that may fail with a warning before the final attempt.
    delay_s : float
        Pause after each failed attempt, in seconds.
    description : str
        Human-readable name of the operation for log messages.
    sleep : Callable[[float], None]
        Injected for tests.

    Returns
    -------
    T
        Whatever *operation* returns.

    Raises
    ------
    TransferError
        If the final attempt fails too.
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")

    total = retries + 1
    for attempt in range(1, total + 1):
        try:
            return operation()
        except OSError as exc:
            if attempt == total:
                raise TransferError(
                    f"Failed to {description} after {total} attempts: {exc}"
                ) from exc
            logger.warning(
                "Could not %s (attempt %d/%d): %s",
                description,
                attempt,
                total,
                exc,
            )
            sleep(delay_s)
