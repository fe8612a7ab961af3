"""Bounded execution for commands and queries.

Work runs on a shared thread pool and the caller waits at most ``seconds``.
On expiry the caller gets ``OperationTimeout``; the worker is left to finish
on its own, so the outcome of a timed-out command is unknown to the caller
and must be confirmed through a query.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

import structlog

from shared.errors import OperationTimeout

logger = structlog.get_logger(__name__)

_executor = ThreadPoolExecutor(max_workers=32, thread_name_prefix="ordering-worker")


def run_with_timeout(operation: str, seconds: float, fn, *args, **kwargs):
    future = _executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=seconds)
    except FutureTimeout:
        if future.done():
            # The work itself raised TimeoutError
            raise
        future.cancel()
        logger.warning("Operation timed out", operation=operation, timeout=seconds)
        raise OperationTimeout(operation, seconds) from None
