"""
Time-bounded execution of blocking calls.

Embedding generation and store queries run on separate worker pools so a
caller-supplied timeout can be enforced without cancelling the thread. A
provider that never answers can only exhaust the embedding pool; store
queries keep their own workers.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, TypeVar

from .errors import StageTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMBEDDING_POOL = "embedding"
STORE_POOL = "store"

EMBEDDING_WORKERS = 8
STORE_WORKERS = 4

_executors = {
    EMBEDDING_POOL: ThreadPoolExecutor(
        max_workers=EMBEDDING_WORKERS, thread_name_prefix="content-explorer-embed"
    ),
    STORE_POOL: ThreadPoolExecutor(
        max_workers=STORE_WORKERS, thread_name_prefix="content-explorer-store"
    ),
}


def bounded_call(
    fn: Callable[..., T],
    *args: Any,
    timeout: float | None,
    pool: str = EMBEDDING_POOL,
    on_timeout: Callable[[], Any] | None = None,
    **kwargs: Any,
) -> T:
    """Run *fn* on *pool* and return its result, raising ``StageTimeout`` past *timeout*.

    ``timeout=None`` runs the call inline. Exceptions raised by *fn* propagate.
    *on_timeout* is invoked once the deadline passes, e.g. to interrupt a
    running query so its worker is released.
    """
    if timeout is None:
        return fn(*args, **kwargs)
    future = _executors[pool].submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        name = getattr(fn, "__qualname__", repr(fn))
        logger.warning("Call to %s exceeded %.1fs timeout", name, timeout)
        if on_timeout is not None:
            on_timeout()
        raise StageTimeout(f"{name} timed out after {timeout}s") from None
