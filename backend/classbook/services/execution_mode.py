# backend/classbook/services/execution_mode.py
"""
Parallel vs. sequential dispatch of independent reads.

When the store grants this process a single connection, firing several reads
at once only queues them on that connection, and a waiter can deadlock
against a transaction already holding it. In that case reads are awaited one
after another. With a larger budget they are gathered concurrently.

The mode is derived once per process from the connection budget and only
changes through ``reload_execution_mode`` after a configuration reload.
"""

import asyncio
from functools import partial
import logging
import threading
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..core.config import Settings, settings
from ..core.enums import ExecutionMode

logger = logging.getLogger(__name__)

T = TypeVar("T")

Query = Callable[[], Awaitable[Any]]

_MODE: Optional[ExecutionMode] = None
_MODE_LOCK = threading.Lock()


def determine_mode(pool_budget: int) -> ExecutionMode:
    """SEQUENTIAL for a budget of at most one connection, PARALLEL otherwise."""
    return ExecutionMode.SEQUENTIAL if pool_budget <= 1 else ExecutionMode.PARALLEL


def resolve_pool_budget(config: Optional[Settings] = None) -> int:
    """
    Maximum number of concurrent connections the store grants this process.

    Resolution order: explicit ``db_connection_limit``, a ``connection_limit``
    parameter on the database URL, one for in-memory SQLite (a single shared
    connection), otherwise pool size plus overflow.
    """
    config = config or settings
    if config.db_connection_limit is not None:
        return config.db_connection_limit
    url_limit = config.url_connection_limit()
    if url_limit is not None:
        return url_limit
    if config.is_memory_sqlite:
        return 1
    return config.db_pool_size + config.db_max_overflow


def get_execution_mode() -> ExecutionMode:
    """Process-wide execution mode, computed on first use."""
    global _MODE
    if _MODE is not None:
        return _MODE
    with _MODE_LOCK:
        if _MODE is None:
            _MODE = _compute_mode(settings)
        return _MODE


def reload_execution_mode(config: Optional[Settings] = None) -> ExecutionMode:
    """Recompute the process-wide mode after configuration changed."""
    global _MODE
    with _MODE_LOCK:
        _MODE = _compute_mode(config or settings)
        return _MODE


def _compute_mode(config: Settings) -> ExecutionMode:
    budget = resolve_pool_budget(config)
    mode = determine_mode(budget)
    logger.info(
        "execution_mode_selected",
        extra={"event": "execution_mode_selected", "pool_budget": budget, "mode": mode.value},
    )
    return mode


async def run_queries(mode: ExecutionMode, queries: Sequence[Query]) -> List[Any]:
    """
    Run zero-argument async operations and return their results in input order.

    PARALLEL starts every operation and awaits them together; SEQUENTIAL
    finishes each operation before starting the next. The first exception
    propagates to the caller.
    """
    if not queries:
        return []

    if mode == ExecutionMode.PARALLEL:
        return list(await asyncio.gather(*(query() for query in queries)))

    results: List[Any] = []
    for query in queries:
        results.append(await query())
    return results


async def run_batched_reads(queries: Sequence[Query]) -> List[Any]:
    """Fan out independent reads honoring the process-wide execution mode."""
    return await run_queries(get_execution_mode(), queries)


def in_thread(func: Callable[..., T], *args: Any, **kwargs: Any) -> Callable[[], Awaitable[T]]:
    """
    Wrap a blocking repository call as a zero-argument awaitable.

    The call runs in the default executor via ``asyncio.to_thread``; each
    call should open its own session since sessions are not thread-safe.
    """

    async def _run() -> T:
        return await asyncio.to_thread(partial(func, *args, **kwargs))

    return _run
