"""Async utilities for running blocking HTTP and file I/O off the event loop."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every network call and file operation of the engine goes through here,
    which makes them the engine's suspension points.

    Cancelling the awaiting task does not interrupt the worker thread; the
    call runs to completion and its result is dropped.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        client = FluxClient(settings)
        snapshot = await run_sync(client.fetch_state)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
