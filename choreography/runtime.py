"""Start coroutines as background tasks on the running event loop."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Set

_background: Set["asyncio.Task[Any]"] = set()


def _start(coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        raise
    task = loop.create_task(coro)
    # Keep a strong reference so the task is not collected before it finishes.
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


def spawn(coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
    """Run ``coro`` in the background on the running loop and return its task.

    Raises RuntimeError when no event loop is running.
    """
    return _start(coro)


def spawn_local(coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
    """Run ``coro`` in the background on the current thread's running loop.

    Raises RuntimeError when no event loop is running.
    """
    return _start(coro)


__all__ = ("spawn", "spawn_local")