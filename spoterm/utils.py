"""Utility functions for spoterm."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from typing import TypeVar

_T = TypeVar("_T")

# Check if eager_start is supported (Python 3.12+)
_SUPPORTS_EAGER_START = sys.version_info >= (3, 12)


def create_task(
    coro: Coroutine[None, None, _T],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
    name: str | None = None,
    eager_start: bool = True,
) -> asyncio.Task[_T]:
    """Create an asyncio task, starting it eagerly where supported.

    Args:
        coro: The coroutine to run as a task.
        loop: Optional event loop to use. If None, uses the running loop.
        name: Optional name for the task (for debugging).
        eager_start: Whether to start the task eagerly (Python 3.12+ only).

    Returns:
        The created asyncio Task.
    """
    if loop is None:
        loop = asyncio.get_running_loop()

    if _SUPPORTS_EAGER_START and eager_start:
        return asyncio.Task(coro, loop=loop, name=name, eager_start=True)

    return loop.create_task(coro, name=name)


def format_time(ms: int | None) -> str:
    """Format milliseconds as MM:SS."""
    if ms is None:
        return "--:--"
    seconds = ms // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
