"""Cooperative cancellation for in-flight fetches.

The conversion pipeline hands every extension call a :class:`CancellationToken`.
Network calls race against the token: cancelling it aborts the pending httpx
request and raises :class:`~linkdeco.errors.FetchCancelledError`, which callers
can tell apart from a timeout.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import TYPE_CHECKING, TypeVar

from linkdeco.errors import FetchCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


class CancellationToken:
    """Asyncio cancellation token shared by one pipeline run.

    Examples:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelledError()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the inner operation is cancelled and awaited before
        :class:`FetchCancelledError` is raised, so no request is left running.
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            raise FetchCancelledError()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

        if task.cancelled():
            raise FetchCancelledError()
        return task.result()
