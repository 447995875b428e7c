"""Async helper utilities."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _InFlightCall(Generic[T]):
    task: asyncio.Task[T]
    waiters: int = 0


class SingleFlight(Generic[T]):
    """Coalesce concurrent calls sharing a key into one computation.

    The first caller starts the computation as a task; callers arriving while
    it runs await the same task. When every waiter has been cancelled the task
    is cancelled too, so a computation nobody waits for does not keep running.
    """

    def __init__(self) -> None:
        self._calls: dict[str, _InFlightCall[T]] = {}

    def in_flight(self) -> int:
        return len(self._calls)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        call = self._calls.get(key)
        if call is None:
            call = _InFlightCall(task=asyncio.ensure_future(factory()))
            self._calls[key] = call
            call.task.add_done_callback(lambda _task, k=key, c=call: self._forget(k, c))
        else:
            logger.debug("single_flight_joined", extra={"key": key, "waiters": call.waiters})

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        except asyncio.CancelledError:
            if call.waiters == 1 and not call.task.done():
                self._forget(key, call)
                call.task.cancel()
            raise
        finally:
            call.waiters -= 1

    def _forget(self, key: str, call: _InFlightCall[Any]) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]
