"""Async dispatch strategies — deferred delivery of a controller Result."""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Protocol, runtime_checkable

from starlette.requests import Request

from fastapi_request_context.exceptions import AsyncDispatchError
from fastapi_request_context.result import Result

logger = logging.getLogger(__name__)


class DispatchState(Enum):
    """Async dispatch lifecycle. Transitions only move forward."""

    SYNCHRONOUS = "synchronous"
    ENGAGED = "engaged"
    DELIVERED = "delivered"


class AsyncDispatchStrategy(ABC):
    """Takes over result delivery once a controller goes asynchronous."""

    @abstractmethod
    def engage(self) -> None:
        """Take over dispatch of the current request."""

    @abstractmethod
    def deliver(self, result: Result) -> None:
        """Hand over the final result. Called at most once."""

    @abstractmethod
    def pending_result(self) -> Result | None:
        """The delivered result, or None while still pending."""

    @abstractmethod
    async def wait(self) -> Result:
        """Suspend until a result has been delivered."""


@runtime_checkable
class AsyncStrategyFactory(Protocol):
    """Creates one strategy per request that engages async dispatch."""

    def create(self, request: Request) -> AsyncDispatchStrategy: ...


class EventDispatchStrategy(AsyncDispatchStrategy):
    """Thread-safe strategy waking asyncio and blocking waiters on delivery.

    ``deliver`` may run on any thread or event loop; each asyncio waiter is
    woken on its own loop via ``call_soon_threadsafe``.
    """

    def __init__(self, request: Request | None = None) -> None:
        self._request = request
        self._lock = threading.Lock()
        self._engaged = False
        self._result: Result | None = None
        self._delivered = threading.Event()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []

    @property
    def engaged(self) -> bool:
        return self._engaged

    def engage(self) -> None:
        with self._lock:
            if self._engaged:
                raise AsyncDispatchError("Strategy already engaged", operation="engage")
            self._engaged = True
        logger.debug("Async dispatch engaged for %s", self._describe())

    def deliver(self, result: Result) -> None:
        with self._lock:
            if not self._engaged:
                raise AsyncDispatchError(
                    "Result delivered to a strategy that was never engaged",
                    operation="deliver",
                )
            if self._result is not None:
                raise AsyncDispatchError("Result already delivered", operation="deliver")
            self._result = result
            waiters, self._waiters = self._waiters, []
        self._delivered.set()
        for loop, event in waiters:
            loop.call_soon_threadsafe(event.set)
        logger.debug(
            "Async result %d delivered for %s", result.status_code, self._describe()
        )

    def pending_result(self) -> Result | None:
        with self._lock:
            return self._result

    async def wait(self) -> Result:
        event = asyncio.Event()
        with self._lock:
            if self._result is not None:
                return self._result
            self._waiters.append((asyncio.get_running_loop(), event))
        await event.wait()
        with self._lock:
            result = self._result
        if result is None:
            raise AsyncDispatchError("Woken without a delivered result", operation="wait")
        return result

    def wait_blocking(self, timeout: float | None = None) -> Result | None:
        """Block the calling thread until delivery; None on timeout."""
        if not self._delivered.wait(timeout):
            return None
        return self._result

    def _describe(self) -> str:
        if self._request is None:
            return "<detached>"
        return f"{self._request.method} {self._request.url.path}"


class EventDispatchStrategyFactory:
    """Default factory producing :class:`EventDispatchStrategy` instances."""

    def create(self, request: Request) -> AsyncDispatchStrategy:
        return EventDispatchStrategy(request)
