from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 4000


class DisplayState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY_STATIC = "ready-static"
    READY_CAROUSEL = "ready-carousel"


class IntervalHandle(Protocol):
    def cancel(self) -> None: ...


class IntervalScheduler(Protocol):
    def call_every(self, seconds: float, callback: Callable[[], None]) -> IntervalHandle: ...


class _AsyncioInterval:
    def __init__(self, loop: asyncio.AbstractEventLoop, seconds: float, callback: Callable[[], None]) -> None:
        self._loop = loop
        self._seconds = seconds
        self._callback = callback
        self._cancelled = False
        self._handle = loop.call_later(seconds, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._callback()
        # the callback may have cancelled us
        if not self._cancelled:
            self._handle = self._loop.call_later(self._seconds, self._fire)

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioIntervalScheduler:
    """Repeating timers on an asyncio event loop.

    Uses the running loop unless one is given explicitly.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_every(self, seconds: float, callback: Callable[[], None]) -> IntervalHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioInterval(loop, seconds, callback)


class CarouselController:
    """Timer-driven rotation over a resolved image list.

    At most one interval is live at any time. The interval only exists while
    there are at least two images, the carousel is not paused and the
    controller has not been disposed. Every change of the image count or of
    the pause state tears the interval down before deciding whether to
    create a new one.
    """

    def __init__(self, scheduler: IntervalScheduler, interval_ms: int | None = None) -> None:
        if interval_ms is None:
            interval_ms = int(os.getenv("CAROUSEL_INTERVAL_MS", str(DEFAULT_INTERVAL_MS)))
        if interval_ms <= 0:
            raise ValueError("Carousel interval must be positive")
        self.interval_ms = interval_ms
        self._scheduler = scheduler
        self._handle: IntervalHandle | None = None
        self._index = 0
        self._total = 0
        self._paused = False
        self._disposed = False

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_images(self) -> int:
        return self._total

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def is_rotating(self) -> bool:
        return self._handle is not None

    def set_total(self, total: int) -> None:
        self._total = max(total, 0)
        self._index = self._index % self._total if self._total else 0
        self._sync()

    def tick(self) -> None:
        if self._total > 1:
            self._index = (self._index + 1) % self._total

    def pause(self) -> None:
        self._paused = True
        self._clear()

    def resume(self) -> None:
        self._paused = False
        self._sync()

    def reset(self) -> None:
        self._index = 0
        self.set_total(0)

    def dispose(self) -> None:
        self._disposed = True
        self._clear()

    def _clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _sync(self) -> None:
        self._clear()
        if self._disposed or self._paused or self._total < 2:
            return
        self._handle = self._scheduler.call_every(self.interval_ms / 1000.0, self.tick)
        logger.debug("Carousel rotating over %d images every %d ms", self._total, self.interval_ms)
