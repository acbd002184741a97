# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Named polling tasks ("observers") that re-arm themselves after each run.

A fixed-rate interval would let a slow response eat into the next cycle or
overlap it.  Each observer is instead one asyncio task that runs its body,
then sleeps for ``timeout`` seconds counted from the moment the body
finished.  Failures take the same path as successes, so a dead server just
means the same request again one interval later.

    async def poll(observer):
        ...
        return None          # or a delay in seconds for this one cycle

    scheduler = Scheduler()
    scheduler.add_observer("playerstatus", 5.0, poll)   # runs immediately
    scheduler.update_observer("playerstatus", timeout=1.0)
    scheduler.get("serverstatus").reschedule(0.75)
    scheduler.update_all()
    await scheduler.cancel()
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

ObserverFn = Callable[["Observer"], Awaitable[float | None]]


class Observer:
    """One self-rescheduling task.  Never runs concurrently with itself."""

    def __init__(self, name: str, timeout: float, fn: ObserverFn):
        self.name = name
        self.timeout = timeout
        self.fn = fn
        self.task: asyncio.Task | None = None
        self.runs = 0
        self._due = 0.0
        self._requested: float | None = None
        self._running = False
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        """True while the body is executing (a request is in flight)."""
        return self._running

    def reschedule(self, delay: float):
        """Run again *delay* seconds from now, replacing the pending run.

        While the body is running the request is remembered and wins over
        the body's own re-arm at completion.
        """
        due = asyncio.get_running_loop().time() + delay
        if self._running:
            self._requested = due
        else:
            self._due = due
            self._wakeup.set()

    def start(self):
        self._due = asyncio.get_running_loop().time()
        self.task = asyncio.create_task(self._loop(), name=f"observer:{self.name}")

    async def _loop(self):
        loop = asyncio.get_running_loop()
        while True:
            # sleep until due; reschedule() moves the deadline and wakes us
            remaining = self._due - loop.time()
            while remaining > 0:
                self._wakeup.clear()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), remaining)
                except asyncio.TimeoutError:
                    pass
                remaining = self._due - loop.time()

            self._running = True
            self._requested = None
            delay = None
            try:
                delay = await self.fn(self)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Observer %s failed: %s", self.name, e, exc_info=True)
            finally:
                self._running = False
                self.runs += 1

            if self._requested is not None:
                self._due = self._requested
            else:
                self._due = loop.time() + (self.timeout if delay is None else delay)

    async def cancel(self):
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None

    def __repr__(self):
        return f"Observer({self.name!r}, timeout={self.timeout})"


class Scheduler:
    """Registry of observers.  Observers are added once and only retimed."""

    def __init__(self):
        self._observers: dict[str, Observer] = {}

    def add_observer(self, name: str, timeout: float, fn: ObserverFn) -> Observer:
        """Register *fn* under *name* and fire it once immediately."""
        if name in self._observers:
            raise ValueError(f"Observer {name!r} already registered")
        observer = Observer(name, timeout, fn)
        self._observers[name] = observer
        observer.start()
        logger.debug("Observer %s added (every %.2fs)", name, timeout)
        return observer

    def update_observer(self, name: str, **patch) -> Observer | None:
        """Merge *patch* (``timeout``, ``fn``) into a registered observer."""
        observer = self._observers.get(name)
        if observer is None:
            return None
        for key, value in patch.items():
            if key not in ("timeout", "fn"):
                raise ValueError(f"Cannot update observer field {key!r}")
            setattr(observer, key, value)
        return observer

    def update_all(self):
        """Fire every observer right away (after a player switch)."""
        for observer in self._observers.values():
            observer.reschedule(0)

    def get(self, name: str) -> Observer | None:
        return self._observers.get(name)

    def __iter__(self):
        return iter(self._observers.values())

    def __len__(self):
        return len(self._observers)

    async def cancel(self):
        """Tear down every observer task."""
        for observer in self._observers.values():
            await observer.cancel()
