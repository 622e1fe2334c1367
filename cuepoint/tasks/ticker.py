"""
Single-flight periodic ticker.

Each control loop (one per failover rule, one for SCTE-35 events, one for
schedule updates) runs on a Ticker. A tick always finishes before the next
tick of the same ticker starts, and stopping a ticker never cancels a tick
that is already talking to an external system.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from cuepoint.errors import describe_error
from cuepoint.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

TickFunc = Callable[[], Union[Awaitable[Any], Any]]


class Ticker:
    """
    Runs ``func`` every ``interval_seconds`` on the event loop.

    Features:
    - Single-flight: ``run_once`` refuses to start while a tick is running
    - Synchronous ``stop`` that releases the loop task immediately
    - In-flight ticks are shielded from cancellation and allowed to finish
    - Run count / last error tracking for status queries
    """

    def __init__(
        self,
        name: str,
        func: TickFunc,
        interval_seconds: float,
        clock: Optional[Clock] = None,
        run_immediately: bool = False,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"Ticker {name}: interval must be positive")
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self._clock = clock or SystemClock()

        self._running = False
        self._is_processing = False
        self._loop_task: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None
        # Strong references to tasks still winding down after stop()
        self._background: set[asyncio.Task] = set()

        self.last_run: Optional[datetime] = None
        self.run_count = 0
        self.skipped_count = 0
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def start(self) -> None:
        """Start the loop. Must be called with an event loop running."""
        if self._running:
            return

        self._running = True
        self._loop_task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"ticker:{self.name}"
        )
        self._keep(self._loop_task)
        logger.debug(f"Ticker started: {self.name} (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the loop and drop it. An in-flight tick runs to completion."""
        if not self._running:
            return

        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        logger.debug(f"Ticker stopped: {self.name}")

    async def aclose(self, wait_for_tick: bool = True) -> None:
        """Stop, then wait for the loop (and optionally the in-flight tick) to end."""
        pending = [t for t in self._background if not t.done()]
        self.stop()
        if not wait_for_tick and self._current in pending:
            pending.remove(self._current)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def trigger(self) -> bool:
        """
        Request an immediate tick outside the interval.

        Returns False when the ticker is stopped or a tick is already running;
        the running tick (or the next one) will pick up the work.
        """
        if not self._running or self._is_processing:
            return False
        self._spawn_tick()
        return True

    async def run_once(self) -> bool:
        """
        Run one tick now.

        Returns:
            False if a tick was already in flight and this one was skipped.
        """
        if self._is_processing:
            self.skipped_count += 1
            logger.debug(f"Tick skipped, previous still running: {self.name}")
            return False

        self._is_processing = True
        self.last_run = self._clock.now()
        try:
            result = self.func()
            if inspect.isawaitable(result):
                await result
            self.run_count += 1
            self.last_error = None
        except Exception as e:
            self.last_error = describe_error(e)
            logger.error(f"Tick failed: {self.name}: {self.last_error}")
        finally:
            self._is_processing = False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "running": self._running,
            "processing": self._is_processing,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "skipped_count": self.skipped_count,
            "last_error": self.last_error,
        }

    async def _loop(self) -> None:
        if self.run_immediately:
            await self._tick_shielded()

        while self._running:
            try:
                await self._clock.sleep(self.interval_seconds)
                if not self._running:
                    break
                await self._tick_shielded()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Ticker loop error: {self.name}: {describe_error(e)}")

    async def _tick_shielded(self) -> None:
        task = self._spawn_tick()
        await asyncio.shield(task)

    def _spawn_tick(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self.run_once(), name=f"tick:{self.name}"
        )
        self._current = task
        self._keep(task)
        return task

    def _keep(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)
