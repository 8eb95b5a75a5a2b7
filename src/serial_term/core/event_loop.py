"""
SerialTerm Event Loop

Single-threaded cooperative driver that multiplexes the serial frame
source and the outbound event source (keyboard or scripted sender).

Key features:
- One pending read per driver; reads are never cancelled between
  iterations, so no event is lost
- Exhausted sources are deregistered permanently
- Sources that become ready together are dispatched round-robin
- Runs until the stop signal, exhaustion of every source or a fatal
  decode error

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from ..lib.exceptions import (
    InvalidEncodingError,
    LoopAlreadyRunningError,
    SourceExhausted,
)
from .drivers import Driver


class EventLoop:
    """
    Event multiplexer

    Usage:
        loop = EventLoop([DisplayDriver(reader, sys.stdout),
                          KeyboardDriver(keys, writer, stop_event)],
                         stop_event)
        await loop.run()
    """

    def __init__(self, drivers: Iterable[Driver], stop_event: Optional[asyncio.Event] = None):
        """
        Initialize event loop

        Args:
            drivers: Drivers to multiplex
            stop_event: Cancellation signal; the loop returns once it is set
        """
        self.drivers: List[Driver] = list(drivers)
        self.stop_event = stop_event if stop_event is not None else asyncio.Event()
        self.dispatched: Dict[str, int] = {driver.name: 0 for driver in self.drivers}

        self._running = False
        self._round = 0
        self.logger = logging.getLogger(__name__)

    def stop(self) -> None:
        """Request the loop to return"""
        self.stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Run until stopped or until every source is exhausted

        Raises:
            InvalidEncodingError: If the serial source delivered a line that
                is not valid UTF-8
            LoopAlreadyRunningError: If the loop is already running
        """
        if self._running:
            raise LoopAlreadyRunningError("Event loop is already running")
        self._running = True

        active = list(self.drivers)
        pending: Dict[Driver, asyncio.Task] = {}
        stop_task = asyncio.ensure_future(self.stop_event.wait())
        self.logger.debug(f"Event loop started with {active}")

        try:
            while active and not self.stop_event.is_set():
                for driver in active:
                    if driver not in pending:
                        pending[driver] = asyncio.ensure_future(driver.next_event())

                done, _ = await asyncio.wait(
                    [stop_task, *pending.values()],
                    return_when=asyncio.FIRST_COMPLETED
                )
                if stop_task in done:
                    # A decode error that raced the stop still reaches the caller
                    for driver, task in pending.items():
                        if task in done and not task.cancelled() \
                                and isinstance(task.exception(), InvalidEncodingError):
                            self.logger.error(f"Fatal decode error on '{driver.name}': {task.exception()}")
                            raise task.exception()
                    self.logger.debug("Stop requested")
                    break

                for driver in self._rotate(active):
                    task = pending.get(driver)
                    if task is None or task not in done:
                        continue
                    del pending[driver]

                    try:
                        event = task.result()
                    except SourceExhausted as e:
                        self.logger.info(f"Source '{driver.name}' exhausted: {e}")
                        active.remove(driver)
                        continue
                    except InvalidEncodingError as e:
                        self.logger.error(f"Fatal decode error on '{driver.name}': {e}")
                        raise

                    await driver.handle(event)
                    self.dispatched[driver.name] = self.dispatched.get(driver.name, 0) + 1

                self._round += 1

            if not active:
                self.logger.info("All sources exhausted")
        finally:
            await self._cancel([stop_task, *pending.values()])
            self._running = False
            self.logger.debug(f"Event loop finished: dispatched={self.dispatched}")

    def _rotate(self, active: List[Driver]) -> List[Driver]:
        """Dispatch order for this round"""
        if not active:
            return []
        offset = self._round % len(active)
        return active[offset:] + active[:offset]

    @staticmethod
    async def _cancel(tasks: List[asyncio.Future]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
