"""
SerialTerm Drivers

Pluggable event sources for the EventLoop.
Each driver pairs one source (next_event) with the sink that handles its
events (handle), and exclusively owns the connection half it touches.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, TextIO

from ..lib.exceptions import SerialWriteError, SourceExhausted
from ..protocol.keys import KeyEvent, translate_key
from .connection_manager import FrameReader, FrameWriter

# Ctrl+]
DEFAULT_EXIT_KEY = '\x1d'
DEFAULT_MESSAGE = 'print("hello")'
DEFAULT_INTERVAL = 2.0


class Driver(ABC):
    """Base class for event loop drivers"""

    name = "driver"

    @abstractmethod
    async def next_event(self) -> Any:
        """
        Wait for the next event from this driver's source

        Raises:
            SourceExhausted: If no further events will arrive
        """

    @abstractmethod
    async def handle(self, event: Any) -> None:
        """Dispatch one event to this driver's sink"""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class DisplayDriver(Driver):
    """Inbound frames to the display"""

    name = "serial"

    def __init__(self, reader: FrameReader, sink: TextIO):
        self.reader = reader
        self.sink = sink

    async def next_event(self) -> str:
        return await self.reader.read_frame()

    async def handle(self, event: str) -> None:
        # Frames already carry their terminator
        self.sink.write(event)
        self.sink.flush()


class KeyboardDriver(Driver):
    """
    Interactive keyboard to the serial line

    Key events are translated and written one at a time. The exit key
    sets the stop signal instead of being forwarded.
    """

    name = "keyboard"

    def __init__(
        self,
        keys,
        writer: FrameWriter,
        stop_event: Optional[asyncio.Event] = None,
        exit_key: Optional[str] = DEFAULT_EXIT_KEY
    ):
        """
        Initialize keyboard driver

        Args:
            keys: Key event source providing `async next_key()`
            writer: Outbound half of the connection
            stop_event: Signal set when the exit key is pressed
            exit_key: Raw input that ends the session (None disables it)
        """
        self.keys = keys
        self.writer = writer
        self.stop_event = stop_event
        self.exit_key = exit_key
        self.write_errors = 0
        self.logger = logging.getLogger(__name__)

    async def next_event(self) -> KeyEvent:
        return await self.keys.next_key()

    async def handle(self, event: KeyEvent) -> None:
        if self.exit_key is not None and event.raw == self.exit_key:
            self.logger.info("Exit key pressed")
            if self.stop_event is not None:
                self.stop_event.set()
            return

        data = translate_key(event)
        if data is None:
            return

        try:
            await self.writer.write(data)
        except SerialWriteError as e:
            self.write_errors += 1
            self.logger.error(f"{e}")


class PeriodicDriver(Driver):
    """
    Scripted outbound driver

    Sends a fixed line immediately and then once per interval. A carriage
    return is appended ahead of the line terminator for remote line
    editors.
    """

    name = "periodic"

    def __init__(
        self,
        writer: FrameWriter,
        message: str = DEFAULT_MESSAGE,
        interval: float = DEFAULT_INTERVAL,
        count: Optional[int] = None
    ):
        """
        Initialize periodic driver

        Args:
            writer: Outbound half of the connection
            message: Line to send
            interval: Seconds between sends
            count: Number of sends before the driver is exhausted (None = forever)
        """
        self.writer = writer
        self.message = message
        self.interval = interval
        self.count = count
        self.sent = 0
        self.write_errors = 0
        self.logger = logging.getLogger(__name__)

    async def next_event(self) -> str:
        if self.count is not None and self.sent >= self.count:
            raise SourceExhausted(f"Sent {self.sent} messages")
        if self.sent:
            await asyncio.sleep(self.interval)
        return f"{self.message}\r"

    async def handle(self, event: str) -> None:
        self.sent += 1
        try:
            await self.writer.send_line(event)
        except SerialWriteError as e:
            self.write_errors += 1
            self.logger.error(f"{e}")
