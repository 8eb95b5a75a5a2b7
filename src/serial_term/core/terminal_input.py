"""
SerialTerm Terminal Input

Raw-mode keyboard event source.
Puts the local terminal into raw mode for the lifetime of the context
and delivers parsed key events through an asyncio queue.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import asyncio
import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..lib.exceptions import SourceExhausted, TerminalUnsupportedError
from ..protocol.keys import KeyEvent, KeyParser

# Time to wait for the rest of an escape sequence before treating ESC as a key
ESCAPE_TIMEOUT = 0.05

_EOF = object()


@contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """Context manager for raw terminal mode (Unix only)."""
    import termios
    import tty

    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


class TerminalInput:
    """
    Keyboard event source

    Usage:
        with TerminalInput() as keys:
            event = await keys.next_key()

    Must be entered from inside a running asyncio event loop.
    """

    def __init__(self, fd: Optional[int] = None, use_raw_mode: bool = True):
        """
        Initialize terminal input

        Args:
            fd: File descriptor to read keys from (default: stdin)
            use_raw_mode: Switch the terminal to raw mode while active
        """
        self.fd = sys.stdin.fileno() if fd is None else fd
        self.use_raw_mode = use_raw_mode and os.isatty(self.fd)

        self._parser = KeyParser()
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._raw_context = None
        self._reading = False
        self._exhausted = False

        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        if self.use_raw_mode:
            context = raw_mode(self.fd)
            try:
                context.__enter__()
            except ImportError as e:
                raise TerminalUnsupportedError(
                    "Interactive mode needs a POSIX terminal, use --send"
                ) from e
            self._raw_context = context
            self.logger.debug("Terminal switched to raw mode")

        try:
            self._loop.add_reader(self.fd, self._on_readable)
        except NotImplementedError as e:
            self._restore()
            raise TerminalUnsupportedError(
                "Interactive mode needs an event loop that can watch the keyboard, use --send"
            ) from e
        except BaseException:
            self._restore()
            raise
        self._reading = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop_reading()
        self._restore()

    def _restore(self) -> None:
        if self._raw_context is not None:
            self._raw_context.__exit__(None, None, None)
            self._raw_context = None
            self.logger.debug("Terminal restored to cooked mode")

    def _stop_reading(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._reading:
            self._loop.remove_reader(self.fd)
            self._reading = False

    def _on_readable(self) -> None:
        """Reader callback: parse whatever input is available"""
        try:
            data = os.read(self.fd, 1024)
        except BlockingIOError:
            return
        except OSError as e:
            self.logger.error(f"Keyboard read error: {e}")
            data = b''

        if not data:
            self._enqueue(self._parser.flush())
            self._stop_reading()
            self._queue.put_nowait(_EOF)
            return

        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

        self._enqueue(self._parser.feed(data))

        if self._parser.pending:
            self._flush_handle = self._loop.call_later(ESCAPE_TIMEOUT, self._flush_pending)

    def _flush_pending(self) -> None:
        self._flush_handle = None
        self._enqueue(self._parser.flush())

    def _enqueue(self, events: List[KeyEvent]) -> None:
        for event in events:
            self._queue.put_nowait(event)

    async def next_key(self) -> KeyEvent:
        """
        Wait for the next key event

        Raises:
            SourceExhausted: If the input reached end of file
        """
        if self._exhausted:
            raise SourceExhausted("Keyboard input closed")

        item = await self._queue.get()
        if item is _EOF:
            self._exhausted = True
            raise SourceExhausted("Keyboard input closed")
        return item
