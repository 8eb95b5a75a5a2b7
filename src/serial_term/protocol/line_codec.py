"""
SerialTerm Line Codec

Newline-delimited text framing for the serial wire.
Raw bytes received from the device are buffered until a line-feed
arrives; each complete line is handed out as one UTF-8 frame.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import logging
from typing import List, Optional

from ..lib.exceptions import InvalidEncodingError

LINE_TERMINATOR = b'\n'


class LineCodec:
    """
    Stateful line framing codec

    Keeps the not-yet-framed tail of the inbound byte stream between
    calls. The terminator is a single byte, so a UTF-8 sequence can never
    be split across two frames.
    """

    def __init__(self, skip_invalid: bool = False):
        """
        Initialize line codec

        Args:
            skip_invalid: Drop lines that are not valid UTF-8 and keep
                decoding instead of raising InvalidEncodingError
        """
        self.skip_invalid = skip_invalid
        self._buffer = bytearray()
        self.logger = logging.getLogger(__name__)

    def feed(self, data: bytes) -> None:
        """Append received bytes to the pending buffer"""
        self._buffer.extend(data)

    def decode(self) -> Optional[str]:
        """
        Extract the next complete frame from the pending buffer

        Returns:
            The decoded line including its terminator, or None if no
            complete line is buffered yet

        Raises:
            InvalidEncodingError: If the extracted line is not valid UTF-8
                (only when skip_invalid is False)
        """
        while True:
            newline = self._buffer.find(LINE_TERMINATOR)
            if newline < 0:
                return None

            line = bytes(self._buffer[:newline + 1])
            del self._buffer[:newline + 1]

            try:
                return line.decode('utf-8')
            except UnicodeDecodeError as e:
                if not self.skip_invalid:
                    raise InvalidEncodingError(f"Invalid UTF-8 in line: {e}", line=line) from e
                self.logger.warning(f"Skipping invalid UTF-8 line ({len(line)} bytes): {line!r}")

    def decode_all(self) -> List[str]:
        """
        Drain every complete frame currently buffered

        Returns:
            List[str]: Frames in arrival order
        """
        frames = []
        while True:
            frame = self.decode()
            if frame is None:
                return frames
            frames.append(frame)

    @staticmethod
    def encode(line: str) -> bytes:
        """
        Encode a line for the wire

        Appends exactly one line-feed. Callers that need CR+LF on the
        remote side append the carriage return themselves.
        """
        return line.encode('utf-8') + LINE_TERMINATOR

    @property
    def pending(self) -> int:
        """Number of bytes waiting for a terminator"""
        return len(self._buffer)

    def clear(self) -> None:
        """Discard any partially received line"""
        self._buffer.clear()
