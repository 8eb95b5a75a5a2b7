"""
Custom exceptions for SerialTerm

Author: SerialTerm Development Team
Date: 2026-10-18
"""

from typing import Optional


class SerialTermError(Exception):
    """Base exception for SerialTerm errors"""
    pass


class SerialConnectionError(SerialTermError):
    """Exception raised when the serial device cannot be opened"""
    pass


class SerialWriteError(SerialTermError):
    """Exception raised when an outbound serial write does not complete"""
    pass


class InvalidEncodingError(SerialTermError):
    """
    Exception raised when a complete line is not valid UTF-8

    Attributes:
        line: The raw bytes of the offending line, terminator included
    """

    def __init__(self, message: str, line: Optional[bytes] = None):
        super().__init__(message)
        self.line = line


class SourceExhausted(SerialTermError):
    """Exception raised when an event source will produce no further items"""
    pass


class LoopAlreadyRunningError(SerialTermError):
    """Exception raised when trying to run an event loop that's already running"""
    pass


class TerminalUnsupportedError(SerialTermError):
    """Exception raised when the local terminal cannot deliver raw key input"""
    pass
