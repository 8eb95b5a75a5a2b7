"""
SerialTerm Connection Manager

Owns the serial connection for a session.
Opens the device through pyserial-asyncio, splits it into an inbound
FrameReader and an outbound FrameWriter, and closes it on exit.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import serial
import serial.tools.list_ports
import serial_asyncio

from ..lib.exceptions import (
    SerialConnectionError,
    SerialWriteError,
    SourceExhausted,
)
from ..protocol.line_codec import LineCodec

DEFAULT_PORT = 'COM1' if os.name == 'nt' else '/dev/ttyUSB0'
DEFAULT_BAUDRATE = 115200
DEFAULT_BYTESIZE = serial.EIGHTBITS
DEFAULT_PARITY = serial.PARITY_NONE
DEFAULT_STOPBITS = serial.STOPBITS_ONE
READ_CHUNK_SIZE = 4096


@dataclass
class SerialConfig:
    """Serial line parameters"""
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    bytesize: int = DEFAULT_BYTESIZE
    parity: str = DEFAULT_PARITY
    stopbits: float = DEFAULT_STOPBITS
    xonxoff: bool = False
    rtscts: bool = False
    dsrdtr: bool = False
    exclusive: bool = False

    def serial_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for serial.serial_for_url"""
        kwargs = {
            'baudrate': self.baudrate,
            'bytesize': self.bytesize,
            'parity': self.parity,
            'stopbits': self.stopbits,
            'xonxoff': self.xonxoff,
            'rtscts': self.rtscts,
            'dsrdtr': self.dsrdtr,
        }
        # Only the POSIX backend implements exclusive access
        if os.name == 'posix':
            kwargs['exclusive'] = self.exclusive
        return kwargs


class FrameReader:
    """
    Inbound half of the serial connection

    Reads raw bytes and hands out newline-terminated frames.
    """

    def __init__(self, reader: asyncio.StreamReader, codec: LineCodec):
        self._reader = reader
        self.codec = codec
        self.bytes_received = 0
        self._exhausted = False
        self.logger = logging.getLogger(__name__)

    async def read_frame(self) -> str:
        """
        Wait for the next complete frame

        Returns:
            str: Decoded line including its terminator

        Raises:
            InvalidEncodingError: If a line is not valid UTF-8
            SourceExhausted: If the connection reached end of stream
        """
        while True:
            frame = self.codec.decode()
            if frame is not None:
                self.logger.debug(f"Received frame: {frame!r}")
                return frame

            if self._exhausted:
                raise SourceExhausted("Serial connection closed")

            try:
                data = await self._reader.read(READ_CHUNK_SIZE)
            except (serial.SerialException, OSError) as e:
                self.logger.error(f"Serial read error: {e}")
                data = b''

            if not data:
                self._exhausted = True
                if self.codec.pending:
                    self.logger.debug(f"Discarding {self.codec.pending} bytes of unterminated input")
                    self.codec.clear()
                raise SourceExhausted("Serial connection closed")

            self.bytes_received += len(data)
            self.codec.feed(data)


class FrameWriter:
    """Outbound half of the serial connection"""

    def __init__(self, writer: asyncio.StreamWriter, codec: LineCodec):
        self._writer = writer
        self.codec = codec
        self.bytes_sent = 0
        self.logger = logging.getLogger(__name__)

    async def write(self, data: bytes) -> None:
        """
        Write raw bytes and wait for them to drain

        Raises:
            SerialWriteError: If the write did not complete
        """
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (serial.SerialException, OSError) as e:
            raise SerialWriteError(f"Serial write error: {e}") from e

        self.bytes_sent += len(data)
        self.logger.debug(f"Sent {len(data)} bytes: {data.hex(' ').upper()}")

    async def send_line(self, line: str) -> None:
        """Encode and write one frame"""
        await self.write(self.codec.encode(line))

    async def close(self) -> None:
        """Flush pending writes and close the transport"""
        try:
            await self._writer.drain()
        except (serial.SerialException, OSError) as e:
            self.logger.warning(f"Error flushing pending writes: {e}")
        finally:
            self._writer.close()


class ConnectionManager:
    """
    Serial connection lifecycle

    Usage:
        async with ConnectionManager(config) as connection:
            reader, writer = connection.split()
    """

    def __init__(self, config: SerialConfig, skip_invalid: bool = False):
        """
        Initialize connection manager

        Args:
            config: Serial line parameters
            skip_invalid: Resynchronize after lines that are not valid UTF-8
        """
        self.config = config
        self.skip_invalid = skip_invalid

        self._reader: Optional[FrameReader] = None
        self._writer: Optional[FrameWriter] = None
        self._split = False
        self._connection_attempts = 0

        self.logger = logging.getLogger(__name__)

    async def open(self) -> None:
        """
        Open the serial device

        Raises:
            SerialConnectionError: If the device cannot be opened
        """
        if self.is_connected:
            self.logger.warning("Already connected")
            return

        self._connection_attempts += 1
        self.logger.info(f"Connecting to {self.config.port} at {self.config.baudrate} baud")

        try:
            stream_reader, stream_writer = await serial_asyncio.open_serial_connection(
                url=self.config.port,
                **self.config.serial_kwargs()
            )
        except (serial.SerialException, OSError, ValueError) as e:
            error_msg = f"Failed to open {self.config.port}: {e}"
            self.logger.error(error_msg)
            raise SerialConnectionError(error_msg) from e

        self._reader = FrameReader(stream_reader, LineCodec(skip_invalid=self.skip_invalid))
        self._writer = FrameWriter(stream_writer, LineCodec())
        self._split = False
        self.logger.info(f"Successfully connected to {self.config.port}")

    def split(self) -> Tuple[FrameReader, FrameWriter]:
        """
        Hand out the read and write halves

        Each half is meant for exactly one owner, so split() may only be
        called once per connection.
        """
        if not self.is_connected:
            raise SerialConnectionError("Not connected")
        if self._split:
            raise SerialConnectionError("Connection halves already handed out")
        self._split = True
        return self._reader, self._writer

    async def close(self) -> None:
        """Flush pending writes and close the device"""
        if not self.is_connected:
            self.logger.debug("Already disconnected")
            return

        stats = self.statistics
        try:
            await self._writer.close()
        finally:
            self._reader = None
            self._writer = None
            self.logger.info(
                f"Disconnected from {self.config.port} "
                f"(rx={stats['bytes_received']} bytes, tx={stats['bytes_sent']} bytes)"
            )

    @property
    def is_connected(self) -> bool:
        return self._writer is not None

    @property
    def statistics(self) -> dict:
        """Get communication statistics"""
        return {
            'bytes_received': self._reader.bytes_received if self._reader else 0,
            'bytes_sent': self._writer.bytes_sent if self._writer else 0,
            'connection_attempts': self._connection_attempts,
            'is_connected': self.is_connected,
        }

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @staticmethod
    def list_serial_ports() -> list:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"ConnectionManager({self.config.port}@{self.config.baudrate}, {status})"
