#!/usr/bin/env python3
"""
SerialTerm command line interface

Interactive terminal for a device on a serial line.

Examples:
    serial-term                          # /dev/ttyUSB0 (COM1 on Windows) at 115200
    serial-term /dev/ttyACM0 --baud 9600
    serial-term /dev/ttyACM0 --send 'print("hello")' --interval 2
    serial-term --list-ports

Press Ctrl+] to leave an interactive session.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .core.connection_manager import (
    DEFAULT_BAUDRATE,
    DEFAULT_PORT,
    ConnectionManager,
    SerialConfig,
)
from .core.drivers import (
    DEFAULT_INTERVAL,
    DEFAULT_MESSAGE,
    DisplayDriver,
    KeyboardDriver,
    PeriodicDriver,
)
from .core.event_loop import EventLoop
from .core.terminal_input import TerminalInput
from .lib.exceptions import (
    InvalidEncodingError,
    SerialConnectionError,
    TerminalUnsupportedError,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='serial-term',
        description='Interactive terminal for a device on a serial line',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
examples:
  serial-term /dev/ttyACM0
  serial-term /dev/ttyACM0 --baud 9600
  serial-term /dev/ttyACM0 --send 'print("hello")' --interval 2
  serial-term --list-ports

Press Ctrl+] to leave an interactive session.
        '''
    )

    parser.add_argument(
        'port',
        nargs='?',
        default=DEFAULT_PORT,
        help=f'Serial device path (default: {DEFAULT_PORT})'
    )

    parser.add_argument(
        '--baud', '-b',
        type=int,
        default=DEFAULT_BAUDRATE,
        help=f'Baud rate (default: {DEFAULT_BAUDRATE})'
    )

    parser.add_argument(
        '--send',
        nargs='?',
        const=DEFAULT_MESSAGE,
        default=None,
        metavar='MESSAGE',
        help=f'Send MESSAGE periodically instead of reading the keyboard (default message: {DEFAULT_MESSAGE})'
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=DEFAULT_INTERVAL,
        help=f'Seconds between periodic sends (default: {DEFAULT_INTERVAL})'
    )

    parser.add_argument(
        '--skip-invalid',
        action='store_true',
        help='Drop lines that are not valid UTF-8 instead of ending the session'
    )

    parser.add_argument(
        '--list-ports',
        action='store_true',
        help='List available serial ports and exit'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def setup_logging(verbose: bool = False) -> None:
    """Initialize logging for the serial_term package"""
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    handler.setFormatter(formatter)
    # The terminal may be in raw mode, where a bare LF does not return the carriage
    handler.terminator = '\r\n'

    package_logger = logging.getLogger('serial_term')
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def install_signal_handlers(stop_event: asyncio.Event) -> List[int]:
    """
    Set the stop signal on SIGINT/SIGTERM

    Returns:
        List[int]: Signals that were installed (empty where unsupported)
    """
    loop = asyncio.get_running_loop()
    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(signum)
    return installed


def remove_signal_handlers(signals: List[int]) -> None:
    loop = asyncio.get_running_loop()
    for signum in signals:
        loop.remove_signal_handler(signum)


async def run_session(
    config: SerialConfig,
    send: Optional[str] = None,
    interval: float = DEFAULT_INTERVAL,
    skip_invalid: bool = False
) -> None:
    """
    Open the device and run one terminal session

    Args:
        config: Serial line parameters
        send: Message for scripted mode; None runs the interactive keyboard
        interval: Seconds between scripted sends
        skip_invalid: Resynchronize after lines that are not valid UTF-8

    Raises:
        SerialConnectionError: If the device cannot be opened
        InvalidEncodingError: If the device sent a line that is not valid UTF-8
        TerminalUnsupportedError: If interactive mode cannot read the keyboard
    """
    stop_event = asyncio.Event()
    signals = install_signal_handlers(stop_event)

    try:
        async with ConnectionManager(config, skip_invalid=skip_invalid) as connection:
            reader, writer = connection.split()
            display = DisplayDriver(reader, sys.stdout)

            if send is not None:
                logger.info(f"Sending {send!r} every {interval}s")
                sender = PeriodicDriver(writer, message=send, interval=interval)
                await EventLoop([display, sender], stop_event).run()
                return

            with TerminalInput() as keys:
                keyboard = KeyboardDriver(keys, writer, stop_event)
                logger.info("Interactive session started, press Ctrl+] to exit")
                await EventLoop([display, keyboard], stop_event).run()
    finally:
        remove_signal_handlers(signals)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.interval <= 0:
        parser.error('--interval must be greater than 0')

    setup_logging(args.verbose)

    if args.list_ports:
        for port in ConnectionManager.list_serial_ports():
            print(port)
        return 0

    config = SerialConfig(port=args.port, baudrate=args.baud)

    try:
        asyncio.run(run_session(
            config,
            send=args.send,
            interval=args.interval,
            skip_invalid=args.skip_invalid
        ))
    except SerialConnectionError as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return 1
    except InvalidEncodingError as e:
        print(f"\r\nReceived invalid data, closing session: {e}", file=sys.stderr)
        return 1
    except TerminalUnsupportedError as e:
        print(f"Keyboard error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\r\nInterrupted", file=sys.stderr)
        return 130

    return 0


if __name__ == '__main__':
    sys.exit(main())
