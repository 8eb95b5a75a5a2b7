"""
Unit tests for the command line interface
"""

import asyncio
import io
import logging
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import AsyncMock, patch

from serial_term import main as cli
from serial_term.core.connection_manager import DEFAULT_BAUDRATE, DEFAULT_PORT, SerialConfig
from serial_term.core.drivers import DEFAULT_INTERVAL, DEFAULT_MESSAGE, PeriodicDriver
from serial_term.core.terminal_input import TerminalInput
from serial_term.lib.exceptions import (
    InvalidEncodingError,
    SerialConnectionError,
    TerminalUnsupportedError,
)
from tests.test_framework import MockSerialDevice


class TestArgumentParser(unittest.TestCase):

    def test_defaults(self):
        args = cli.build_parser().parse_args([])

        self.assertEqual(args.port, DEFAULT_PORT)
        self.assertEqual(args.baud, DEFAULT_BAUDRATE)
        self.assertIsNone(args.send)
        self.assertEqual(args.interval, DEFAULT_INTERVAL)
        self.assertFalse(args.skip_invalid)
        self.assertFalse(args.list_ports)

    def test_positional_port(self):
        args = cli.build_parser().parse_args(['/dev/ttyACM0', '-b', '9600'])

        self.assertEqual(args.port, '/dev/ttyACM0')
        self.assertEqual(args.baud, 9600)

    def test_send_without_message_uses_default(self):
        args = cli.build_parser().parse_args(['/dev/ttyACM0', '--send'])

        self.assertEqual(args.send, DEFAULT_MESSAGE)

    def test_send_with_message(self):
        args = cli.build_parser().parse_args(['--send', 'AT', '--interval', '0.5'])

        self.assertEqual(args.send, 'AT')
        self.assertEqual(args.interval, 0.5)


class TestMain(unittest.TestCase):

    def tearDown(self):
        logging.getLogger('serial_term').handlers.clear()

    @patch('serial_term.main.run_session', new_callable=AsyncMock)
    def test_runs_session(self, mock_run_session):
        result = cli.main(['/dev/ttyTEST', '--baud', '9600', '--skip-invalid'])

        self.assertEqual(result, 0)
        mock_run_session.assert_awaited_once_with(
            SerialConfig(port='/dev/ttyTEST', baudrate=9600),
            send=None,
            interval=DEFAULT_INTERVAL,
            skip_invalid=True
        )

    @patch('serial_term.main.run_session', new_callable=AsyncMock)
    def test_connection_error_exit_code(self, mock_run_session):
        mock_run_session.side_effect = SerialConnectionError("Failed to open /dev/ttyTEST")
        stderr = io.StringIO()

        with redirect_stderr(stderr):
            result = cli.main(['/dev/ttyTEST'])

        self.assertEqual(result, 1)
        self.assertIn('Failed to open /dev/ttyTEST', stderr.getvalue())

    @patch('serial_term.main.run_session', new_callable=AsyncMock)
    def test_invalid_encoding_exit_code(self, mock_run_session):
        mock_run_session.side_effect = InvalidEncodingError("Invalid UTF-8 in line")

        with redirect_stderr(io.StringIO()):
            result = cli.main(['/dev/ttyTEST'])

        self.assertEqual(result, 1)

    @patch('serial_term.main.run_session', new_callable=AsyncMock)
    def test_unsupported_terminal_exit_code(self, mock_run_session):
        mock_run_session.side_effect = TerminalUnsupportedError("Interactive mode needs a POSIX terminal, use --send")
        stderr = io.StringIO()

        with redirect_stderr(stderr):
            result = cli.main(['/dev/ttyTEST'])

        self.assertEqual(result, 1)
        self.assertIn('use --send', stderr.getvalue())

    @patch('serial_term.main.ConnectionManager.list_serial_ports', return_value=['/dev/ttyUSB0', '/dev/ttyACM0'])
    def test_list_ports(self, mock_list_ports):
        stdout = io.StringIO()

        with redirect_stdout(stdout):
            result = cli.main(['--list-ports'])

        self.assertEqual(result, 0)
        self.assertEqual(stdout.getvalue().split(), ['/dev/ttyUSB0', '/dev/ttyACM0'])

    def test_rejects_non_positive_interval(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                cli.main(['--send', '--interval', '0'])

    def test_setup_logging(self):
        cli.setup_logging(verbose=True)

        package_logger = logging.getLogger('serial_term')
        self.assertEqual(package_logger.level, logging.DEBUG)
        self.assertEqual(len(package_logger.handlers), 1)
        self.assertEqual(package_logger.handlers[0].terminator, '\r\n')


class TestRunSession(unittest.IsolatedAsyncioTestCase):
    """Scripted sessions through run_session with a mock device"""

    async def asyncTearDown(self):
        logging.getLogger('serial_term').handlers.clear()

    async def test_periodic_session_until_device_hangs_up(self):
        device = MockSerialDevice()
        device.send(b'>>> hello\r\n')
        device.hang_up()
        stdout = io.StringIO()

        def single_shot(writer, message, interval):
            return PeriodicDriver(writer, message=message, interval=interval, count=1)

        with patch('serial_asyncio.open_serial_connection', side_effect=device.open_connection()), \
                patch('serial_term.main.sys.stdout', stdout), \
                patch('serial_term.main.PeriodicDriver', side_effect=single_shot):
            await cli.run_session(SerialConfig(port='/dev/ttyTEST'), send='print("hello")')

        self.assertEqual(stdout.getvalue(), '>>> hello\r\n')
        self.assertEqual(device.received, b'print("hello")\r\n')
        self.assertTrue(device.stream_writer.closed)

    async def test_open_failure_propagates(self):
        with patch('serial_asyncio.open_serial_connection', side_effect=FileNotFoundError("no device")):
            with self.assertRaises(SerialConnectionError):
                await cli.run_session(SerialConfig(port='/dev/ttyMISSING'), send='AT')

    async def test_interactive_session_without_keyboard_support(self):
        device = MockSerialDevice()
        read_fd, write_fd = os.pipe()
        self.addCleanup(os.close, read_fd)
        self.addCleanup(os.close, write_fd)

        with patch('serial_asyncio.open_serial_connection', side_effect=device.open_connection()), \
                patch('serial_term.main.TerminalInput', side_effect=lambda: TerminalInput(fd=read_fd)), \
                patch.object(asyncio.get_running_loop(), 'add_reader', side_effect=NotImplementedError):
            with self.assertRaises(TerminalUnsupportedError):
                await cli.run_session(SerialConfig(port='/dev/ttyTEST'))

        self.assertTrue(device.stream_writer.closed)


if __name__ == '__main__':
    unittest.main()
