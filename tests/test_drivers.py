"""
Unit tests for event loop drivers
"""

import asyncio
import io
import unittest
from unittest.mock import AsyncMock, Mock, patch

from serial_term.core.drivers import (
    DEFAULT_EXIT_KEY,
    DEFAULT_MESSAGE,
    DisplayDriver,
    KeyboardDriver,
    PeriodicDriver,
)
from serial_term.lib.exceptions import SerialWriteError, SourceExhausted
from serial_term.protocol.keys import KeyCode, KeyEvent, Modifiers
from tests.test_framework import MockSerialDevice, ScriptedKeys


class TestDisplayDriver(unittest.IsolatedAsyncioTestCase):

    async def test_frames_written_verbatim(self):
        device = MockSerialDevice()
        sink = Mock()
        driver = DisplayDriver(device.frame_reader(), sink)
        device.send(b'line one\r\n')

        frame = await driver.next_event()
        await driver.handle(frame)

        sink.write.assert_called_once_with('line one\r\n')
        sink.flush.assert_called_once()

    async def test_exhaustion(self):
        device = MockSerialDevice()
        driver = DisplayDriver(device.frame_reader(), io.StringIO())
        device.hang_up()

        with self.assertRaises(SourceExhausted):
            await driver.next_event()


class TestKeyboardDriver(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.writer = Mock()
        self.writer.write = AsyncMock()

    async def test_translated_key_written_once(self):
        driver = KeyboardDriver(ScriptedKeys([]), self.writer)

        await driver.handle(KeyEvent(KeyCode.CHAR, char='a', modifiers=Modifiers.CONTROL, raw='\x01'))

        self.writer.write.assert_awaited_once_with(b'\x01')

    async def test_untranslatable_key_ignored(self):
        driver = KeyboardDriver(ScriptedKeys([]), self.writer)

        await driver.handle(KeyEvent(KeyCode.F3, raw='\x1bOR'))

        self.writer.write.assert_not_awaited()

    async def test_write_failure_is_absorbed(self):
        self.writer.write.side_effect = SerialWriteError("write failed")
        driver = KeyboardDriver(ScriptedKeys([]), self.writer)

        with self.assertLogs('serial_term.core.drivers', level='ERROR'):
            await driver.handle(KeyEvent(KeyCode.ENTER, raw='\r'))

        self.assertEqual(driver.write_errors, 1)

    async def test_exit_key_sets_stop_event(self):
        stop_event = asyncio.Event()
        driver = KeyboardDriver(ScriptedKeys([]), self.writer, stop_event)

        await driver.handle(KeyEvent(KeyCode.CHAR, char='5', modifiers=Modifiers.CONTROL, raw=DEFAULT_EXIT_KEY))

        self.assertTrue(stop_event.is_set())
        self.writer.write.assert_not_awaited()

    async def test_exit_key_disabled(self):
        driver = KeyboardDriver(ScriptedKeys([]), self.writer, exit_key=None)

        await driver.handle(KeyEvent(KeyCode.CHAR, char='5', modifiers=Modifiers.CONTROL, raw='\x1d'))

        self.writer.write.assert_awaited_once_with(b'\x1d')

    async def test_next_event_reads_keys(self):
        event = KeyEvent(KeyCode.TAB, raw='\t')
        driver = KeyboardDriver(ScriptedKeys([event]), self.writer)

        self.assertEqual(await driver.next_event(), event)
        with self.assertRaises(SourceExhausted):
            await driver.next_event()


class TestPeriodicDriver(unittest.IsolatedAsyncioTestCase):

    async def test_first_send_is_immediate(self):
        device = MockSerialDevice()
        driver = PeriodicDriver(device.frame_writer(), interval=60.0)

        with patch('asyncio.sleep', new=AsyncMock()) as mock_sleep:
            message = await driver.next_event()
        mock_sleep.assert_not_awaited()

        await driver.handle(message)

        self.assertEqual(device.received, (DEFAULT_MESSAGE + '\r\n').encode('utf-8'))
        self.assertEqual(driver.sent, 1)

    async def test_waits_interval_between_sends(self):
        device = MockSerialDevice()
        driver = PeriodicDriver(device.frame_writer(), message='AT', interval=2.0)
        await driver.handle(await driver.next_event())

        with patch('asyncio.sleep', new=AsyncMock()) as mock_sleep:
            message = await driver.next_event()

        mock_sleep.assert_awaited_once_with(2.0)
        self.assertEqual(message, 'AT\r')

    async def test_count_limit(self):
        device = MockSerialDevice()
        driver = PeriodicDriver(device.frame_writer(), message='AT', interval=0.0, count=2)

        await driver.handle(await driver.next_event())
        await driver.handle(await driver.next_event())

        with self.assertRaises(SourceExhausted):
            await driver.next_event()
        self.assertEqual(device.received, b'AT\r\nAT\r\n')

    async def test_write_failure_is_absorbed(self):
        device = MockSerialDevice(fail_writes=1)
        driver = PeriodicDriver(device.frame_writer(), message='AT', interval=0.0)

        with self.assertLogs('serial_term.core.drivers', level='ERROR'):
            await driver.handle('AT\r')
        await driver.handle('AT\r')

        self.assertEqual(driver.write_errors, 1)
        self.assertEqual(device.received, b'AT\r\n')


if __name__ == '__main__':
    unittest.main()
