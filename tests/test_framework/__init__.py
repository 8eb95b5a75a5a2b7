"""
SerialTerm Test Framework

- Mock serial device (asyncio stream halves)
- Scripted key and event sources

Author: SerialTerm Development Team
Date: 2026-10-18
"""

from .mock_device import MockSerialDevice, MockStreamWriter, ScriptedDriver, ScriptedKeys

__all__ = [
    'MockSerialDevice',
    'MockStreamWriter',
    'ScriptedDriver',
    'ScriptedKeys',
]
