"""
SerialTerm Protocol

Wire framing and keyboard translation.
"""

from .keys import KeyCode, KeyEvent, KeyParser, Modifiers, translate_key
from .line_codec import LineCodec

__all__ = [
    'KeyCode',
    'KeyEvent',
    'KeyParser',
    'LineCodec',
    'Modifiers',
    'translate_key',
]
