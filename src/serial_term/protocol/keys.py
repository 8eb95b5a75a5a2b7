"""
SerialTerm Key Handling

Keyboard event model, raw-mode input parsing and translation of key
events into the byte sequences a remote terminal expects.

Author: SerialTerm Development Team
Date: 2026-10-18
"""

import codecs
from dataclasses import dataclass
from enum import Enum, Flag, auto
from typing import Dict, List, Optional, Tuple

ESC = '\x1b'


class KeyCode(Enum):
    """Named key codes"""
    CHAR = auto()
    BACKSPACE = auto()
    ENTER = auto()
    TAB = auto()
    ESCAPE = auto()
    UP = auto()
    DOWN = auto()
    LEFT = auto()
    RIGHT = auto()
    HOME = auto()
    END = auto()
    INSERT = auto()
    DELETE = auto()
    PAGE_UP = auto()
    PAGE_DOWN = auto()
    F1 = auto()
    F2 = auto()
    F3 = auto()
    F4 = auto()
    F5 = auto()
    F6 = auto()
    F7 = auto()
    F8 = auto()
    F9 = auto()
    F10 = auto()
    F11 = auto()
    F12 = auto()
    UNKNOWN = auto()


class Modifiers(Flag):
    """Modifier keys held during a key press"""
    NONE = 0
    SHIFT = auto()
    CONTROL = auto()
    ALT = auto()


@dataclass(frozen=True)
class KeyEvent:
    """Represents a keyboard input event"""
    code: KeyCode
    char: Optional[str] = None
    modifiers: Modifiers = Modifiers.NONE
    raw: str = ""

    def has_modifier(self, modifier: Modifiers) -> bool:
        """Check whether the given modifier was held"""
        return modifier in self.modifiers

    @property
    def ctrl(self) -> bool:
        return self.has_modifier(Modifiers.CONTROL)

    @property
    def is_char(self) -> bool:
        """Check if this is a printable character."""
        return self.code is KeyCode.CHAR and self.char is not None


# ========================
# Translation
# ========================

KEY_SEQUENCES: Dict[KeyCode, bytes] = {
    KeyCode.BACKSPACE: b'\x08',
    KeyCode.ENTER: b'\r',
    KeyCode.TAB: b'\t',
    KeyCode.ESCAPE: b'\x1b',
    KeyCode.UP: b'\x1b[A',
    KeyCode.DOWN: b'\x1b[B',
    KeyCode.RIGHT: b'\x1b[C',
    KeyCode.LEFT: b'\x1b[D',
    KeyCode.HOME: b'\x1b[H',
    KeyCode.END: b'\x1b[F',
    KeyCode.INSERT: b'\x1b[2~',
    KeyCode.DELETE: b'\x1b[3~',
}


def control_byte(char: str) -> Optional[int]:
    """
    Derive the control code for Ctrl+char

    Returns:
        The control code, or None if the character has no control form
    """
    if char == ' ' or 'a' <= char <= 'z':
        return ord(char) & 0x1F
    if '4' <= char <= '7':
        # ^\ ^] ^^ ^_ live above the letters
        return (ord(char) + 8) & 0x1F
    return None


def translate_key(event: KeyEvent) -> Optional[bytes]:
    """
    Translate a key event into the bytes sent to the remote terminal

    Named keys ignore modifiers. Unrecognized keys (function keys,
    page keys, unknown sequences) return None.

    Args:
        event: Key event to translate

    Returns:
        Optional[bytes]: Byte sequence to transmit, or None
    """
    if event.is_char:
        if event.ctrl:
            code = control_byte(event.char)
            if code is not None:
                return bytes([code])
        return event.char.encode('utf-8')

    return KEY_SEQUENCES.get(event.code)


# ========================
# Raw input parsing
# ========================

class KeyParser:
    """
    Incremental parser for raw-mode terminal input

    Bytes may arrive in arbitrary chunks. An escape sequence that is not
    yet complete at the end of a chunk stays pending until more input
    arrives or flush() is called.
    """

    # Escape sequence mappings (without the \x1b prefix)
    SEQUENCES: Dict[str, KeyCode] = {
        # Arrow keys (CSI)
        '[A': KeyCode.UP,
        '[B': KeyCode.DOWN,
        '[C': KeyCode.RIGHT,
        '[D': KeyCode.LEFT,
        # Arrow keys (SS3 - application mode)
        'OA': KeyCode.UP,
        'OB': KeyCode.DOWN,
        'OC': KeyCode.RIGHT,
        'OD': KeyCode.LEFT,
        # Navigation
        '[H': KeyCode.HOME,
        '[F': KeyCode.END,
        'OH': KeyCode.HOME,
        'OF': KeyCode.END,
        '[1~': KeyCode.HOME,
        '[4~': KeyCode.END,
        '[7~': KeyCode.HOME,
        '[8~': KeyCode.END,
        '[2~': KeyCode.INSERT,
        '[3~': KeyCode.DELETE,
        '[5~': KeyCode.PAGE_UP,
        '[6~': KeyCode.PAGE_DOWN,
        # Function keys
        'OP': KeyCode.F1,
        'OQ': KeyCode.F2,
        'OR': KeyCode.F3,
        'OS': KeyCode.F4,
        '[11~': KeyCode.F1,
        '[12~': KeyCode.F2,
        '[13~': KeyCode.F3,
        '[14~': KeyCode.F4,
        '[15~': KeyCode.F5,
        '[17~': KeyCode.F6,
        '[18~': KeyCode.F7,
        '[19~': KeyCode.F8,
        '[20~': KeyCode.F9,
        '[21~': KeyCode.F10,
        '[23~': KeyCode.F11,
        '[24~': KeyCode.F12,
    }

    SIMPLE_KEYS: Dict[str, KeyCode] = {
        '\r': KeyCode.ENTER,
        '\n': KeyCode.ENTER,
        '\t': KeyCode.TAB,
        '\x7f': KeyCode.BACKSPACE,
        '\x08': KeyCode.BACKSPACE,
    }

    # CSI/SS3 bodies: parameters, then one final byte
    PARAMETER_BYTES = frozenset('0123456789;')
    FINAL_BYTES = frozenset('ABCDEFHPQRSZ~')

    # xterm modifier parameter: value - 1 is a bitmask of shift/alt/ctrl
    _MODIFIER_BITS: Tuple[Tuple[int, Modifiers], ...] = (
        (1, Modifiers.SHIFT),
        (2, Modifiers.ALT),
        (4, Modifiers.CONTROL),
    )

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ""

    @property
    def pending(self) -> bool:
        """True if an incomplete escape sequence is buffered"""
        return bool(self._buffer)

    def feed(self, data: bytes) -> List[KeyEvent]:
        """
        Parse a chunk of raw input

        Args:
            data: Bytes read from the terminal

        Returns:
            List[KeyEvent]: Complete key events in input order
        """
        self._buffer += self._decoder.decode(data)
        return self._parse(final=False)

    def flush(self) -> List[KeyEvent]:
        """Resolve any pending input, treating a dangling ESC as the Escape key"""
        self._buffer += self._decoder.decode(b'', final=True)
        return self._parse(final=True)

    def _parse(self, final: bool) -> List[KeyEvent]:
        events = []
        while self._buffer:
            ch = self._buffer[0]
            if ch == ESC:
                result = self._parse_escape_sequence(final)
                if result is None:
                    break
                event, consumed = result
            else:
                event, consumed = self._parse_single(ch), 1
            self._buffer = self._buffer[consumed:]
            events.append(event)
        return events

    def _parse_single(self, ch: str) -> KeyEvent:
        """Parse one non-escape character."""
        if ch in self.SIMPLE_KEYS:
            return KeyEvent(self.SIMPLE_KEYS[ch], raw=ch)

        code = ord(ch)
        if code == 0x00:
            return KeyEvent(KeyCode.CHAR, char=' ', modifiers=Modifiers.CONTROL, raw=ch)
        if code < 0x1B:
            return KeyEvent(KeyCode.CHAR, char=chr(code + 0x60), modifiers=Modifiers.CONTROL, raw=ch)
        if 0x1C <= code <= 0x1F:
            return KeyEvent(KeyCode.CHAR, char=chr(code + 0x18), modifiers=Modifiers.CONTROL, raw=ch)
        if ch.isprintable():
            return KeyEvent(KeyCode.CHAR, char=ch, raw=ch)
        return KeyEvent(KeyCode.UNKNOWN, raw=ch)

    def _parse_escape_sequence(self, final: bool) -> Optional[Tuple[KeyEvent, int]]:
        """
        Parse an escape sequence at the start of the buffer

        Returns:
            (event, consumed) or None if more input is needed
        """
        rest = self._buffer[1:]

        if not rest:
            if not final:
                return None
            return KeyEvent(KeyCode.ESCAPE, raw=ESC), 1

        if rest[0] not in '[O':
            if rest[0] == ESC:
                return KeyEvent(KeyCode.ESCAPE, raw=ESC), 1
            return self._alt(rest[0]), 2

        # Find where this sequence ends
        end_idx = None
        for i, ch in enumerate(rest[1:], start=1):
            if ch in self.FINAL_BYTES:
                end_idx = i + 1
                break
            if ch not in self.PARAMETER_BYTES:
                # Not a sequence: Alt+'[' or Alt+'O' followed by another key
                return self._alt(rest[0]), 2

        if end_idx is None:
            if not final:
                return None
            if len(rest) == 1:
                return self._alt(rest[0]), 2
            end_idx = len(rest)

        seq = rest[:end_idx]
        raw = ESC + seq
        code, modifiers = self._lookup(seq)
        return KeyEvent(code, modifiers=modifiers, raw=raw), 1 + end_idx

    def _alt(self, ch: str) -> KeyEvent:
        """ESC followed by a key is the terminal's encoding of Alt+key"""
        inner = self._parse_single(ch)
        return KeyEvent(
            inner.code,
            char=inner.char,
            modifiers=inner.modifiers | Modifiers.ALT,
            raw=ESC + ch,
        )

    def _lookup(self, seq: str) -> Tuple[KeyCode, Modifiers]:
        """Resolve a sequence body, honouring xterm '1;<mod>' parameters."""
        if seq in self.SEQUENCES:
            return self.SEQUENCES[seq], Modifiers.NONE

        # e.g. '[1;5A' (Ctrl+Up) or '[3;2~' (Shift+Delete)
        if ';' in seq and seq.startswith('['):
            params, final_char = seq[1:-1], seq[-1]
            base, _, mod = params.partition(';')
            if mod.isdigit():
                if final_char == '~':
                    base_seq = f'[{base}~'
                else:
                    base_seq = f'[{final_char}'
                code = self.SEQUENCES.get(base_seq)
                if code is None:
                    code = self.SEQUENCES.get(f'O{final_char}', KeyCode.UNKNOWN)
                return code, self._decode_modifiers(int(mod))

        return KeyCode.UNKNOWN, Modifiers.NONE

    def _decode_modifiers(self, value: int) -> Modifiers:
        modifiers = Modifiers.NONE
        bits = max(value - 1, 0)
        for mask, modifier in self._MODIFIER_BITS:
            if bits & mask:
                modifiers |= modifier
        return modifiers
