"""Line editing driven by PS/2 set-1 keyboard scancodes.

A :class:`LineEditor` keeps the line being typed, the modifier state, a
short command history and an echo of what the keys put on the screen.
Control and Alt chords do not edit the line; they come back from
:meth:`LineEditor.feed` as :class:`KeyAction` values for the caller to act on.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

REM = 8
LINE_CAPACITY = 128
LINE_LIMIT = LINE_CAPACITY - 1

LEFT_SHIFT_PRESS = 0x2A
RIGHT_SHIFT_PRESS = 0x36
LEFT_SHIFT_RELEASE = 0xAA
RIGHT_SHIFT_RELEASE = 0x36 + 0x80
LEFT_CTRL_PRESS = 0x1D
LEFT_CTRL_RELEASE = 0x9D
LEFT_ALT_PRESS = 0x38
LEFT_ALT_RELEASE = 0xB8
BACKSPACE = 0x0E
ENTER = 0x1C
TAB = 0x0F
CAPS_LOCK = 0x3A
ARROW_UP = 0x48
ARROW_DOWN = 0x50
F1, F2, F3, F4, F5, F6 = 0x3B, 0x3C, 0x3D, 0x3E, 0x3F, 0x40
KEY_L = 0x26
KEY_C = 0x2E
KEY_N = 0x31
KEY_I = 0x17
KEY_P = 0x19
KEY_Q = 0x10
KEY_V = 0x2F

DEFAULT_FILE_NAMES = (
    "sigtest", "shell", "grep", "syserr", "rtc", "fish",
    "counter", "pingpong", "cat", "ls", "testprint", "hello",
)

# "\0" marks a key that produces no character.
_LOWER = (
    "\0\0" "1234567890-=" "\0\0" "qwertyuiop[]" "\0\0" "asdfghjkl;'`"
    "\0" "\\zxcvbnm,./" "\0\0\0 \0"
)
_UPPER = (
    "\0\0" "!@#$%^&*()_+" "\0\0" "QWERTYUIOP{}" "\0\0" 'ASDFGHJKL:"~'
    "\0" "|ZXCVBNM<>?" "\0\0\0 \0"
)


class KeyAction(Enum):
    """What a single scancode asked for."""

    NONE = "none"
    EDIT = "edit"
    CHARACTER = "character"
    PIANO_NOTE = "piano_note"
    LINE_READY = "line_ready"
    CLEAR_SCREEN = "clear_screen"
    INTERRUPT = "interrupt"
    SEND_PACKET = "send_packet"
    NETWORK_INFO = "network_info"
    TOGGLE_PIANO = "toggle_piano"
    HALT_ALL = "halt_all"
    SHOW_TERMINALS = "show_terminals"
    VIDEO_MODE_640X480 = "video_mode_640x480"
    VIDEO_MODE_800X600 = "video_mode_800x600"
    VIDEO_MODE_1024X768 = "video_mode_1024x768"
    FONT_0 = "font_0"
    FONT_1 = "font_1"
    FONT_2 = "font_2"


_ALT_ACTIONS = {
    F1: KeyAction.VIDEO_MODE_640X480,
    F2: KeyAction.VIDEO_MODE_800X600,
    F3: KeyAction.VIDEO_MODE_1024X768,
    F4: KeyAction.FONT_0,
    F5: KeyAction.FONT_1,
    F6: KeyAction.FONT_2,
}

_CTRL_ACTIONS = {
    KEY_C: KeyAction.INTERRUPT,
    KEY_N: KeyAction.SEND_PACKET,
    KEY_I: KeyAction.NETWORK_INFO,
    KEY_Q: KeyAction.HALT_ALL,
    KEY_V: KeyAction.SHOW_TERMINALS,
}


def translate_scancode(code, shift, caps):
    """Return the character a key press gives, or "" if it gives none.

    Letters are upper case when exactly one of shift and caps lock is on;
    other keys take their shifted form whenever shift is held.
    """
    if not 0 <= code < len(_LOWER):
        return ""
    char = _LOWER[code]
    if char == "\0":
        return ""
    if char.isalpha():
        upper = bool(shift) != bool(caps)
    else:
        upper = bool(shift)
    return _UPPER[code] if upper else char


def head_matches(prefix, name):
    """True when ``prefix`` is a leading part of ``name``."""
    return len(prefix) <= len(name) and name.startswith(prefix)


class LineEditor:
    """Turns scancodes into an edited input line with history and completion."""

    def __init__(self, file_names=None, history_size=REM):
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        names: Iterable[str] = DEFAULT_FILE_NAMES if file_names is None else file_names
        self.file_names: list[str] = list(names)
        self.history_size: int = history_size
        self.shift = False
        self.caps = False
        self.ctrl = False
        self.alt = False
        self.piano_on = False
        self.screen = ""
        self._buffer: list[str] = []
        self._history: list[str] = []
        self._depth = 0
        self._line: Optional[str] = None

    @property
    def buffer(self) -> str:
        """The text typed so far on the current line."""
        return "".join(self._buffer)

    @property
    def history(self) -> list[str]:
        """Entered lines, newest first."""
        return list(self._history)

    def _echo(self, text: str) -> None:
        self.screen += text

    def _erase_last(self) -> None:
        self._buffer.pop()
        self.screen = self.screen[:-1]

    def _erase_all(self) -> None:
        while self._buffer:
            self._erase_last()

    def _load(self, text: str) -> None:
        self._erase_all()
        self._buffer = list(text)
        self._echo(text)

    def _enter(self) -> KeyAction:
        text = self.buffer
        self._line = text + "\n"
        self._history.insert(0, text)
        del self._history[self.history_size:]
        self._echo("\n")
        self._buffer.clear()
        self._depth = 0
        return KeyAction.LINE_READY

    def _complete(self) -> None:
        typed = self.buffer
        matches = [name for name in self.file_names if head_matches(typed, name)]
        if len(matches) == 1:
            self._load(matches[0])

    def _history_up(self) -> None:
        if self._depth < self.history_size and self._depth < len(self._history):
            self._load(self._history[self._depth])
            self._depth += 1
            if self._depth >= self.history_size:
                self._depth = self.history_size - 1

    def _history_down(self) -> None:
        self._depth -= 1
        if self._depth > -1:
            entry = self._history[self._depth] if self._depth < len(self._history) else ""
            self._load(entry)
        if self._depth < 0:
            self._depth = 0
            self._erase_all()

    def feed(self, scancode):
        """Process one scancode and return the action it stands for."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scancode out of range: {scancode}")
        if scancode in (LEFT_SHIFT_PRESS, RIGHT_SHIFT_PRESS):
            self.shift = True
            return KeyAction.NONE
        if scancode in (LEFT_SHIFT_RELEASE, RIGHT_SHIFT_RELEASE):
            self.shift = False
            return KeyAction.NONE
        if scancode == LEFT_CTRL_PRESS:
            self.ctrl = True
            return KeyAction.NONE
        if scancode == LEFT_CTRL_RELEASE:
            self.ctrl = False
            return KeyAction.NONE
        if scancode == LEFT_ALT_PRESS:
            self.alt = True
            return KeyAction.NONE
        if scancode == LEFT_ALT_RELEASE:
            self.alt = False
            return KeyAction.NONE
        if scancode == BACKSPACE:
            if self._buffer:
                self._erase_last()
            return KeyAction.EDIT
        if scancode == ENTER:
            return self._enter()
        if scancode == TAB:
            self._complete()
            return KeyAction.EDIT
        if scancode == ARROW_UP:
            self._history_up()
            return KeyAction.EDIT
        if scancode == ARROW_DOWN:
            self._history_down()
            return KeyAction.EDIT
        if scancode == CAPS_LOCK:
            self.caps = not self.caps
            return KeyAction.NONE
        if self.alt and scancode in _ALT_ACTIONS:
            return _ALT_ACTIONS[scancode]
        if scancode > CAPS_LOCK:
            return KeyAction.NONE

        char = translate_scancode(scancode, self.shift, self.caps)
        if self.ctrl:
            if scancode == KEY_L:
                self.screen = self.buffer
                return KeyAction.CLEAR_SCREEN
            if scancode == KEY_P:
                self.piano_on = not self.piano_on
                return KeyAction.TOGGLE_PIANO
            if scancode in _CTRL_ACTIONS:
                return _CTRL_ACTIONS[scancode]
        if not char:
            return KeyAction.NONE
        if len(self._buffer) < LINE_LIMIT:
            self._buffer.append(char)
            self._echo(char)
        return KeyAction.PIANO_NOTE if self.piano_on else KeyAction.CHARACTER

    def take_line(self):
        """Return the last line finished with Enter, newline included, once.

        Returns None when no line has been entered since the last call.
        """
        line, self._line = self._line, None
        return line