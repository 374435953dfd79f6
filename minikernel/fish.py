"""Blink entries for the fish animation and the pool they live in.

Two text frames are laid side by side: each screen cell where either frame
shows a visible character becomes an entry that alternates between the
character of frame 0 and that of frame 1.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Iterator, Union

SCREEN_WIDTH = 80
SCREEN_HEIGHT = 25
FRAME_OFFSET = 40
FRAME_BLINK_LENGTH = 15


class BlinkCommand(IntEnum):
    """Commands accepted by the blink driver's ioctl."""

    ADD = 0
    REMOVE = 1
    FIND = 2
    SYNC = 3


@dataclass
class BlinkEntry:
    """A screen cell that alternates between two characters."""

    location: int = 0
    on_char: str = "\0"
    off_char: str = "\0"
    on_length: int = 0
    off_length: int = 0
    countdown: int = 0
    status: int = 0


class BlinkPool:
    """A fixed array of entries; an entry with location 0 is free."""

    def __init__(self, size=SCREEN_WIDTH * SCREEN_HEIGHT):
        if size <= 0:
            raise ValueError("pool size must be positive")
        self.entries = [BlinkEntry() for _ in range(size)]

    def allocate(self):
        """Return the first free entry; it stays free until its location is set."""
        entry = next((e for e in self.entries if e.location == 0), None)
        if entry is None:
            raise MemoryError("blink pool exhausted")
        return entry

    def free(self, entry):
        """Reset every field of ``entry``, making it free again."""
        for item in fields(BlinkEntry):
            setattr(entry, item.name, item.default)


class _FrameReader:
    """Reads one frame a character at a time, holding at the end of a line."""

    def __init__(self, text: str):
        self._chars = iter(text)
        self.char = "0"
        self.eof = False

    def advance(self) -> None:
        if self.char == "\n":
            return
        char = next(self._chars, None)
        if char is None:
            self.char = "\n"
            self.eof = True
        else:
            self.char = char

    def next_row(self) -> None:
        self.char = "\n" if self.eof else "0"

    @property
    def shown(self) -> str:
        return " " if self.char == "\n" else self.char

    @property
    def visible(self) -> bool:
        return self.char not in (" ", "\n")


def _text(frame: Union[str, bytes]) -> str:
    return frame.decode("latin-1") if isinstance(frame, (bytes, bytearray)) else frame


def frame_entries(frame0, frame1, offset=FRAME_OFFSET) -> Iterator[BlinkEntry]:
    """Yield one entry per cell where either frame has a visible character.

    Rows are 80 cells wide and ``offset`` is added to every location.
    """
    readers = (_FrameReader(_text(frame0)), _FrameReader(_text(frame1)))
    first, second = readers
    row = 0
    while not (first.eof and second.eof):
        col = 0
        while True:
            for reader in readers:
                reader.advance()
            if first.char == "\n" and second.char == "\n":
                break
            if first.visible or second.visible:
                yield BlinkEntry(
                    location=row * SCREEN_WIDTH + col + offset,
                    on_char=first.shown,
                    off_char=second.shown,
                    on_length=FRAME_BLINK_LENGTH,
                    off_length=FRAME_BLINK_LENGTH,
                )
            col += 1
        for reader in readers:
            reader.next_row()
        row += 1