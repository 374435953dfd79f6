"""Host-side stand-ins for the user-level system calls.

Commands run as host programs from the current directory, arguments come
from an argv list, and the directory "." is read one entry at a time.
"""

from __future__ import annotations

import os
import re
import subprocess
from enum import IntEnum
from typing import Iterator, Optional, Sequence, Union

MAX_COMMAND = 1023
NAME_LENGTH = 32
KILL_SIGNAL = 9
OTHER_SIGNAL_STATUS = 256

_SPACES = re.compile(rb" *")
_WORD = re.compile(rb"[^ \n]*")


class SysNum(IntEnum):
    """System call numbers passed in EAX."""

    HALT = 1
    EXECUTE = 2
    READ = 3
    WRITE = 4
    OPEN = 5
    CLOSE = 6
    GETARGS = 7
    VIDMAP = 8
    SET_HANDLER = 9
    SIGRETURN = 10


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return os.fsencode(value) if isinstance(value, str) else bytes(value)


def split_command(command):
    """Split a command line into an argv list whose first item is "./<name>".

    The program name ends at a space or newline; arguments are separated by
    spaces and the list ends at a newline found where an argument would start.
    """
    raw = _as_bytes(command).split(b"\0", 1)[0]
    if len(raw) > MAX_COMMAND:
        raise ValueError(f"command longer than {MAX_COMMAND} bytes")
    name = _WORD.match(raw)
    argv = [b"./" + name.group()]
    rest = raw[name.end() + 1:]
    pos = 0
    while True:
        pos = _SPACES.match(rest, pos).end()
        if pos >= len(rest) or rest[pos:pos + 1] == b"\n":
            break
        word = _WORD.match(rest, pos)
        argv.append(word.group())
        pos = word.end() + 1
    return [os.fsdecode(item) for item in argv]


def execute(command):
    """Run a program from the current directory and wait for it.

    Returns its exit status, -1 if it was killed by SIGKILL and 256 if
    another signal ended it. Raises OSError if it cannot be started.
    """
    completed = subprocess.run(split_command(command))
    code = completed.returncode
    if code >= 0:
        return code
    return -1 if -code == KILL_SIGNAL else OTHER_SIGNAL_STATUS


def getargs(argv: Sequence[Union[str, bytes]], nbytes):
    """Join the arguments after the program name with single spaces.

    Raises ValueError when the result and its terminating NUL do not fit
    in ``nbytes`` bytes.
    """
    joined = b" ".join(_as_bytes(arg) for arg in list(argv)[1:])
    if len(joined) + 1 > nbytes:
        raise ValueError(f"arguments do not fit in {nbytes} bytes")
    return os.fsdecode(joined)


class DirectoryReader:
    """Reads a directory's entry names, one per call, like a file."""

    def __init__(self, path="."):
        names = [".", ".."] + os.listdir(path)
        self._names: Optional[Iterator[bytes]] = iter([os.fsencode(n) for n in names])

    def read(self, nbytes):
        """Return the next name, NUL-padded to ``min(nbytes, 32)`` bytes.

        Longer names are cut to that width; b"" marks the end.
        """
        if self._names is None:
            raise ValueError("directory is closed")
        if nbytes <= 0:
            raise ValueError("byte count must be positive")
        name = next(self._names, None)
        if name is None:
            return b""
        width = min(nbytes, NAME_LENGTH)
        return name[:width].ljust(width, b"\0")

    def close(self):
        """Close the reader; later reads raise ValueError."""
        if self._names is None:
            raise ValueError("directory is already closed")
        self._names = None

    def __enter__(self) -> "DirectoryReader":
        return self

    def __exit__(self, *exc_info) -> None:
        if self._names is not None:
            self.close()