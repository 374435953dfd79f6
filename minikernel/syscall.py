"""Process-level system calls over a read-only file-system image.

A :class:`Process` owns a table of eight file descriptors; descriptors 0
and 1 are the console input and output. A :class:`Kernel` allocates
process ids, loads executables from the image and tears processes down.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Union

from minikernel.filesystem import FileSystemError, FileSystemImage

FNAME_LEN = 32
HEADER_LEN = 40
ARG_LEN = 128
FD_NUM = 8
EXCEPTION_RETURN = 256
ELF_MAGIC = b"\x7fELF"
ENTRY_POINT_OFFSET = 24
PROGRAM_ADDRESS = 0x8048000
RAND_MAX = 0x7FFFFFFF
DEFAULT_SEED = 56

_MULTIPLIER = 16807
_QUOTIENT = 127773
_REMAINDER = 2836
_U32 = 0xFFFFFFFF


class SystemCallError(Exception):
    """Raised where a system call fails."""


class FileKind(Enum):
    """What an open descriptor refers to."""

    STDIN = "stdin"
    STDOUT = "stdout"
    RTC = "rtc"
    DIRECTORY = "directory"
    FILE = "file"


@dataclass
class FileDescriptor:
    """An open descriptor: its kind, inode and current position.

    For a directory the position is the index of the next entry.
    """

    kind: FileKind
    inode: Optional[int] = None
    position: int = 0


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("latin-1") if isinstance(value, str) else bytes(value)


def parse_command(command):
    """Split a command line into its file name and argument string.

    Leading spaces and the spaces between the name and the arguments are
    dropped; the arguments are kept as they stand otherwise.
    """
    if command is None:
        raise SystemCallError("no command given")
    text = _to_bytes(command)
    end = text.find(b"\0")
    if end >= 0:
        text = text[:end]
    rest = text.lstrip(b" ")
    cut = rest.find(b" ")
    fname, rest = (rest, b"") if cut < 0 else (rest[:cut], rest[cut:])
    if len(fname) > FNAME_LEN:
        raise SystemCallError(f"file name longer than {FNAME_LEN} bytes")
    args = rest.lstrip(b" ")
    if len(args) >= ARG_LEN:
        raise SystemCallError(f"arguments must be shorter than {ARG_LEN} bytes")
    return fname.decode("latin-1"), args.decode("latin-1")


class Process:
    """A process with its descriptor table and command-line arguments."""

    def __init__(self, fs, pid, parent_pid, args):
        self.fs: FileSystemImage = fs
        self.pid: int = pid
        self.parent_pid: Optional[int] = parent_pid
        self.args: bytes = _to_bytes(args)[:ARG_LEN]
        self.stdin: BinaryIO = io.BytesIO()
        self.stdout: BinaryIO = io.BytesIO()
        self.entry_point: int = 0
        self.image: bytes = b""
        self.fds: list[Optional[FileDescriptor]] = [None] * FD_NUM
        self.fds[0] = FileDescriptor(FileKind.STDIN)
        self.fds[1] = FileDescriptor(FileKind.STDOUT)

    def _descriptor(self, fd: int) -> FileDescriptor:
        if not 0 <= fd < FD_NUM:
            raise SystemCallError(f"bad file descriptor {fd}")
        entry = self.fds[fd]
        if entry is None:
            raise SystemCallError(f"file descriptor {fd} is not open")
        return entry

    def open(self, filename):
        """Open a file by name and return the new descriptor number."""
        if filename is None:
            raise SystemCallError("no file name given")
        free = next((fd for fd in range(2, FD_NUM) if self.fds[fd] is None), None)
        if free is None:
            raise SystemCallError("no free file descriptor")
        name = _to_bytes(filename)
        try:
            dentry = self.fs.read_dentry_by_name(name)
        except FileSystemError as exc:
            raise SystemCallError(str(exc)) from exc
        if name == b".":
            kind = FileKind.DIRECTORY
        elif name == b"rtc":
            kind = FileKind.RTC
        else:
            kind = FileKind.FILE
        self.fds[free] = FileDescriptor(kind, dentry.inode, 0)
        return free

    def close(self, fd):
        """Close an open descriptor."""
        self._descriptor(fd)
        self.fds[fd] = None

    def read(self, fd, nbytes):
        """Read from a descriptor; an empty result marks the end."""
        if nbytes < 0:
            raise SystemCallError("byte count must not be negative")
        entry = self._descriptor(fd)
        if entry.kind is FileKind.STDIN:
            return self.stdin.readline(nbytes)
        if entry.kind is FileKind.FILE:
            try:
                data = self.fs.read_data(entry.inode, entry.position, nbytes)
            except FileSystemError as exc:
                raise SystemCallError(str(exc)) from exc
            entry.position += len(data)
            return data
        if entry.kind is FileKind.DIRECTORY:
            try:
                dentry = self.fs.read_dentry_by_index(entry.position)
            except FileSystemError:
                return b""
            entry.position += 1
            return dentry.name.encode("latin-1")[:FNAME_LEN]
        if entry.kind is FileKind.RTC:
            raise SystemCallError("no RTC device is attached")
        raise SystemCallError("descriptor cannot be read")

    def write(self, fd, data):
        """Write to a descriptor and return the number of bytes written."""
        entry = self._descriptor(fd)
        if entry.kind is FileKind.STDOUT:
            payload = bytes(data)
            self.stdout.write(payload)
            return len(payload)
        if entry.kind is FileKind.RTC:
            raise SystemCallError("no RTC device is attached")
        raise SystemCallError("descriptor cannot be written")

    def getargs(self, nbytes):
        """Return at most ``nbytes`` of the process's arguments."""
        if nbytes <= 0:
            raise SystemCallError("buffer size must be positive")
        if not self.args or self.args[0] == 0:
            raise SystemCallError("process has no arguments")
        return self.args[:nbytes]


class Kernel:
    """Loads programs from the image and tracks the running processes."""

    def __init__(self, fs, max_process):
        if max_process <= 0:
            raise ValueError("max_process must be positive")
        self.fs: FileSystemImage = fs
        self.max_process: int = max_process
        self.processes: dict[int, Process] = {}
        self.current_pid: Optional[int] = None

    def execute(self, command):
        """Load the named executable and make it the current process."""
        fname, args = parse_command(command)
        try:
            dentry = self.fs.read_dentry_by_name(fname)
            header = self.fs.read_data(dentry.inode, 0, HEADER_LEN)
        except FileSystemError as exc:
            raise SystemCallError(str(exc)) from exc
        if header[:4] != ELF_MAGIC:
            raise SystemCallError(f"not an executable file: {fname!r}")
        pid = next((p for p in range(self.max_process) if p not in self.processes), None)
        if pid is None:
            raise SystemCallError("maximum number of processes reached")
        process = Process(self.fs, pid, self.current_pid, args)
        process.image = self.fs.read_data(dentry.inode, 0, self.fs.file_size(dentry.inode))
        raw_entry = header[ENTRY_POINT_OFFSET:ENTRY_POINT_OFFSET + 4].ljust(4, b"\0")
        process.entry_point = int.from_bytes(raw_entry, "little")
        self.processes[pid] = process
        self.current_pid = pid
        return process

    def halt(self, pid, status):
        """End a process and return its exit value to the parent.

        A status of 1 marks a halt by exception and yields 256; any other
        status yields 0. Halting a process with no parent starts a new shell.
        """
        process = self.processes.get(pid)
        if process is None:
            raise SystemCallError(f"no such process: {pid}")
        result = EXCEPTION_RETURN if (status & 0xFF) == 1 else 0
        process.fds = [None] * FD_NUM
        del self.processes[pid]
        if process.parent_pid is None:
            self.current_pid = None
            self.execute("shell")
        else:
            self.current_pid = process.parent_pid
        return result


class RandomGenerator:
    """Multiplicative congruential generator in 32-bit unsigned arithmetic."""

    def __init__(self, seed=DEFAULT_SEED):
        self.seed = DEFAULT_SEED
        self.set_seed(seed)

    def rand(self):
        """Advance the seed and return the next number in [0, RAND_MAX)."""
        quot, rem = divmod(self.seed, _QUOTIENT)
        self.seed = (_MULTIPLIER * rem - _REMAINDER * quot) & _U32
        return ((self.seed - 1) & _U32) % RAND_MAX

    def set_seed(self, val):
        """Set the seed; 0 and RAND_MAX select the default seed."""
        val &= _U32
        self.seed = DEFAULT_SEED if val in (0, RAND_MAX) else val