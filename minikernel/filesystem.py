"""Read-only access to a block-structured file-system image.

An image is a sequence of 4 KiB blocks: a boot block holding the
directory, then the inode blocks, then the data blocks.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Mapping, Union

BLOCK_SIZE = 4096
MAX_NAME = 32
MAX_DENTRIES = 63
MAX_DATA_BLOCKS_PER_INODE = 1023

_BOOT_HEADER = struct.Struct("<III52x")
_DENTRY = struct.Struct("<32sII24x")
_INODE_LENGTH = struct.Struct("<I")


class FileSystemError(Exception):
    """Raised when a lookup or read on the image fails."""


class FileType(IntEnum):
    """Kind of object a directory entry names."""

    RTC = 0
    DIRECTORY = 1
    REGULAR = 2


@dataclass(frozen=True)
class Dentry:
    """A directory entry: file name, type and inode number."""

    name: str
    file_type: FileType
    inode: int


def _as_bytes(name: Union[str, bytes]) -> bytes:
    return name.encode("latin-1") if isinstance(name, str) else bytes(name)


def _stored_name(raw: bytes) -> bytes:
    end = raw.find(b"\0")
    return raw if end < 0 else raw[:end]


class FileSystemImage:
    """A parsed file-system image held in memory."""

    def __init__(self, data):
        self._data = bytes(data)
        if len(self._data) < BLOCK_SIZE:
            raise FileSystemError("image is smaller than the boot block")
        self._n_dentry, self._n_inode, self._n_data = _BOOT_HEADER.unpack_from(self._data, 0)
        if self._n_dentry > MAX_DENTRIES:
            raise FileSystemError(f"too many directory entries: {self._n_dentry}")
        needed = (1 + self._n_inode + self._n_data) * BLOCK_SIZE
        if len(self._data) < needed:
            raise FileSystemError(f"image truncated: {len(self._data)} of {needed} bytes")
        self._dentries = [
            _DENTRY.unpack_from(self._data, _BOOT_HEADER.size + i * _DENTRY.size)
            for i in range(self._n_dentry)
        ]

    def _make_dentry(self, raw_name: bytes, file_type: int, inode: int) -> Dentry:
        try:
            kind = FileType(file_type)
        except ValueError:
            raise FileSystemError(f"unknown file type {file_type}") from None
        return Dentry(raw_name.decode("latin-1"), kind, inode)

    def read_dentry_by_name(self, name):
        """Return the entry whose name equals ``name``."""
        wanted = _as_bytes(name)
        size = len(wanted)
        if size > MAX_NAME:
            raise FileSystemError(f"name longer than {MAX_NAME} bytes")
        for stored, file_type, inode in self._dentries:
            if stored[:size] != wanted:
                continue
            if size != MAX_NAME and stored[size] != 0:
                continue
            return self._make_dentry(wanted, file_type, inode)
        raise FileSystemError(f"no such file: {wanted!r}")

    def read_dentry_by_index(self, index):
        """Return the entry at position ``index`` of the directory."""
        if not 0 <= index < self._n_dentry:
            raise FileSystemError(f"directory index out of range: {index}")
        stored, file_type, inode = self._dentries[index]
        return self._make_dentry(_stored_name(stored), file_type, inode)

    def _inode(self, inode: int) -> tuple[int, tuple[int, ...]]:
        if not 0 <= inode < self._n_inode:
            raise FileSystemError(f"inode out of range: {inode}")
        base = (1 + inode) * BLOCK_SIZE
        (length,) = _INODE_LENGTH.unpack_from(self._data, base)
        blocks = struct.unpack_from(f"<{MAX_DATA_BLOCKS_PER_INODE}I", self._data, base + 4)
        return length, blocks

    def read_data(self, inode, offset, length):
        """Read up to ``length`` bytes of a file starting at ``offset``.

        Returns fewer bytes at the end of the file and none at or past it.
        """
        if offset < 0 or length < 0:
            raise FileSystemError("offset and length must not be negative")
        file_length, blocks = self._inode(inode)
        if offset >= file_length:
            return b""
        end = min(offset + length, file_length)
        out = bytearray()
        pos = offset
        while pos < end:
            index, start = divmod(pos, BLOCK_SIZE)
            if index >= MAX_DATA_BLOCKS_PER_INODE:
                raise FileSystemError("file length exceeds inode capacity")
            block = blocks[index]
            if block >= self._n_data:
                raise FileSystemError(f"invalid data block {block}")
            stop = min(BLOCK_SIZE, start + end - pos)
            base = (1 + self._n_inode + block) * BLOCK_SIZE
            out += self._data[base + start:base + stop]
            pos += stop - start
        return bytes(out)

    def file_size(self, inode):
        """Return the length in bytes of the file held by ``inode``."""
        return self._inode(inode)[0]

    def entries(self) -> Iterator[Dentry]:
        """Yield every directory entry in order."""
        for index in range(self._n_dentry):
            yield self.read_dentry_by_index(index)


def build_image(files: Mapping[Union[str, bytes], Union[bytes, FileType]]) -> bytes:
    """Build an image from a mapping of names to contents.

    A value of bytes makes a regular file; a ``FileType`` value makes a
    special entry (RTC or directory) with inode 0.
    """
    if len(files) > MAX_DENTRIES:
        raise FileSystemError(f"at most {MAX_DENTRIES} entries fit in the boot block")
    dentries: list[bytes] = []
    inodes: list[bytes] = []
    data_blocks: list[bytes] = []
    for name, content in files.items():
        raw = _as_bytes(name)
        if len(raw) > MAX_NAME:
            raise FileSystemError(f"name longer than {MAX_NAME} bytes: {raw!r}")
        if isinstance(content, FileType):
            dentries.append(_DENTRY.pack(raw, int(content), 0))
            continue
        payload = bytes(content)
        indices = []
        for start in range(0, len(payload), BLOCK_SIZE):
            indices.append(len(data_blocks))
            data_blocks.append(payload[start:start + BLOCK_SIZE].ljust(BLOCK_SIZE, b"\0"))
        if len(indices) > MAX_DATA_BLOCKS_PER_INODE:
            raise FileSystemError(f"file too large: {raw!r}")
        dentries.append(_DENTRY.pack(raw, int(FileType.REGULAR), len(inodes)))
        inode = _INODE_LENGTH.pack(len(payload)) + struct.pack(f"<{len(indices)}I", *indices)
        inodes.append(inode.ljust(BLOCK_SIZE, b"\0"))
    boot = _BOOT_HEADER.pack(len(dentries), len(inodes), len(data_blocks)) + b"".join(dentries)
    return boot.ljust(BLOCK_SIZE, b"\0") + b"".join(inodes) + b"".join(data_blocks)