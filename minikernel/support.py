"""Byte-string helpers with C-string semantics: a NUL byte ends the string."""

from __future__ import annotations

from typing import IO, Union

Text = Union[str, bytes, bytearray]


def _as_bytes(value: Text) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _terminated(value: Text) -> bytes:
    """Return the bytes of ``value`` up to its first NUL, with one NUL added."""
    return _as_bytes(value).split(b"\0", 1)[0] + b"\0"


def strcmp(s1, s2):
    """Compare two strings byte by byte.

    Returns zero when they are equal, otherwise the difference between the
    first pair of bytes that differ.
    """
    for left, right in zip(_terminated(s1), _terminated(s2)):
        if left != right:
            return left - right
        if left == 0:
            break
    return 0


def strncmp(s1, s2, n):
    """Compare at most ``n`` bytes of two strings, as :func:`strcmp` does."""
    if n < 0:
        raise ValueError("n must not be negative")
    for left, right in zip(_terminated(s1)[:n], _terminated(s2)[:n]):
        if left != right:
            return left - right
        if left == 0:
            break
    return 0


def fdputs(stream: IO, s):
    """Write ``s`` up to its first NUL to ``stream`` and return the count written.

    A str is written to the stream as text, bytes as bytes.
    """
    if isinstance(s, str):
        text = s.split("\0", 1)[0]
    else:
        text = bytes(s).split(b"\0", 1)[0]
    stream.write(text)
    return len(text)