"""UDP datagram encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

HEADER_SIZE = 8
DNS_PORT = 53
DHCP_SERVER_PORT = 67
DHCP_CLIENT_PORT = 68

_HEADER = struct.Struct(">HHHH")


def _check_port(port: int) -> int:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return port


@dataclass
class UdpDatagram:
    """A UDP datagram; a checksum of 0 means none was computed."""

    src_port: int
    dst_port: int
    payload: bytes = b""
    checksum: int = 0

    def __post_init__(self):
        _check_port(self.src_port)
        _check_port(self.dst_port)
        self.payload = bytes(self.payload)

    @property
    def length(self) -> int:
        """Length of header and payload in bytes."""
        return HEADER_SIZE + len(self.payload)

    def pack(self) -> bytes:
        """Encode the datagram in network byte order."""
        if self.length > 0xFFFF:
            raise ValueError("UDP payload too large")
        return _HEADER.pack(self.src_port, self.dst_port, self.length, self.checksum) + self.payload

    @classmethod
    def unpack(cls, data) -> "UdpDatagram":
        """Decode a datagram; bytes past its length field are ignored."""
        raw = bytes(data)
        if len(raw) < HEADER_SIZE:
            raise ValueError(f"UDP datagram needs {HEADER_SIZE} bytes, got {len(raw)}")
        src, dst, length, checksum = _HEADER.unpack_from(raw)
        if length < HEADER_SIZE or length > len(raw):
            raise ValueError(f"bad UDP length field: {length}")
        return cls(src, dst, raw[HEADER_SIZE:length], checksum)


def classify_ports(src_port, dst_port) -> Optional[str]:
    """Name the service a port pair belongs to: "dns", "dhcp" or None."""
    if DNS_PORT in (src_port, dst_port):
        return "dns"
    if src_port == DHCP_SERVER_PORT or dst_port == DHCP_CLIENT_PORT:
        return "dhcp"
    return None