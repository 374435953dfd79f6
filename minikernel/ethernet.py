"""Ethernet II frame encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from minikernel.arp import check_mac

ETHERTYPE_IPV4 = 0x0800
ETHERTYPE_ARP = 0x0806
HEADER_SIZE = 14

_TYPE = struct.Struct(">H")


@dataclass
class EthernetFrame:
    """An Ethernet frame: destination, source, EtherType and payload."""

    dest: bytes
    src: bytes
    ethertype: int
    payload: bytes = b""

    def __post_init__(self):
        self.dest = check_mac(self.dest)
        self.src = check_mac(self.src)
        self.payload = bytes(self.payload)

    def pack(self) -> bytes:
        """Encode the frame with the EtherType in network byte order."""
        return self.dest + self.src + _TYPE.pack(self.ethertype) + self.payload

    @classmethod
    def unpack(cls, data) -> "EthernetFrame":
        """Decode a frame; everything after the header is payload."""
        raw = bytes(data)
        if len(raw) < HEADER_SIZE:
            raise ValueError(f"Ethernet frame needs {HEADER_SIZE} bytes, got {len(raw)}")
        (ethertype,) = _TYPE.unpack_from(raw, 12)
        return cls(raw[0:6], raw[6:12], ethertype, raw[HEADER_SIZE:])