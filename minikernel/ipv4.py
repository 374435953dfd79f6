"""IPv4 header encoding, checksum and next-hop selection."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from minikernel.arp import check_ip

IPV4_LENGTH = 4
IP_TCP_NUMBER = 0x06
IP_UDP_NUMBER = 0x11
IP_VERSION_DEFAULT = 4
IP_IHL_DEFAULT = 5
IP_TYPE_OF_SERVICE_DEFAULT = 0
IP_IDENTIFICATION_DEFAULT = 0
IP_FLAGS_DEFAULT = 0x02
IP_TTL_DEFAULT = 64
HEADER_SIZE = 20

DEFAULT_ADDRESS = bytes([10, 0, 2, 15])
GATEWAY_ADDRESS = bytes([10, 0, 2, 2])

_HEADER = struct.Struct(">BBHHHBBH4s4s")
_CHECKSUM_SLICE = slice(10, 12)


def header_checksum(header) -> int:
    """Return the one's-complement checksum of the first 20 header bytes.

    The checksum field itself counts as zero.
    """
    raw = bytearray(bytes(header)[:HEADER_SIZE])
    if len(raw) < HEADER_SIZE:
        raise ValueError(f"IPv4 header needs {HEADER_SIZE} bytes, got {len(raw)}")
    raw[_CHECKSUM_SLICE] = b"\0\0"
    total = sum(struct.unpack(">10H", raw))
    while total > 0xFFFF:
        total = (total >> 16) + (total & 0xFFFF)
    return ~total & 0xFFFF


@dataclass
class Ipv4Header:
    """An IPv4 header without options."""

    src: bytes
    dest: bytes
    protocol: int
    total_length: int = HEADER_SIZE
    version: int = IP_VERSION_DEFAULT
    ihl: int = IP_IHL_DEFAULT
    type_of_service: int = IP_TYPE_OF_SERVICE_DEFAULT
    identification: int = IP_IDENTIFICATION_DEFAULT
    flags: int = IP_FLAGS_DEFAULT
    fragment_offset: int = 0
    ttl: int = IP_TTL_DEFAULT
    checksum: int = field(default=0, compare=False)

    def __post_init__(self):
        self.src = check_ip(self.src)
        self.dest = check_ip(self.dest)

    @property
    def header_length(self) -> int:
        """Length of the header in bytes, as given by IHL."""
        return self.ihl * 4

    def pack(self) -> bytes:
        """Encode the header in network byte order with a fresh checksum."""
        raw = bytearray(_HEADER.pack(
            ((self.version & 0xF) << 4) | (self.ihl & 0xF),
            self.type_of_service,
            self.total_length,
            self.identification,
            ((self.flags & 0x7) << 13) | (self.fragment_offset & 0x1FFF),
            self.ttl,
            self.protocol,
            0,
            self.src,
            self.dest,
        ))
        raw[_CHECKSUM_SLICE] = header_checksum(raw).to_bytes(2, "big")
        return bytes(raw)

    @classmethod
    def unpack(cls, data) -> "Ipv4Header":
        """Decode the fixed part of a header from the start of ``data``."""
        raw = bytes(data)
        if len(raw) < HEADER_SIZE:
            raise ValueError(f"IPv4 header needs {HEADER_SIZE} bytes, got {len(raw)}")
        ver_ihl, tos, total, ident, flags_frag, ttl, proto, checksum, src, dest = _HEADER.unpack_from(raw)
        ihl = ver_ihl & 0xF
        if ihl < IP_IHL_DEFAULT:
            raise ValueError(f"IHL too small: {ihl}")
        return cls(
            src, dest, proto,
            total_length=total,
            version=ver_ihl >> 4,
            ihl=ihl,
            type_of_service=tos,
            identification=ident,
            flags=flags_frag >> 13,
            fragment_offset=flags_frag & 0x1FFF,
            ttl=ttl,
            checksum=checksum,
        )


def next_hop(dest) -> bytes:
    """Return the address to resolve: ``dest`` inside 10.0.x.x, else the gateway."""
    address = check_ip(dest)
    if address[0] == 10 and address[1] == 0:
        return address
    return GATEWAY_ADDRESS