"""Address Resolution Protocol packets and the IP-to-MAC table."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

HARDWARE_ADDRESS_LENGTH = 6
PROTOCOL_ADDRESS_LENGTH = 4
ARP_TYPE_FOR_ETHERNET = 1
ARP_TYPE_FOR_IPV4 = 0x0800
ARP_REQUEST = 1
ARP_REPLY = 2
TABLE_CAPACITY = 1000

BROADCAST_MAC = b"\xff" * HARDWARE_ADDRESS_LENGTH
ZERO_MAC = bytes(HARDWARE_ADDRESS_LENGTH)

_ARP = struct.Struct(">HHBBH6s4s6s4s")
PACKET_SIZE = _ARP.size


def check_mac(value) -> bytes:
    """Return ``value`` as six bytes, or raise ValueError."""
    raw = bytes(value)
    if len(raw) != HARDWARE_ADDRESS_LENGTH:
        raise ValueError(f"MAC address must be {HARDWARE_ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


def check_ip(value) -> bytes:
    """Return ``value`` as four bytes, or raise ValueError."""
    raw = bytes(value)
    if len(raw) != PROTOCOL_ADDRESS_LENGTH:
        raise ValueError(f"IPv4 address must be {PROTOCOL_ADDRESS_LENGTH} bytes, got {len(raw)}")
    return raw


def is_valid_mac(haddr) -> bool:
    """A MAC address of all zeros marks an unresolved entry."""
    return bytes(haddr) != ZERO_MAC


@dataclass(frozen=True)
class ArpPacket:
    """An ARP message for Ethernet hardware and IPv4 protocol addresses."""

    opcode: int
    srchw: bytes
    srcpr: bytes
    dsthw: bytes
    dstpr: bytes
    htype: int = ARP_TYPE_FOR_ETHERNET
    ptype: int = ARP_TYPE_FOR_IPV4
    hlen: int = HARDWARE_ADDRESS_LENGTH
    plen: int = PROTOCOL_ADDRESS_LENGTH

    def __post_init__(self):
        object.__setattr__(self, "srchw", check_mac(self.srchw))
        object.__setattr__(self, "dsthw", check_mac(self.dsthw))
        object.__setattr__(self, "srcpr", check_ip(self.srcpr))
        object.__setattr__(self, "dstpr", check_ip(self.dstpr))

    def pack(self) -> bytes:
        """Encode the packet in network byte order."""
        return _ARP.pack(
            self.htype, self.ptype, self.hlen, self.plen, self.opcode,
            self.srchw, self.srcpr, self.dsthw, self.dstpr,
        )

    @classmethod
    def unpack(cls, data) -> "ArpPacket":
        """Decode a packet from the start of ``data``."""
        raw = bytes(data)
        if len(raw) < PACKET_SIZE:
            raise ValueError(f"ARP packet needs {PACKET_SIZE} bytes, got {len(raw)}")
        htype, ptype, hlen, plen, opcode, srchw, srcpr, dsthw, dstpr = _ARP.unpack_from(raw)
        return cls(opcode, srchw, srcpr, dsthw, dstpr, htype, ptype, hlen, plen)


class ArpTable:
    """Mapping from IPv4 addresses to MAC addresses learned from replies."""

    def __init__(self):
        self._entries: list[list[bytes]] = []

    def lookup(self, paddr) -> Optional[bytes]:
        """Return the MAC recorded for ``paddr``, or None if there is none."""
        wanted = check_ip(paddr)
        return next((haddr for ip, haddr in self._entries if ip == wanted), None)

    def insert(self, paddr, haddr) -> None:
        """Record a mapping, replacing a resolved one for the same address."""
        ip = check_ip(paddr)
        mac = check_mac(haddr)
        known = self.lookup(ip)
        if known is not None and is_valid_mac(known):
            for entry in self._entries:
                if entry[0] == ip:
                    entry[1] = mac
            return
        if len(self._entries) >= TABLE_CAPACITY:
            raise ValueError("ARP table is full")
        self._entries.append([ip, mac])

    def __len__(self) -> int:
        return len(self._entries)


def make_request(src_mac, src_ip, dest_ip) -> ArpPacket:
    """Build a broadcast request asking who holds ``dest_ip``."""
    return ArpPacket(ARP_REQUEST, src_mac, src_ip, BROADCAST_MAC, dest_ip)


def make_reply(src_mac, src_ip, request: ArpPacket) -> ArpPacket:
    """Build the reply to ``request`` announcing ``src_mac`` for ``src_ip``."""
    return ArpPacket(ARP_REPLY, src_mac, src_ip, request.srchw, request.srcpr)