"""A small network stack: Ethernet, ARP, IPv4 and UDP over a transmit hook."""

from __future__ import annotations

from typing import Callable, Optional, Union

from minikernel.arp import (
    ARP_REPLY,
    ARP_REQUEST,
    ARP_TYPE_FOR_ETHERNET,
    ARP_TYPE_FOR_IPV4,
    BROADCAST_MAC,
    ZERO_MAC,
    ArpPacket,
    ArpTable,
    check_ip,
    check_mac,
    is_valid_mac,
    make_reply,
    make_request,
)
from minikernel.ethernet import ETHERTYPE_ARP, ETHERTYPE_IPV4, EthernetFrame
from minikernel.ipv4 import HEADER_SIZE, IP_UDP_NUMBER, Ipv4Header, next_hop
from minikernel.udp import UdpDatagram, classify_ports

ARP_ATTEMPTS = 10


class NetworkStack:
    """Sends and receives frames for one interface.

    ``transmit`` is called with each encoded Ethernet frame to send.
    """

    def __init__(self, mac, ip, transmit):
        self.mac: bytes = check_mac(mac)
        self.ip: bytes = check_ip(ip)
        self._transmit: Callable[[bytes], object] = transmit
        self.arp_table = ArpTable()

    def _send(self, dest: bytes, ethertype: int, payload: bytes) -> bytes:
        frame = EthernetFrame(dest, self.mac, ethertype, payload).pack()
        self._transmit(frame)
        return frame

    def arp_request(self, dest_ip) -> bytes:
        """Broadcast a request for the MAC address of ``dest_ip``."""
        packet = make_request(self.mac, self.ip, dest_ip)
        return self._send(BROADCAST_MAC, ETHERTYPE_ARP, packet.pack())

    def receive_frame(self, frame) -> Optional[Union[ArpPacket, UdpDatagram]]:
        """Handle an incoming frame and return the ARP or UDP message it held.

        Frames of other kinds, and ARP messages for other hardware or
        protocol types, give None.
        """
        ether = EthernetFrame.unpack(frame)
        if ether.ethertype == ETHERTYPE_ARP:
            return self._receive_arp(ArpPacket.unpack(ether.payload))
        if ether.ethertype == ETHERTYPE_IPV4:
            return self._receive_ipv4(ether.payload)
        return None

    def _receive_arp(self, packet: ArpPacket) -> Optional[ArpPacket]:
        if packet.htype != ARP_TYPE_FOR_ETHERNET or packet.ptype != ARP_TYPE_FOR_IPV4:
            return None
        if packet.opcode == ARP_REPLY:
            self.arp_table.insert(packet.srcpr, packet.srchw)
        elif packet.opcode == ARP_REQUEST and packet.dstpr == self.ip:
            reply = make_reply(self.mac, self.ip, packet)
            self._send(packet.srchw, ETHERTYPE_ARP, reply.pack())
        return packet

    def _receive_ipv4(self, payload: bytes) -> Optional[UdpDatagram]:
        header = Ipv4Header.unpack(payload)
        if header.protocol != IP_UDP_NUMBER:
            return None
        datagram = UdpDatagram.unpack(payload[header.header_length:])
        classify_ports(datagram.src_port, datagram.dst_port)
        return datagram

    def _resolve(self, address: bytes) -> bytes:
        for _ in range(ARP_ATTEMPTS):
            known = self.arp_table.lookup(address)
            if known is not None and is_valid_mac(known):
                return known
            self.arp_request(address)
        return ZERO_MAC

    def ipv4_send(self, dest, protocol, data) -> bytes:
        """Send ``data`` in an IPv4 packet and return the frame sent.

        The next hop is resolved by ARP; if no reply arrives after the
        allowed requests the frame goes to the all-zero MAC address.
        """
        payload = bytes(data)
        header = Ipv4Header(self.ip, dest, protocol, total_length=HEADER_SIZE + len(payload))
        mac = self._resolve(next_hop(dest))
        return self._send(mac, ETHERTYPE_IPV4, header.pack() + payload)

    def udp_send(self, dest_ip, src_port, dst_port, data) -> bytes:
        """Send ``data`` as a UDP datagram and return the frame sent."""
        datagram = UdpDatagram(src_port, dst_port, data)
        return self.ipv4_send(dest_ip, IP_UDP_NUMBER, datagram.pack())