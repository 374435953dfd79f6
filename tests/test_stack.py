import pytest

from minikernel.arp import (
    ARP_REPLY,
    ARP_REQUEST,
    BROADCAST_MAC,
    ZERO_MAC,
    ArpPacket,
    make_reply,
    make_request,
)
from minikernel.ethernet import ETHERTYPE_ARP, ETHERTYPE_IPV4, EthernetFrame
from minikernel.ipv4 import (
    DEFAULT_ADDRESS,
    GATEWAY_ADDRESS,
    IP_TCP_NUMBER,
    IP_UDP_NUMBER,
    Ipv4Header,
)
from minikernel.stack import ARP_ATTEMPTS, NetworkStack
from minikernel.udp import UdpDatagram

OUR_MAC = bytes([2, 0, 0, 0, 0, 1])
PEER_MAC = bytes([2, 0, 0, 0, 0, 2])
GATEWAY_MAC = bytes([2, 0, 0, 0, 0, 3])
PEER_IP = bytes([10, 0, 2, 20])
REMOTE_IP = bytes([192, 168, 1, 1])


@pytest.fixture
def sent():
    return []


@pytest.fixture
def stack(sent):
    return NetworkStack(OUR_MAC, DEFAULT_ADDRESS, sent.append)


def _arp_frame(packet, dest=OUR_MAC, src=PEER_MAC):
    return EthernetFrame(dest, src, ETHERTYPE_ARP, packet.pack()).pack()


def test_arp_request_broadcast(stack, sent):
    stack.arp_request(PEER_IP)
    assert len(sent) == 1
    frame = EthernetFrame.unpack(sent[0])
    assert frame.dest == BROADCAST_MAC
    assert frame.ethertype == ETHERTYPE_ARP
    assert ArpPacket.unpack(frame.payload) == make_request(OUR_MAC, DEFAULT_ADDRESS, PEER_IP)


def test_receive_reply_fills_table(stack, sent):
    reply = make_reply(PEER_MAC, PEER_IP, make_request(OUR_MAC, DEFAULT_ADDRESS, PEER_IP))
    result = stack.receive_frame(_arp_frame(reply))
    assert result == reply
    assert stack.arp_table.lookup(PEER_IP) == PEER_MAC
    assert sent == []


def test_receive_request_for_us_replies(stack, sent):
    request = make_request(PEER_MAC, PEER_IP, DEFAULT_ADDRESS)
    stack.receive_frame(_arp_frame(request, dest=BROADCAST_MAC))
    assert len(sent) == 1
    frame = EthernetFrame.unpack(sent[0])
    assert frame.dest == PEER_MAC
    reply = ArpPacket.unpack(frame.payload)
    assert reply.opcode == ARP_REPLY
    assert (reply.srchw, reply.srcpr) == (OUR_MAC, DEFAULT_ADDRESS)
    assert (reply.dsthw, reply.dstpr) == (PEER_MAC, PEER_IP)


def test_receive_request_for_other_ignored(stack, sent):
    request = make_request(PEER_MAC, PEER_IP, REMOTE_IP)
    stack.receive_frame(_arp_frame(request, dest=BROADCAST_MAC))
    assert sent == []
    assert len(stack.arp_table) == 0


def test_receive_unsupported_hardware_ignored(stack):
    packet = ArpPacket(ARP_REPLY, PEER_MAC, PEER_IP, OUR_MAC, DEFAULT_ADDRESS, htype=6)
    assert stack.receive_frame(_arp_frame(packet)) is None
    assert len(stack.arp_table) == 0


def test_unknown_ethertype_ignored(stack):
    frame = EthernetFrame(OUR_MAC, PEER_MAC, 0x86DD, b"\x00" * 40).pack()
    assert stack.receive_frame(frame) is None


def test_receive_udp(stack):
    datagram = UdpDatagram(1000, 2000, b"hi")
    body = datagram.pack()
    header = Ipv4Header(PEER_IP, DEFAULT_ADDRESS, IP_UDP_NUMBER, total_length=20 + len(body))
    frame = EthernetFrame(OUR_MAC, PEER_MAC, ETHERTYPE_IPV4, header.pack() + body).pack()
    assert stack.receive_frame(frame) == datagram


def test_receive_other_ip_protocol_ignored(stack):
    header = Ipv4Header(PEER_IP, DEFAULT_ADDRESS, IP_TCP_NUMBER)
    frame = EthernetFrame(OUR_MAC, PEER_MAC, ETHERTYPE_IPV4, header.pack()).pack()
    assert stack.receive_frame(frame) is None


def test_send_without_answer_falls_back_to_zero_mac(stack, sent):
    stack.udp_send(PEER_IP, 1000, 2000, b"x")
    assert len(sent) == ARP_ATTEMPTS + 1
    requests = [EthernetFrame.unpack(f) for f in sent[:-1]]
    assert all(f.ethertype == ETHERTYPE_ARP for f in requests)
    assert all(ArpPacket.unpack(f.payload).opcode == ARP_REQUEST for f in requests)
    last = EthernetFrame.unpack(sent[-1])
    assert last.dest == ZERO_MAC
    assert last.ethertype == ETHERTYPE_IPV4


def test_send_resolves_gateway_for_remote():
    sent = []
    holder = {}

    def transmit(frame):
        sent.append(frame)
        ether = EthernetFrame.unpack(frame)
        if ether.ethertype != ETHERTYPE_ARP:
            return
        packet = ArpPacket.unpack(ether.payload)
        if packet.opcode == ARP_REQUEST:
            reply = make_reply(GATEWAY_MAC, packet.dstpr, packet)
            holder["stack"].receive_frame(_arp_frame(reply, src=GATEWAY_MAC))

    stack = NetworkStack(OUR_MAC, DEFAULT_ADDRESS, transmit)
    holder["stack"] = stack
    frame_bytes = stack.udp_send(REMOTE_IP, 33333, 52341, b"Hello")

    assert len(sent) == 2
    request = ArpPacket.unpack(EthernetFrame.unpack(sent[0]).payload)
    assert request.dstpr == GATEWAY_ADDRESS
    frame = EthernetFrame.unpack(frame_bytes)
    assert frame.dest == GATEWAY_MAC
    header = Ipv4Header.unpack(frame.payload)
    assert header.dest == REMOTE_IP
    assert header.src == DEFAULT_ADDRESS
    assert header.protocol == IP_UDP_NUMBER
    assert header.total_length == len(frame.payload)
    datagram = UdpDatagram.unpack(frame.payload[header.header_length:])
    assert datagram == UdpDatagram(33333, 52341, b"Hello")


def test_send_uses_known_mapping(stack, sent):
    stack.arp_table.insert(PEER_IP, PEER_MAC)
    stack.ipv4_send(PEER_IP, IP_UDP_NUMBER, b"raw")
    assert len(sent) == 1
    frame = EthernetFrame.unpack(sent[0])
    assert frame.dest == PEER_MAC
    assert frame.payload.endswith(b"raw")