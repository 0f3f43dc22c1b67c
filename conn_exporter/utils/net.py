from __future__ import annotations
import ipaddress, socket, string
from typing import Tuple

from ..errors import InvalidAddressLength, InvalidHex, MalformedAddress, UnsupportedAddressFamily

TCP_STATES = {
    "01": "ESTABLISHED",
    "02": "SYN_SENT",
    "03": "SYN_RECV",
    "04": "FIN_WAIT1",
    "05": "FIN_WAIT2",
    "06": "TIME_WAIT",
    "07": "CLOSE",
    "08": "CLOSE_WAIT",
    "09": "LAST_ACK",
    "0A": "LISTEN",
    "0B": "CLOSING",
}
UNKNOWN_STATE = "UNKNOWN"

LOCAL_NETWORKS = tuple(ipaddress.ip_network(n) for n in (
    "0.0.0.0/32", "127.0.0.0/8", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "169.254.0.0/16",
))

_HEXDIGITS = frozenset(string.hexdigits)


def _is_hex(s: str) -> bool:
    return bool(s) and all(c in _HEXDIGITS for c in s)


def tcp_state(code: str) -> str:
    return TCP_STATES.get(code.upper(), UNKNOWN_STATE)


def decode_address(field: str) -> Tuple[str, str]:
    """Decode a /proc/net 'HEXIP:HEXPORT' field into ('a.b.c.d', 'port').

    The kernel prints the address in host (little-endian) byte order, the
    port in network order.
    """
    parts = field.split(":")
    if len(parts) != 2:
        raise MalformedAddress(f"invalid address format: {field!r}")
    hex_ip, hex_port = parts
    if not _is_hex(hex_ip):
        raise InvalidHex(f"invalid hex address: {hex_ip!r}")
    if not _is_hex(hex_port):
        raise InvalidHex(f"invalid hex port: {hex_port!r}")
    try:
        raw = bytes.fromhex(hex_ip)
    except ValueError as e:
        raise InvalidHex(f"invalid hex address: {hex_ip!r}") from e
    if len(raw) == 16:
        raise UnsupportedAddressFamily("IPv6 addresses are not supported")
    if len(raw) != 4:
        raise InvalidAddressLength(f"invalid IP address length: {len(raw)}")
    port = int(hex_port, 16)
    if port > 0xFFFF:
        raise MalformedAddress(f"port out of range: {hex_port!r}")
    return socket.inet_ntoa(raw[::-1]), str(port)


def encode_address(ip: str, port: int | str) -> str:
    return f"{socket.inet_aton(ip)[::-1].hex().upper()}:{int(port):04X}"


def is_loopback(ip: str) -> bool:
    try:
        return ipaddress.IPv4Address(ip).is_loopback
    except ValueError:
        return False


def is_local_ip(ip: str) -> bool:
    try:
        addr = ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return any(addr in net for net in LOCAL_NETWORKS)
