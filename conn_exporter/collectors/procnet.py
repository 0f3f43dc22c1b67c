"""Readers for the kernel's /proc/net/{tcp,udp} connection tables.

Each data row looks like::

    sl  local_address rem_address   st tx_queue:rx_queue tr:tm->when retrnsmt  uid  timeout inode
    0: 0100007F:0016 00000000:0000 0A 00000000:00000000 00:00000000 00000000     0        0 12345 ...

Rows that cannot be decoded are skipped; every other row becomes a
ConnectionRecord, with "unknown" standing in for whatever could not be
resolved.
"""
from __future__ import annotations
import logging
from typing import AbstractSet, Iterator, List, Mapping, Optional, Tuple

from ..errors import DecodeError, SourceUnavailable
from ..models import UNKNOWN, ConnectionRecord
from ..utils.net import decode_address, tcp_state

log = logging.getLogger(__name__)

MIN_FIELDS = 10
INCOMING, OUTGOING = "incoming", "outgoing"


def _read_lines(path: str) -> List[str]:
    try:
        with open(path, "r", errors="replace") as f:
            return f.readlines()
    except OSError as e:
        raise SourceUnavailable(path, e.strerror or str(e)) from e


def _rows(path: str) -> Iterator[Tuple[str, str, str, str, str]]:
    """Yield (src, sport, dst, dport, state_code) for each decodable row."""
    for lineno, line in enumerate(_read_lines(path)[1:], start=2):
        fields = line.split()
        if len(fields) < MIN_FIELDS:
            if fields:
                log.debug("%s:%d: skipping malformed row (%d fields)", path, lineno, len(fields))
            continue
        try:
            src, sport = decode_address(fields[1])
            dst, dport = decode_address(fields[2])
        except DecodeError as e:
            log.warning("%s:%d: error parsing address: %s", path, lineno, e)
            continue
        yield src, sport, dst, dport, fields[3]


def _interface(resolver, src: str, dst: str) -> str:
    return resolver.resolve(src, dst) if resolver is not None else UNKNOWN


def read_tcp(path: str, resolver=None, listen_ports: Optional[AbstractSet[str]] = None,
             processes: Optional[Mapping[str, str]] = None) -> List[ConnectionRecord]:
    """Decode a TCP table.

    With ``listen_ports`` given, each row's direction is classified by
    whether its source port is one of them; without it the direction is
    left "unknown". ``processes`` maps listening port -> process name and is
    only consulted for LISTEN rows and server-side ESTABLISHED rows.
    """
    records: List[ConnectionRecord] = []
    processes = processes or {}
    for src, sport, dst, dport, code in _rows(path):
        state = tcp_state(code)
        if listen_ports is None:
            direction = UNKNOWN
        else:
            direction = INCOMING if sport in listen_ports else OUTGOING
        name = ""
        if state == "LISTEN" or (state == "ESTABLISHED" and direction == INCOMING):
            name = processes.get(sport, "")
        records.append(ConnectionRecord(
            source_address=src, source_port=sport,
            destination_address=dst, destination_port=dport,
            state=state, protocol="tcp",
            interface=_interface(resolver, src, dst),
            direction=direction, process_name=name,
        ))
    return records


def read_udp(path: str, resolver=None) -> List[ConnectionRecord]:
    # no TCP-style state column for UDP; a bound local port counts as listening
    records: List[ConnectionRecord] = []
    for src, sport, dst, dport, _ in _rows(path):
        records.append(ConnectionRecord(
            source_address=src, source_port=sport,
            destination_address=dst, destination_port=dport,
            state="LISTEN" if sport != "0" else "UNCONN", protocol="udp",
            interface=_interface(resolver, src, dst),
        ))
    return records


def listening_port_set(records: List[ConnectionRecord]) -> set[str]:
    return {r.source_port for r in records if r.state == "LISTEN"}
