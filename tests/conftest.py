"""Shared test fixtures."""

import ipaddress
from dataclasses import replace
from pathlib import Path

import pytest

from conn_exporter.config import CFG
from conn_exporter.interfaces import Iface, InterfaceEnumerator, InterfaceResolver
from conn_exporter.utils.net import encode_address

TCP_HEADER = ("  sl  local_address rem_address   st tx_queue rx_queue tr tm->when "
              "retrnsmt   uid  timeout inode\n")
UDP_HEADER = ("   sl  local_address rem_address   st tx_queue rx_queue tr tm->when "
              "retrnsmt   uid  timeout inode ref pointer drops\n")


def table_row(n, local, remote, state="0A"):
    """One /proc/net row with the full column set."""
    return (f"{n:4d}: {local} {remote} {state} 00000000:00000000 00:00000000 "
            f"00000000     0        0 {10000 + n} 1 0000000000000000 100 0 0 10 0\n")


def conn_row(n, src, sport, dst, dport, state="01"):
    return table_row(n, encode_address(src, sport), encode_address(dst, dport), state)


def iface(name, *cidrs, isup=True, loopback=False):
    return Iface(name=name, isup=isup, loopback=loopback,
                 addrs=[ipaddress.IPv4Interface(c) for c in cidrs])


class FakeRunner:
    """Canned command output keyed by argv tuple.

    Unknown commands raise FileNotFoundError, like a binary missing from PATH.
    """

    def __init__(self, outputs=None):
        self.outputs = dict(outputs or {})
        self.calls = []

    def run(self, argv):
        self.calls.append(tuple(argv))
        key = tuple(argv)
        if key not in self.outputs:
            raise FileNotFoundError(2, "No such file or directory", argv[0])
        out = self.outputs[key]
        if isinstance(out, Exception):
            raise out
        return out


class StaticInterfaces:
    """Fixed interface topology; ``error`` makes every call raise it."""

    def __init__(self, ifaces=None, error=None):
        self.ifaces = list(ifaces or [])
        self.error = error
        self.calls = 0

    def interfaces(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [replace(i, addrs=list(i.addrs)) for i in self.ifaces]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def topology():
    return StaticInterfaces([
        iface("lo", "127.0.0.1/8", loopback=True),
        iface("eth0", "10.0.0.5/24", "10.0.0.6/24"),
        iface("docker0", "172.17.0.1/16"),
        iface("virbr1", "192.168.100.1/24"),
    ])


@pytest.fixture
def cfg(tmp_path):
    c = CFG()
    c.tcp_table = str(tmp_path / "tcp")
    c.udp_table = str(tmp_path / "udp")
    c.bonding_dir = str(tmp_path / "bonding")
    return c


@pytest.fixture
def resolver(topology, runner, cfg):
    return InterfaceResolver(InterfaceEnumerator(source=topology, runner=runner, cfg=cfg))


@pytest.fixture
def write_table(tmp_path):
    def _write(name, rows, header=TCP_HEADER):
        path = Path(tmp_path) / name
        path.write_text(header + "".join(rows))
        return str(path)
    return _write
