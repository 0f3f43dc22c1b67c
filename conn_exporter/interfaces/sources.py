from __future__ import annotations
import errno, ipaddress, logging, os, re, socket
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import psutil

from ..config import CFG
from ..errors import CommandUnavailable, InterfaceEnumerationError
from ..utils.cmd import SubprocessRunner, run_first

log = logging.getLogger(__name__)

# "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 ..." / "5: veth1a2b@if4: <...>"
IP_HEADER_RE = re.compile(r"^\d+:\s+(?P<name>[^:@\s]+)(?:@\S+)?:\s+<(?P<flags>[^>]*)>")
# "inet 172.20.164.118/24 brd 172.20.164.255 scope global secondary eth0:gssapt11"
IP_INET_RE = re.compile(r"^inet\s+(?P<addr>\d{1,3}(?:\.\d{1,3}){3})(?:/(?P<plen>\d{1,2}))?")


@dataclass
class Iface:
    name: str
    isup: bool = True
    loopback: bool = False
    addrs: List[ipaddress.IPv4Interface] = field(default_factory=list)
    guessed: bool = False  # canned last-resort entry, not seen on the host

    @property
    def ipv4(self) -> List[str]:
        return [str(a.ip) for a in self.addrs]


def _ipv4_iface(address: str, mask: Optional[str | int] = None) -> Optional[ipaddress.IPv4Interface]:
    try:
        return ipaddress.IPv4Interface(f"{address}/{mask if mask not in (None, '') else 32}")
    except ValueError:
        try:
            return ipaddress.IPv4Interface(address)
        except ValueError:
            return None


def is_noisy_virtual(name: str) -> bool:
    """Container plumbing that never carries the host's own addresses.

    Libvirt bridges (virbr*) and bonds are kept on purpose.
    """
    if "docker" in name:
        return True
    if "veth" in name and "vnet" not in name:
        return True
    if "br-" in name and "virbr" not in name:
        return True
    return False


class PsutilInterfaces:
    def interfaces(self) -> List[Iface]:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
        out: List[Iface] = []
        for name, entries in addrs.items():
            st = stats.get(name)
            flags = (getattr(st, "flags", "") or "").split(",")  # psutil >= 5.9.3
            iface = Iface(name=name, isup=bool(st and st.isup),
                          loopback=("loopback" in flags or name == "lo"))
            for a in entries:
                if a.family != socket.AF_INET:
                    continue
                addr = _ipv4_iface(a.address, a.netmask)
                if addr is not None:
                    iface.addrs.append(addr)
            out.append(iface)
        return out


def parse_ip_addr(text: str) -> List[Iface]:
    """Parse `ip -4 addr show`; inet lines belong to the last header seen."""
    ifaces: List[Iface] = []
    current: Optional[Iface] = None
    for raw in text.splitlines():
        line = raw.strip()
        m = IP_HEADER_RE.match(line)
        if m:
            flags = m.group("flags").split(",")
            current = Iface(name=m.group("name"), isup="UP" in flags, loopback="LOOPBACK" in flags)
            ifaces.append(current)
            continue
        m = IP_INET_RE.match(line)
        if m and current is not None:
            addr = _ipv4_iface(m.group("addr"), m.group("plen"))
            if addr is not None:
                current.addrs.append(addr)
    return ifaces


def _field_after(text: str, key: str) -> Optional[str]:
    for line in text.splitlines():
        fields = line.split()
        for i, f in enumerate(fields[:-1]):
            if f == key:
                return fields[i + 1]
    return None


def parse_route_dev(text: str) -> Optional[str]:
    # "192.168.1.1 via 192.168.1.1 dev eth0 src 192.168.1.100 uid 0"
    return _field_after(text, "dev")


def parse_default_route(text: str) -> tuple[Optional[str], Optional[str]]:
    for line in text.splitlines():
        if line.strip().startswith("default"):
            return _field_after(line, "dev"), _field_after(line, "src")
    return None, None


def bond_slaves(bonding_dir: str) -> Dict[str, List[str]]:
    info: Dict[str, List[str]] = {}
    try:
        names = os.listdir(bonding_dir)
    except OSError:
        return info
    for bond in names:
        path = os.path.join(bonding_dir, bond)
        if os.path.isdir(path):
            continue
        try:
            with open(path, "r") as f:
                content = f.read()
        except OSError as e:
            log.debug("cannot read %s: %s", path, e)
            continue
        slaves = [line.split(":", 1)[1].strip() for line in content.splitlines()
                  if line.strip().startswith("Slave Interface:")]
        if slaves:
            info[bond] = slaves
    return info


def _is_family_error(e: OSError) -> bool:
    msg = str(e).lower()
    return e.errno == errno.EAFNOSUPPORT or "address family not supported" in msg or "netlink" in msg


class InterfaceEnumerator:
    """Lists interfaces via psutil, then `ip -4 addr`, then a canned guess."""

    def __init__(self, source=None, runner=None, cfg: Optional[CFG] = None):
        self.source = source or PsutilInterfaces()
        self.runner = runner or SubprocessRunner()
        self.cfg = cfg or CFG()
        self.degraded = False

    def interfaces(self) -> List[Iface]:
        try:
            ifaces = self.source.interfaces()
        except OSError as e:
            if not _is_family_error(e):
                raise InterfaceEnumerationError(f"failed to get network interfaces: {e}") from e
            log.warning("netlink error detected, falling back to manual interface detection: %s", e)
            return self._from_ip_command()
        except psutil.Error as e:
            raise InterfaceEnumerationError(f"failed to get network interfaces: {e}") from e
        self.degraded = False
        return ifaces

    def _from_ip_command(self) -> List[Iface]:
        try:
            out = run_first(self.runner, self.cfg.ip_commands, ["-4", "addr", "show"])
        except CommandUnavailable as e:
            log.warning("could not run 'ip addr show' from any location: %s", e)
            return self._fallback()
        ifaces = parse_ip_addr(out)
        self.degraded = False
        log.info("manual interface detection found %d interfaces", len(ifaces))
        return ifaces

    def _fallback(self) -> List[Iface]:
        log.warning("using fallback interface detection with common defaults")
        self.degraded = True
        by_name: Dict[str, Iface] = {}
        try:
            dev, src = parse_default_route(
                run_first(self.runner, self.cfg.ip_commands, ["route", "show", "default"]))
        except CommandUnavailable:
            dev, src = None, None
        if dev:
            log.info("fallback: default route leaves via %s", dev)
            iface = by_name.setdefault(dev, Iface(name=dev))
            addr = _ipv4_iface(src) if src else None
            if addr is not None:
                iface.addrs.append(addr)
        for ip, name in self.cfg.fallback_addresses.items():
            addr = _ipv4_iface(ip)
            if addr is not None:
                by_name.setdefault(name, Iface(name=name, guessed=True)).addrs.append(addr)
        return list(by_name.values())

    def route_device(self, destination: str) -> Optional[str]:
        try:
            out = run_first(self.runner, self.cfg.ip_commands, ["route", "get", destination])
        except CommandUnavailable as e:
            log.debug("route lookup for %s unavailable: %s", destination, e)
            return None
        return parse_route_dev(out)
