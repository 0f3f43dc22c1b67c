from __future__ import annotations
import ipaddress, logging, threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import ResolutionDegraded
from ..models import UNKNOWN
from ..utils.net import is_local_ip, is_loopback
from .sources import Iface, InterfaceEnumerator, bond_slaves, is_noisy_virtual

log = logging.getLogger(__name__)

WILDCARD = "0.0.0.0"
LOOPBACK_IFACE = "lo"


def _has_ipv4(iface: Iface) -> bool:
    return bool(iface.addrs)


def choose_primary(ifaces: List[Iface]) -> str:
    """bond* first, then eth*/en*, then anything up; all must carry IPv4.

    Canned fallback entries never qualify.
    """
    usable = [i for i in ifaces if i.isup and not i.loopback and not i.guessed and _has_ipv4(i)]
    for pred in (lambda n: n.startswith("bond"),
                 lambda n: n.startswith("eth") or n.startswith("en"),
                 lambda n: True):
        for iface in usable:
            if pred(iface.name):
                return iface.name
    return UNKNOWN


def map_addresses(ifaces: List[Iface]) -> Dict[str, str]:
    ip_to_iface: Dict[str, str] = {}
    for iface in ifaces:
        if not iface.isup or iface.loopback or is_noisy_virtual(iface.name):
            continue
        for addr in iface.addrs:
            ip = addr.ip
            if ip.is_loopback or ip.is_unspecified:
                continue
            key = str(ip)
            owner = ip_to_iface.setdefault(key, iface.name)
            if owner != iface.name:
                log.debug("%s already mapped to %s, ignoring duplicate on %s", key, owner, iface.name)
    return ip_to_iface


class InterfaceResolver:
    """Answers "which interface owns this address" for connection records.

    The IP->name cache is built lazily and rebuilt whenever a lookup misses,
    so interfaces that come and go at runtime (containers, VPNs) are picked
    up without a restart. ``resolve`` walks ``STRATEGIES`` in order; each
    step either names an interface or returns None to pass to the next one.
    """

    STRATEGIES: Tuple[str, ...] = ("loopback", "wildcard", "cache", "rebuild", "subnet", "route", "primary")

    def __init__(self, enumerator: Optional[InterfaceEnumerator] = None, bonding_dir: Optional[str] = None):
        self.enumerator = enumerator or InterfaceEnumerator()
        self.bonding_dir = bonding_dir if bonding_dir is not None else self.enumerator.cfg.bonding_dir
        self._cache: Optional[Dict[str, str]] = None
        self._lock = threading.RLock()

    # --- enumeration -------------------------------------------------------

    def _interfaces(self) -> Optional[List[Iface]]:
        try:
            return self.enumerator.interfaces()
        except ResolutionDegraded as e:
            log.warning("%s", e)
            return None

    def rebuild(self) -> Dict[str, str]:
        with self._lock:
            ifaces = self._interfaces()
            if ifaces is None:
                # keep what we had; a failed refresh must not wipe a good map
                return dict(self._cache or {})
            if any(i.name.startswith("bond") for i in ifaces):
                for bond, slaves in bond_slaves(self.bonding_dir).items():
                    log.debug("bonding interface %s is active with slaves: %s", bond, slaves)
            cache = map_addresses(ifaces)
            self._cache = cache
            self._log_statistics(cache)
            return dict(cache)

    @staticmethod
    def _log_statistics(cache: Dict[str, str]) -> None:
        if not cache:
            log.warning("no usable network interfaces found, interface labels may be limited")
            return
        log.info("mapped %d IP addresses to network interfaces", len(cache))
        for iface, ips in _group_by_interface(cache).items():
            if len(ips) > 1:
                log.debug("  %s: %d IPs %s - multiple IP configuration detected", iface, len(ips), ips)
            else:
                log.debug("  %s: 1 IP %s", iface, ips)

    def lookup(self, ip: str) -> Optional[str]:
        with self._lock:
            if self._cache is None:
                self.rebuild()
            return (self._cache or {}).get(ip)

    def describe(self, ip: str) -> Tuple[str, bool]:
        """Interface for ``ip`` and whether that interface carries other IPs too."""
        name = self.lookup(ip)
        if name is None:
            return UNKNOWN, False
        with self._lock:
            count = sum(1 for v in (self._cache or {}).values() if v == name)
        return name, count > 1

    def primary_interface(self) -> str:
        ifaces = self._interfaces()
        if ifaces is None:
            return UNKNOWN
        return choose_primary(ifaces)

    def interface_by_subnet(self, ip: str) -> Optional[str]:
        try:
            target = ipaddress.IPv4Address(ip)
        except ValueError:
            return None
        for iface in self._interfaces() or []:
            if not iface.isup or iface.loopback or iface.guessed:
                continue
            if any(target in addr.network for addr in iface.addrs):
                return iface.name
        return None

    # --- strategies --------------------------------------------------------

    def _by_loopback(self, src: str, dst: str) -> Optional[str]:
        if is_loopback(src) or is_loopback(dst):
            return LOOPBACK_IFACE
        return None

    def _by_wildcard(self, src: str, dst: str) -> Optional[str]:
        if src == WILDCARD:
            return self.primary_interface()
        return None

    def _by_cache(self, src: str, dst: str) -> Optional[str]:
        return self.lookup(src)

    def _by_rebuild(self, src: str, dst: str) -> Optional[str]:
        log.debug("IP %s not found in interface cache, refreshing", src)
        return self.rebuild().get(src)

    def _by_subnet(self, src: str, dst: str) -> Optional[str]:
        return self.interface_by_subnet(src)

    def _by_route(self, src: str, dst: str) -> Optional[str]:
        if is_local_ip(dst):
            return None
        return self.enumerator.route_device(dst)

    def _by_primary(self, src: str, dst: str) -> Optional[str]:
        return self.primary_interface()

    def strategies(self) -> List[Tuple[str, Callable[[str, str], Optional[str]]]]:
        return [(name, getattr(self, f"_by_{name}")) for name in self.STRATEGIES]

    def resolve(self, src: str, dst: str) -> str:
        for name, strategy in self.strategies():
            iface = strategy(src, dst)
            if iface:
                log.debug("%s -> %s resolved to %s by %s", src, dst, iface, name)
                return iface
        return UNKNOWN

    def snapshot(self) -> dict:
        with self._lock:
            if self._cache is None:
                self.rebuild()
            cache = dict(self._cache or {})
        return {
            "addresses": cache,
            "primary": self.primary_interface(),
            "multi_ip": {k: v for k, v in _group_by_interface(cache).items() if len(v) > 1},
            "degraded": self.enumerator.degraded,
        }


def _group_by_interface(cache: Dict[str, str]) -> Dict[str, List[str]]:
    by_iface: Dict[str, List[str]] = defaultdict(list)
    for ip, iface in cache.items():
        by_iface[iface].append(ip)
    return {k: sorted(v) for k, v in by_iface.items()}
