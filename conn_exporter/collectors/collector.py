from __future__ import annotations
import logging, threading
from typing import Dict, Iterator, List, Optional

from prometheus_client.core import GaugeMetricFamily

from ..config import CFG, METRIC_HELP, METRIC_LABELS, METRIC_NAME
from ..errors import SourceUnavailable
from ..interfaces import InterfaceEnumerator, InterfaceResolver
from ..models import ConnectionRecord
from ..utils.cmd import SubprocessRunner
from .linux import listening_processes
from .procnet import listening_port_set, read_tcp, read_udp

log = logging.getLogger(__name__)


class ConnectionCollector:
    """One scrape = one pass over /proc/net/tcp and /proc/net/udp.

    Also a prometheus_client custom collector: register it on a registry
    and every ``collect()`` emits the current connection set.
    """

    def __init__(self, cfg: CFG, resolver: Optional[InterfaceResolver] = None, runner=None):
        self.cfg = cfg
        self.runner = runner or SubprocessRunner()
        self.resolver = resolver or InterfaceResolver(
            InterfaceEnumerator(runner=self.runner, cfg=cfg), bonding_dir=cfg.bonding_dir)
        self._lock = threading.Lock()

    def _listen_ports(self) -> set[str]:
        # direction needs the complete LISTEN set before any row is labeled
        try:
            return listening_port_set(read_tcp(self.cfg.tcp_table))
        except SourceUnavailable as e:
            log.warning("cannot harvest listening ports: %s", e)
            return set()

    def _processes(self) -> Dict[str, str]:
        if not self.cfg.process_names:
            return {}
        return listening_processes(self.runner, self.cfg.ss_commands)

    def records(self) -> List[ConnectionRecord]:
        with self._lock:
            ports = self._listen_ports()
            procs = self._processes()
            records: List[ConnectionRecord] = []
            try:
                records.extend(read_tcp(self.cfg.tcp_table, self.resolver, ports, procs))
            except SourceUnavailable as e:
                log.error("error getting TCP connections: %s", e)
            try:
                records.extend(read_udp(self.cfg.udp_table, self.resolver))
            except SourceUnavailable as e:
                log.error("error getting UDP connections: %s", e)
            log.debug("collected %d connection records", len(records))
            return records

    def describe(self) -> Iterator[GaugeMetricFamily]:
        yield GaugeMetricFamily(METRIC_NAME, METRIC_HELP, labels=METRIC_LABELS)

    def collect(self) -> Iterator[GaugeMetricFamily]:
        g = GaugeMetricFamily(METRIC_NAME, METRIC_HELP, labels=METRIC_LABELS)
        seen = set()
        for rec in self.records():
            labels = rec.labels()
            # identical label sets would be rejected as duplicate samples
            if labels in seen:
                continue
            seen.add(labels)
            g.add_metric(list(labels), 1)
        yield g
