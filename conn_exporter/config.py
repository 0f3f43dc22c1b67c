from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

DEFAULT_PORT = 9100
DEFAULT_TCP_TABLE = "/proc/net/tcp"
DEFAULT_UDP_TABLE = "/proc/net/udp"
BONDING_DIR = "/proc/net/bonding"

# systemd units frequently run with a trimmed PATH
IP_COMMANDS = ("ip", "/usr/bin/ip", "/bin/ip", "/sbin/ip", "/usr/sbin/ip")
SS_COMMANDS = ("ss", "/usr/bin/ss", "/bin/ss", "/sbin/ss", "/usr/sbin/ss")

# last-resort mapping when neither psutil nor `ip` can enumerate interfaces
FALLBACK_ADDRESSES = {
    "172.16.10.1": "virbr2",
    "192.168.100.1": "virbr1",
}

METRIC_NAME = "network_connections_info"
METRIC_HELP = "Information about network connections"
METRIC_LABELS = (
    "source_address", "source_port", "destination_address", "destination_port",
    "state", "interface", "protocol", "direction", "process_name",
)


@dataclass
class CFG:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    tcp_table: str = DEFAULT_TCP_TABLE
    udp_table: str = DEFAULT_UDP_TABLE
    process_names: bool = True
    scrape_timeout: float = 10.0
    bonding_dir: str = BONDING_DIR
    ip_commands: Tuple[str, ...] = IP_COMMANDS
    ss_commands: Tuple[str, ...] = SS_COMMANDS
    fallback_addresses: Dict[str, str] = field(default_factory=lambda: dict(FALLBACK_ADDRESSES))


def default_port() -> int:
    raw = os.environ.get("PORT", "")
    try:
        return int(raw) if raw else DEFAULT_PORT
    except ValueError:
        print(f"[warn] ignoring invalid PORT={raw!r}, using {DEFAULT_PORT}")
        return DEFAULT_PORT


def init_cfg_from_args(args) -> CFG:
    cfg = CFG()
    cfg.host = args.host
    cfg.port = int(args.port) if args.port is not None else default_port()
    cfg.tcp_table = args.tcp_table
    cfg.udp_table = args.udp_table
    cfg.process_names = not bool(args.no_process_names)
    if args.scrape_timeout and args.scrape_timeout > 0:
        cfg.scrape_timeout = float(args.scrape_timeout)
    else:
        print(f"[warn] --scrape-timeout must be positive, keeping {cfg.scrape_timeout}s")
    return cfg
