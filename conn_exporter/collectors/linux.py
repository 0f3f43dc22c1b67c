import logging
import re
from typing import Dict, Sequence, Tuple

from ..errors import AttributionUnavailable, CommandUnavailable
from ..utils.cmd import run_first

log = logging.getLogger(__name__)

SS_RE = re.compile(
    r"^(?P<state>\S+)\s+\S+\s+\S+\s+(?P<laddr>\S+)\s+(?P<raddr>\S+)\s+.*users:\(\((?P<users>.*)$")
NAME_RE = re.compile(r"\"(?P<name>[^\"]+)\"")

def _safe_int(s: str, default: int = 0) -> int:
    try:
        return int(s)
    except ValueError:
        return default

def parse_addr(addr: str) -> Tuple[str, int]:
    """
    Accepts:
      - '1.2.3.4:5678'
      - '127.0.0.53%lo:53'
      - '[::1]:443'
      - '0.0.0.0:*', '*:443', '*:*', '*'
    """
    if not addr or addr == '*':
        return ('*', 0)

    if addr.startswith('['):
        host, _, port = addr.rpartition(':')
        host = host.strip('[]') or '::'
        return (host, 0 if port in ('*', '') else _safe_int(port, 0))

    if ':' in addr:
        host, port = addr.rsplit(':', 1)
        host = host.split('%', 1)[0]
        if port == '*' or port == '':
            return (host or '0.0.0.0', 0)
        return (host or '0.0.0.0', _safe_int(port, 0))

    return (addr, 0)

def process_name(users: str) -> str:
    # users:(("sshd",pid=812,fd=3),("sshd",pid=900,fd=3)) -> sshd
    m = NAME_RE.search(users)
    if m:
        name = m.group("name")
    else:
        name = users.split(",", 1)[0]
    return name.strip("()[]{} ").replace('"', "")

def parse_listeners(out: str) -> Dict[str, str]:
    procs: Dict[str, str] = {}
    for line in out.splitlines():
        m = SS_RE.match(line)
        if not m or m.group("state").upper() != "LISTEN":
            continue
        _, port = parse_addr(m.group("laddr"))
        name = process_name(m.group("users"))
        if port and name:
            procs.setdefault(str(port), name)
    return procs

def _listeners(runner, candidates: Sequence[str]) -> Dict[str, str]:
    try:
        out = run_first(runner, candidates, ["-tlnp"])
    except CommandUnavailable as e:
        raise AttributionUnavailable(str(e)) from e
    try:
        return parse_listeners(out)
    except (ValueError, IndexError) as e:
        raise AttributionUnavailable(f"cannot parse ss output: {e}") from e

def listening_processes(runner, candidates: Sequence[str]) -> Dict[str, str]:
    """Map listening TCP port -> owning process name, or {} when unknown."""
    try:
        return _listeners(runner, candidates)
    except AttributionUnavailable as e:
        log.debug("process attribution unavailable: %s", e)
        return {}
