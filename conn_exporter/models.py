from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Tuple

UNKNOWN = "unknown"


@dataclass(frozen=True)
class ConnectionRecord:
    source_address: str
    source_port: str
    destination_address: str
    destination_port: str
    state: str  # 'ESTABLISHED', 'LISTEN', 'UNCONN', ...
    protocol: str  # 'tcp' | 'udp'
    interface: str = UNKNOWN
    direction: str = UNKNOWN  # 'incoming' | 'outgoing' | 'unknown'
    process_name: str = ""

    def labels(self) -> Tuple[str, ...]:
        return (self.source_address, self.source_port, self.destination_address,
                self.destination_port, self.state, self.interface, self.protocol,
                self.direction, self.process_name)

    def as_dict(self) -> dict:
        return asdict(self)
