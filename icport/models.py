from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

PROTOCOL_TCP = "TCP"
PROTOCOL_UDP = "UDP"


@dataclass(frozen=True)
class PortInfo:
    """One listening socket and the process that owns it."""
    port: int
    pid: int
    process_name: str
    command: str
    user: str
    protocol: str = PROTOCOL_TCP
    type: Optional[str] = None
    lifetime: Optional[int] = None


@dataclass
class PortGroup:
    id: str
    type: str
    ports: List[PortInfo] = field(default_factory=list)
    collapsed: bool = False


class FlatPort(NamedTuple):
    """A visible row: the port and the group it belongs to."""
    port: PortInfo
    group: PortGroup


class ProcessedPorts(NamedTuple):
    ports: List[PortInfo]
    groups: List[PortGroup]
    timestamp: float


@dataclass
class KillMessage:
    message: str
    emoji: Optional[str] = None
    color: Optional[str] = None

    def text(self):
        return f"{self.emoji} {self.message}" if self.emoji else self.message


@dataclass(frozen=True)
class KillerRank:
    name: str
    min_kills: int
    emoji: Optional[str] = None


@dataclass
class KillStats:
    total_kills: int = 0
    kills_by_type: Dict[str, int] = field(default_factory=dict)
    first_kill_timestamp: Optional[float] = None
    last_kill_timestamp: Optional[float] = None
    most_killed_port: Optional[int] = None
    most_killed_port_count: int = 0
    force_kills: int = 0
    kills_by_port: Dict[int, int] = field(default_factory=dict)
