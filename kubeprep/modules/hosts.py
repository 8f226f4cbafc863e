"""Host roster and per-host connection cache."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from .ssh import SSHConnection

logger = logging.getLogger("kubeprep.hosts")


class OperatingSystem(str, Enum):
    """Operating systems a host can run."""
    AMAZON = 'amzn'
    CENTOS = 'centos'
    DEBIAN = 'debian'
    FLATCAR = 'flatcar'
    RHEL = 'rhel'
    UBUNTU = 'ubuntu'
    UNKNOWN = 'unknown'

    @classmethod
    def from_os_release(cls, os_id: str) -> 'OperatingSystem':
        """Map the ID field of /etc/os-release to an OperatingSystem."""
        value = (os_id or '').strip().strip('"').lower()
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Host:
    """A machine taking part in the cluster."""
    id: int
    address: str
    ssh_username: str = 'root'
    ssh_port: int = 22
    ssh_key_path: Optional[str] = None
    os: OperatingSystem = OperatingSystem.UNKNOWN
    initialized: bool = False
    is_leader: bool = False
    hostname: Optional[str] = None

    @property
    def name(self) -> str:
        return self.hostname or self.address

    def __str__(self) -> str:
        return f"host {self.id} ({self.name})"


Connector = Callable[[Host], SSHConnection]


def ssh_connector(connect_timeout: int = 30, command_timeout: Optional[int] = None) -> Connector:
    """Build a connector opening paramiko connections with the given timeouts."""
    def connect(host: Host) -> SSHConnection:
        return SSHConnection(
            address=host.address,
            username=host.ssh_username,
            port=host.ssh_port,
            key_path=host.ssh_key_path,
            connect_timeout=connect_timeout,
            command_timeout=command_timeout,
        )
    return connect


class HostRegistry:
    """Ordered roster of hosts owning one cached connection per host.

    Connections are opened lazily. A host's slot is only touched by the
    execution path working on that host, so the lock never sees cross-host
    contention beyond the dictionary update itself.
    """

    def __init__(self, hosts: List[Host], connector: Connector):
        ids = [host.id for host in hosts]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate host ids in {ids}")
        self._hosts = list(hosts)
        self._connector = connector
        self._connections: Dict[int, SSHConnection] = {}
        self._lock = threading.RLock()

    def __iter__(self) -> Iterator[Host]:
        return iter(self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)

    @property
    def hosts(self) -> List[Host]:
        return list(self._hosts)

    def get(self, host_id: int) -> Host:
        for host in self._hosts:
            if host.id == host_id:
                return host
        raise KeyError(host_id)

    def connect(self, host: Host) -> SSHConnection:
        """Return the cached connection for host, opening a new one if needed."""
        with self._lock:
            conn = self._connections.get(host.id)
        if conn is not None and not conn.closed:
            return conn

        logger.debug(f"[{host.id}] Opening connection to {host.address}")
        conn = self._connector(host)
        with self._lock:
            self._connections[host.id] = conn
        return conn

    def is_connected(self, host: Host) -> bool:
        with self._lock:
            return host.id in self._connections

    def close(self, host: Host) -> None:
        """Close and forget the cached connection of host."""
        with self._lock:
            conn = self._connections.pop(host.id, None)
        if conn is not None:
            logger.debug(f"[{host.id}] Closing connection to {host.address}")
            conn.close()

    def close_all(self) -> None:
        for host in self._hosts:
            self.close(host)
