from __future__ import annotations
from typing import Callable, Dict, List, Mapping, Optional, Set

from .constants import DEVICE_NAME_PREFIX, FIRST_DEVICE_NUMBER
from .errors import EnvironmentUnavailable
from .interfaces import Tunnel, list_interface_names


class DeviceProvisioner:
    """Map a scenario's logical device ids to real interface names.

    One provisioner belongs to one scenario run. The first time an id is seen it
    gets the next candidate name (eth1, eth2, ...). If the host has an interface
    with that name it is used as is; otherwise a TUN interface is created and
    the kernel-assigned name is used instead. Later lookups of the same id
    return the same name.
    """

    def __init__(self,
                 inventory: Callable[[], Set[str]] = list_interface_names,
                 tunnel_factory: Callable[[], Tunnel] = Tunnel,
                 prefix: str = DEVICE_NAME_PREFIX,
                 allow_tunnels: bool = True):
        self.inventory = inventory
        self.tunnel_factory = tunnel_factory
        self.prefix = prefix
        self.allow_tunnels = allow_tunnels
        self.next_unused = FIRST_DEVICE_NUMBER
        self._devices: Dict[int, str] = {}
        self._tunnels: List[Tunnel] = []

    @property
    def devices(self) -> Mapping[int, str]:
        return dict(self._devices)

    @property
    def tunnels(self) -> int:
        return len(self._tunnels)

    def resolve(self, logical_id: int) -> str:
        if logical_id == 0:
            raise ValueError("device 0 means no device and cannot be resolved")
        name = self._devices.get(logical_id)
        if name is not None:
            return name

        candidate = f"{self.prefix}{self.next_unused}"
        self.next_unused += 1
        if candidate in self.inventory():
            self._devices[logical_id] = candidate
            return candidate

        if not self.allow_tunnels:
            raise EnvironmentUnavailable(
                f"no interface named {candidate} for device {logical_id} and tunnel creation is disabled")
        tunnel = self.tunnel_factory()
        self._tunnels.append(tunnel)
        self._devices[logical_id] = tunnel.name
        return tunnel.name

    def close(self) -> None:
        # Close in reverse creation order; keep going if one fails.
        err: Optional[OSError] = None
        while self._tunnels:
            tunnel = self._tunnels.pop()
            try:
                tunnel.close()
            except OSError as e:
                err = err or e
        if err is not None:
            raise err

    def __enter__(self) -> "DeviceProvisioner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
