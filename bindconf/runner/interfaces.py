from __future__ import annotations
import fcntl
import os
import socket
import struct
from typing import Optional, Set

from .constants import IFF_TUN, IFREQ_FORMAT, TUN_DEVICE_PATH, TUNSETIFF
from .errors import EnvironmentUnavailable


def list_interface_names() -> Set[str]:
    """Return the names of the interfaces currently present on the host."""
    try:
        return {name for _, name in socket.if_nameindex()}
    except OSError:
        return set()


class Tunnel:
    """A TUN interface that lives as long as its file descriptor.

    The kernel picks the name (tun0, tun1, ...) and tears the interface down
    when the descriptor is closed, so close() is all the cleanup there is.
    """

    def __init__(self, path: str = TUN_DEVICE_PATH):
        self.fd: Optional[int] = None
        self.name = ""
        try:
            fd = os.open(path, os.O_RDWR)
        except OSError as e:
            raise EnvironmentUnavailable(f"cannot open {path}: {e.strerror or e}") from e
        try:
            ifr = struct.pack(IFREQ_FORMAT, b"", IFF_TUN)
            out = fcntl.ioctl(fd, TUNSETIFF, ifr)
        except OSError as e:
            os.close(fd)
            raise EnvironmentUnavailable(f"TUNSETIFF failed: {e.strerror or e}") from e
        self.fd = fd
        self.name = out[:16].split(b"\0", 1)[0].decode()
        if not self.name:
            self.close()
            raise EnvironmentUnavailable("TUNSETIFF returned an empty interface name")

    def close(self) -> None:
        if self.fd is not None:
            os.close(self.fd)
            self.fd = None

    def __enter__(self) -> "Tunnel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Tunnel(name={self.name!r}, fd={self.fd})"
