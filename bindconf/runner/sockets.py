from __future__ import annotations
import socket
from typing import Callable, Dict, Iterator, Optional, Tuple

from .errors import BadReference, InvariantViolation


def new_udp_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)


class SocketTable:
    """Live sockets of one scenario run, keyed by creation index.

    Indices are handed out in creation order and never reused, so a released
    index leaves a hole rather than shifting later sockets.
    """

    def __init__(self, socket_factory: Callable[[], socket.socket] = new_udp_socket):
        self.socket_factory = socket_factory
        self.next_index = 0
        self._socks: Dict[int, socket.socket] = {}

    def create(self) -> Tuple[int, socket.socket]:
        sock = self.socket_factory()
        index = self.next_index
        self.next_index += 1
        self._socks[index] = sock
        return index, sock

    def get(self, index: int) -> socket.socket:
        try:
            return self._socks[index]
        except KeyError:
            raise BadReference(index) from None

    def release(self, index: int) -> None:
        sock = self._socks.pop(index, None)
        if sock is None:
            raise BadReference(index)
        sock.close()

    def close(self) -> None:
        # Close everything; report the first failure afterwards.
        err: Optional[OSError] = None
        for index in sorted(self._socks):
            try:
                self._socks[index].close()
            except OSError as e:
                err = err or e
        self._socks.clear()
        if err is not None:
            raise err

    def __len__(self) -> int:
        return len(self._socks)

    def __contains__(self, index: object) -> bool:
        return index in self._socks

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._socks))

    def __enter__(self) -> "SocketTable":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class PortMemo:
    """The port every bind in a scenario run uses.

    Starts out unset, which binds to port 0 and lets the kernel choose. The
    first successful bind records the chosen port; after that it never changes.
    """

    UNSPECIFIED = 0

    def __init__(self):
        self._port = self.UNSPECIFIED

    @property
    def is_set(self) -> bool:
        return self._port != self.UNSPECIFIED

    def current(self) -> int:
        return self._port

    def record(self, port: int) -> None:
        if self._port != self.UNSPECIFIED:
            raise InvariantViolation(f"port already recorded as {self._port}, refusing {port}")
        if port == self.UNSPECIFIED:
            raise InvariantViolation("cannot record the unspecified port 0")
        self._port = port
