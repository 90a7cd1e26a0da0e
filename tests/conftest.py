"""Fakes for exercising the scenario engine without root or real interfaces."""
import errno
import os

import pytest

from bindconf.runner.constants import REUSE_OPTIONS, SO_BINDTODEVICE
from bindconf.runner.exec import ScenarioExecutor


class FakeSocket:
    def __init__(self, net):
        self.net = net
        self.reuse = False
        self.device = ""
        self.addr = None
        self.closed = False
        self.opts = {}

    def _check_open(self):
        if self.closed:
            raise OSError(errno.EBADF, os.strerror(errno.EBADF))

    def setsockopt(self, level, opt, value):
        self._check_open()
        if opt == SO_BINDTODEVICE:
            self.device = bytes(value).split(b"\0", 1)[0].decode()
            return
        self.opts[opt] = value
        if opt == self.net.reuse_option:
            self.reuse = bool(value)

    def getsockopt(self, level, opt, buflen=None):
        self._check_open()
        if opt == SO_BINDTODEVICE:
            name = self.net.readback_override if self.net.readback_override is not None else self.device
            return (name.encode() + b"\0")[:buflen]
        return self.opts.get(opt, 0)

    def bind(self, addr):
        self._check_open()
        if self.addr is not None:
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
        host, port = addr
        if port == 0:
            port = self.net.next_port
            self.net.next_port += 1
        else:
            for other in self.net.bound:
                if other.addr[1] != port:
                    continue
                # Sockets scoped to different devices never overlap.
                if self.device and other.device and self.device != other.device:
                    continue
                if self.reuse and other.reuse:
                    continue
                raise OSError(errno.EADDRINUSE, os.strerror(errno.EADDRINUSE))
        self.addr = (host, port)
        self.net.bound.append(self)
        self.net.binds.append((self.device, port))

    def getsockname(self):
        return self.addr or ("0.0.0.0", 0)

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self in self.net.bound:
            self.net.bound.remove(self)


class FakeNet:
    """In-memory model of Linux UDP bind conflicts with SO_REUSEPORT and SO_BINDTODEVICE."""

    def __init__(self, first_port=40000, reuse_option=REUSE_OPTIONS["reuseport"]):
        self.next_port = first_port
        self.reuse_option = reuse_option
        self.readback_override = None
        self.sockets = []
        self.bound = []
        self.binds = []

    def socket(self):
        s = FakeSocket(self)
        self.sockets.append(s)
        return s

    def open_sockets(self):
        return [s for s in self.sockets if not s.closed]


class FakeTunnel:
    def __init__(self, name):
        self.name = name
        self.closed = False

    def close(self):
        self.closed = True


class TunnelFactory:
    def __init__(self):
        self.made = []

    def __call__(self):
        t = FakeTunnel(f"tun{len(self.made)}")
        self.made.append(t)
        return t


@pytest.fixture
def fake_net():
    return FakeNet()


@pytest.fixture
def tunnels():
    return TunnelFactory()


@pytest.fixture
def host_interfaces():
    return {"lo", "eth0"}


@pytest.fixture
def executor(fake_net, tunnels, host_interfaces):
    return ScenarioExecutor(
        socket_factory=fake_net.socket,
        inventory=lambda: set(host_interfaces),
        tunnel_factory=tunnels,
        reuse_option=fake_net.reuse_option,
    )

