import errno
import os
import struct

import pytest

import bindconf.runner.interfaces as ifaces
from bindconf.runner.constants import IFF_TUN, IFREQ_FORMAT, TUNSETIFF
from bindconf.runner.errors import EnvironmentUnavailable
from bindconf.runner.interfaces import Tunnel


@pytest.fixture
def tun_path(tmp_path):
    path = tmp_path / "tun"
    path.write_bytes(b"")
    return str(path)


def test_missing_tun_device_is_environment_unavailable(tmp_path):
    with pytest.raises(EnvironmentUnavailable, match="cannot open"):
        Tunnel(str(tmp_path / "no-such-tun"))


def test_tunsetiff_name_is_read_back(tun_path, monkeypatch):
    calls = []

    def fake_ioctl(fd, request, arg):
        calls.append((request, struct.unpack(IFREQ_FORMAT, arg)))
        return struct.pack(IFREQ_FORMAT, b"tun7", IFF_TUN)

    monkeypatch.setattr(ifaces.fcntl, "ioctl", fake_ioctl)
    with Tunnel(tun_path) as t:
        assert t.name == "tun7"
        fd = t.fd
        assert fd is not None
    assert t.fd is None
    with pytest.raises(OSError):
        os.fstat(fd)
    assert calls == [(TUNSETIFF, (b"\0" * 16, IFF_TUN))]
    t.close()


def test_tunsetiff_failure_closes_fd(tun_path, monkeypatch):
    opened = []
    real_open = os.open

    def tracking_open(path, flags):
        fd = real_open(path, flags)
        opened.append(fd)
        return fd

    def refuse(fd, request, arg):
        raise OSError(errno.EPERM, "Operation not permitted")

    monkeypatch.setattr(ifaces.os, "open", tracking_open)
    monkeypatch.setattr(ifaces.fcntl, "ioctl", refuse)
    with pytest.raises(EnvironmentUnavailable, match="TUNSETIFF"):
        Tunnel(tun_path)
    with pytest.raises(OSError):
        os.fstat(opened[0])


def test_list_interface_names_handles_oserror(monkeypatch):
    def boom():
        raise OSError(errno.ENOSYS, "no")

    monkeypatch.setattr(ifaces.socket, "if_nameindex", boom)
    assert ifaces.list_interface_names() == set()
