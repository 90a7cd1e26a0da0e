import pytest

from bindconf.runner.devices import DeviceProvisioner
from bindconf.runner.errors import EnvironmentUnavailable


def test_resolve_is_idempotent(tunnels):
    dp = DeviceProvisioner(inventory=lambda: {"lo"}, tunnel_factory=tunnels)
    first = dp.resolve(123)
    assert dp.resolve(123) == first
    assert len(tunnels.made) == 1


def test_existing_interface_is_used_without_a_tunnel(tunnels):
    dp = DeviceProvisioner(inventory=lambda: {"lo", "eth1", "eth2"}, tunnel_factory=tunnels)
    assert dp.resolve(7) == "eth1"
    assert dp.resolve(9) == "eth2"
    assert tunnels.made == []


def test_missing_interface_gets_kernel_assigned_tunnel_name(tunnels):
    dp = DeviceProvisioner(inventory=lambda: {"lo", "eth1"}, tunnel_factory=tunnels)
    assert dp.resolve(1) == "eth1"
    # eth2 does not exist, so the tunnel's own name wins over the candidate.
    assert dp.resolve(2) == "tun0"
    assert dp.devices == {1: "eth1", 2: "tun0"}


def test_counter_only_advances_for_new_ids(tunnels):
    dp = DeviceProvisioner(inventory=lambda: {"eth1", "eth2", "eth3"}, tunnel_factory=tunnels)
    dp.resolve(5)
    dp.resolve(5)
    dp.resolve(5)
    assert dp.resolve(6) == "eth2"
    assert dp.next_unused == 3


def test_each_provisioner_starts_fresh(tunnels):
    a = DeviceProvisioner(inventory=lambda: {"eth1"}, tunnel_factory=tunnels)
    b = DeviceProvisioner(inventory=lambda: {"eth1"}, tunnel_factory=tunnels)
    assert a.resolve(42) == "eth1"
    assert b.resolve(99) == "eth1"


def test_device_zero_is_not_resolvable(tunnels):
    dp = DeviceProvisioner(inventory=set, tunnel_factory=tunnels)
    with pytest.raises(ValueError):
        dp.resolve(0)


def test_close_closes_every_tunnel(tunnels):
    with DeviceProvisioner(inventory=set, tunnel_factory=tunnels) as dp:
        dp.resolve(1)
        dp.resolve(2)
        assert dp.tunnels == 2
    assert [t.closed for t in tunnels.made] == [True, True]
    assert dp.tunnels == 0


def test_tunnel_failure_is_environment_unavailable():
    def no_tun():
        raise EnvironmentUnavailable("cannot open /dev/net/tun: Permission denied")

    dp = DeviceProvisioner(inventory=set, tunnel_factory=no_tun)
    with pytest.raises(EnvironmentUnavailable):
        dp.resolve(3)
    assert dp.devices == {}


def test_tunnels_disabled(tunnels):
    dp = DeviceProvisioner(inventory=lambda: {"eth1"}, tunnel_factory=tunnels, allow_tunnels=False)
    assert dp.resolve(1) == "eth1"
    with pytest.raises(EnvironmentUnavailable, match="eth2"):
        dp.resolve(2)
    assert tunnels.made == []
