"""Scenarios replayed against the host's real socket stack."""
import errno
import sys

import pytest

from bindconf.run_scenarios import bind, default_scenarios, release
from bindconf.runner.exec import Runner, ScenarioExecutor
from bindconf.runner.interfaces import list_interface_names
from bindconf.runner.types import Scenario
from bindconf.runner.utils import is_root

linux_only = pytest.mark.skipif(not sys.platform.startswith("linux"), reason="SO_REUSEPORT/SO_BINDTODEVICE semantics are Linux's")


def _no_tunnels():
    pytest.fail("device-free scenarios must not create tunnels")


@pytest.fixture
def live_executor():
    return ScenarioExecutor(inventory=list_interface_names, tunnel_factory=_no_tunnels)


@linux_only
def test_loopback_is_listed():
    assert "lo" in list_interface_names()


@linux_only
@pytest.mark.parametrize("sc", [
    Scenario("bind twice without device fails", [bind(), bind(want=errno.EADDRINUSE)]),
    Scenario("bind twice with reuse", [bind(reuse=True), bind(reuse=True)]),
    Scenario("reuse needs both sides", [bind(reuse=True), bind(want=errno.EADDRINUSE)]),
    Scenario("release then rebind", [bind(), release(0), bind()]),
], ids=lambda s: s.name)
def test_device_free_scenarios(sc, live_executor):
    res = live_executor.run(sc)
    assert res.status == "pass", res.reason
    assert res.port != 0
    assert {r.port for r in res.records if r.kind == "bind"} == {res.port}


@linux_only
@pytest.mark.skipif(not is_root(), reason="SO_BINDTODEVICE requires root")
@pytest.mark.parametrize("sc", default_scenarios(), ids=lambda s: s.name)
def test_bind_to_device(sc):
    res = Runner().run_scenario(sc)
    if res.status == "skip":
        pytest.skip(res.reason)
    assert res.status == "pass", f"step {res.step_index}: {res.reason}"
