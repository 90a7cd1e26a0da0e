from __future__ import annotations
import dataclasses as dc
import json
import socket
import sys
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

from .constants import (
    DEFAULT_REUSE_OPTION,
    DEVICE_NAME_PREFIX,
    IFNAMSIZ,
    LOOPBACK_ADDR,
    REUSE_OPTIONS,
    SO_BINDTODEVICE,
    STATUS_ERROR,
    STATUS_FAIL,
    STATUS_PASS,
    STATUS_SKIP,
)
from .config import filter_scenarios, load_catalog, scenario_to_dict
from .devices import DeviceProvisioner
from .errors import BadReference, CatalogError, EnvironmentUnavailable, InvariantViolation, UnexpectedOutcome
from .interfaces import Tunnel, list_interface_names
from .plotting import run_plot as _run_plot
from .sockets import PortMemo, SocketTable, new_udp_socket
from .types import BindStep, ReleaseStep, Scenario, ScenarioResult, Step, StepRecord
from .utils import describe_outcome, is_root, ts_utc_compact


def _oserror_code(e: OSError) -> int:
    return e.errno if e.errno is not None else -1


def _teardown(table: SocketTable, devices: DeviceProvisioner) -> Optional[OSError]:
    """Close sockets, then the tunnels they may be bound to. Returns the first error."""
    err: Optional[OSError] = None
    for closer in (table.close, devices.close):
        try:
            closer()
        except OSError as e:
            err = err or e
    return err


class ScenarioExecutor:
    """Replays one scenario's steps against live sockets.

    Everything a run touches (device names, tunnels, sockets, the shared
    port) is created inside run() and torn down before it returns, so an
    executor can be reused for several scenarios without leaking state
    between them.
    """

    def __init__(self,
                 socket_factory: Callable[[], socket.socket] = new_udp_socket,
                 inventory: Callable[[], Set[str]] = list_interface_names,
                 tunnel_factory: Callable[[], Tunnel] = Tunnel,
                 reuse_option: int = REUSE_OPTIONS[DEFAULT_REUSE_OPTION],
                 device_prefix: str = DEVICE_NAME_PREFIX,
                 allow_tunnels: bool = True):
        self.socket_factory = socket_factory
        self.inventory = inventory
        self.tunnel_factory = tunnel_factory
        self.reuse_option = reuse_option
        self.device_prefix = device_prefix
        self.allow_tunnels = allow_tunnels

    def run(self, sc: Scenario) -> ScenarioResult:
        result = ScenarioResult(name=sc.name, status=STATUS_PASS, total_steps=len(sc.steps))
        start = time.monotonic()
        memo = PortMemo()
        devices = DeviceProvisioner(self.inventory, self.tunnel_factory,
                                    prefix=self.device_prefix, allow_tunnels=self.allow_tunnels)
        table = SocketTable(self.socket_factory)
        try:
            for i, step in enumerate(sc.steps):
                result.step_index = i
                rec = StepRecord(index=i, kind="release" if isinstance(step, ReleaseStep) else "bind")
                result.records.append(rec)
                self._run_step(sc, i, step, rec, table, devices, memo)
            result.step_index = None
        except UnexpectedOutcome as e:
            result.status = STATUS_FAIL
            result.reason = e.message
        except EnvironmentUnavailable as e:
            result.status = STATUS_SKIP
            result.reason = str(e)
        except InvariantViolation as e:
            result.status = STATUS_ERROR
            result.reason = f"engine invariant violated: {e}"
        finally:
            teardown_err = _teardown(table, devices)
            if teardown_err is not None:
                msg = f"teardown failed: {describe_outcome(_oserror_code(teardown_err))}"
                if result.status in (STATUS_PASS, STATUS_SKIP):
                    result.status = STATUS_ERROR
                    result.reason = msg
                else:
                    # Keep the first failure as the scenario's status.
                    result.reason = f"{result.reason}; {msg}"
            result.devices = dict(devices.devices)
            result.port = memo.current()
            result.duration_sec = time.monotonic() - start
        return result

    def _run_step(self, sc: Scenario, i: int, step: Step, rec: StepRecord,
                  table: SocketTable, devices: DeviceProvisioner, memo: PortMemo) -> None:
        if isinstance(step, ReleaseStep):
            rec.creation_index = step.row
            try:
                table.release(step.row)
            except BadReference as e:
                raise UnexpectedOutcome(sc.name, i, f"bad release target: {e}") from e
            except OSError as e:
                raise UnexpectedOutcome(
                    sc.name, i, f"close() of socket {step.row} failed: {describe_outcome(_oserror_code(e))}") from e
            rec.ok = True
            return
        if not isinstance(step, BindStep):
            raise TypeError(f"unsupported step type: {type(step).__name__}")
        self._bind(sc, i, step, rec, table, devices, memo)

    def _bind(self, sc: Scenario, i: int, step: BindStep, rec: StepRecord,
              table: SocketTable, devices: DeviceProvisioner, memo: PortMemo) -> None:
        rec.reuse = step.reuse
        rec.device = step.device
        rec.want = step.want

        try:
            idx, sock = table.create()
        except OSError as e:
            raise UnexpectedOutcome(sc.name, i, f"socket() failed: {describe_outcome(_oserror_code(e))}") from e
        rec.creation_index = idx

        if step.reuse:
            try:
                sock.setsockopt(socket.SOL_SOCKET, self.reuse_option, 1)
            except OSError as e:
                raise UnexpectedOutcome(
                    sc.name, i, f"setting reuse option failed: {describe_outcome(_oserror_code(e))}") from e

        if step.device != 0:
            name = devices.resolve(step.device)
            rec.device_name = name
            try:
                sock.setsockopt(socket.SOL_SOCKET, SO_BINDTODEVICE, name.encode() + b"\0")
                raw = sock.getsockopt(socket.SOL_SOCKET, SO_BINDTODEVICE, IFNAMSIZ)
            except OSError as e:
                raise UnexpectedOutcome(
                    sc.name, i, f"SO_BINDTODEVICE {name!r} failed: {describe_outcome(_oserror_code(e))}") from e
            bound = raw.split(b"\0", 1)[0].decode(errors="replace")
            if bound != name:
                raise UnexpectedOutcome(
                    sc.name, i, f"SO_BINDTODEVICE reads back {bound!r}, set {name!r}")

        need_port = not memo.is_set
        port = memo.current()
        rec.port = port
        try:
            sock.bind((LOOPBACK_ADDR, port))
            got = 0
        except OSError as e:
            got = _oserror_code(e)
        rec.got = got
        if got != step.want:
            raise UnexpectedOutcome(
                sc.name, i,
                f"bind({LOOPBACK_ADDR}:{port}) returned {describe_outcome(got)}, want {describe_outcome(step.want)}")
        rec.ok = True

        if need_port and got == 0:
            try:
                port = sock.getsockname()[1]
            except OSError as e:
                raise UnexpectedOutcome(
                    sc.name, i, f"getsockname() failed: {describe_outcome(_oserror_code(e))}") from e
            memo.record(port)
            rec.port = port


class Runner:
    def __init__(self,
                 privileged: Callable[[], bool] = is_root,
                 reuse_option: str = DEFAULT_REUSE_OPTION,
                 device_prefix: str = DEVICE_NAME_PREFIX,
                 allow_tunnels: bool = True,
                 socket_factory: Callable[[], socket.socket] = new_udp_socket,
                 inventory: Callable[[], Set[str]] = list_interface_names,
                 tunnel_factory: Callable[[], Tunnel] = Tunnel):
        if reuse_option not in REUSE_OPTIONS:
            raise ValueError(f"Unknown reuse option '{reuse_option}', expected one of {sorted(REUSE_OPTIONS)}")
        self.privileged = privileged
        self.reuse_option = reuse_option
        self.device_prefix = device_prefix
        self.allow_tunnels = allow_tunnels
        self.socket_factory = socket_factory
        self.inventory = inventory
        self.tunnel_factory = tunnel_factory

    def executor(self) -> ScenarioExecutor:
        return ScenarioExecutor(
            socket_factory=self.socket_factory,
            inventory=self.inventory,
            tunnel_factory=self.tunnel_factory,
            reuse_option=REUSE_OPTIONS[self.reuse_option],
            device_prefix=self.device_prefix,
            allow_tunnels=self.allow_tunnels,
        )

    def run_scenario(self, sc: Scenario) -> ScenarioResult:
        # Only root can use SO_BINDTODEVICE.
        if not self.privileged():
            return ScenarioResult(name=sc.name, status=STATUS_SKIP, total_steps=len(sc.steps),
                                  reason="SO_BINDTODEVICE requires root")
        return self.executor().run(sc)

    def run_all(self, scenarios: Sequence[Scenario]) -> List[ScenarioResult]:
        results: List[ScenarioResult] = []
        for sc in scenarios:
            print(f"Testing case: {sc.name}")
            res = self.run_scenario(sc)
            results.append(res)
            line = f"[{res.status.upper()}] {sc.name}"
            if res.step_index is not None and res.status in (STATUS_FAIL, STATUS_ERROR):
                line += f": step {res.step_index}"
            if res.reason:
                line += f": {res.reason}"
            print(line)
        return results


def summarize(results: Sequence[ScenarioResult]) -> Dict[str, int]:
    counts = {STATUS_PASS: 0, STATUS_FAIL: 0, STATUS_SKIP: 0, STATUS_ERROR: 0}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    counts["total"] = len(results)
    return counts


def write_results(out_root: Path, scenarios: Sequence[Scenario], results: Sequence[ScenarioResult],
                  cli_args: Optional[Dict] = None) -> Path:
    run_dir = out_root / f"run_{ts_utc_compact()}"
    run_dir.mkdir(parents=True, exist_ok=True)
    if cli_args is not None:
        (run_dir / "cli_args.json").write_text(json.dumps(cli_args, indent=2, default=str))
    by_name = {s.name: s for s in scenarios}
    for i, r in enumerate(results):
        d = dc.asdict(r)
        sc = by_name.get(r.name)
        if sc is not None:
            d["scenario"] = scenario_to_dict(sc)
        # Position prefix keeps names that sanitise alike ("a b", "a_b") apart.
        (run_dir / f"{i:02d}_{_safe_filename(r.name)}.json").write_text(json.dumps(d, indent=2))
    summary = {
        "counts": summarize(results),
        "order": [r.name for r in results],
        "status": {r.name: r.status for r in results},
    }
    (run_dir / "summary.json").write_text(json.dumps(summary, indent=2))
    return run_dir


def _safe_filename(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)


def run_from_args(args, scenarios: List[Scenario]) -> int:
    scs = list(scenarios)
    if getattr(args, 'catalog', None):
        try:
            scs = load_catalog(args.catalog)
        except (OSError, CatalogError) as e:
            print(f"Cannot load catalog {args.catalog}: {e}", file=sys.stderr)
            return 2
    if getattr(args, 'scenario', None):
        unknown = [n for n in args.scenario if n not in {s.name for s in scs}]
        for n in unknown:
            print(f"Unknown scenario: {n}", file=sys.stderr)
        scs = filter_scenarios(scs, args.scenario)

    if getattr(args, 'dry_run', False):
        print("Planned runs:")
        print(json.dumps([scenario_to_dict(s) for s in scs], indent=2))
        print("Runner:", json.dumps({
            "reuse_option": args.reuse_option,
            "device_prefix": args.device_prefix,
            "allow_tunnels": not args.no_tunnels,
            "privilege_check": not args.skip_privilege_check,
        }, indent=2))
        return 0

    runner = Runner(
        privileged=(lambda: True) if args.skip_privilege_check else is_root,
        reuse_option=args.reuse_option,
        device_prefix=args.device_prefix,
        allow_tunnels=not args.no_tunnels,
    )
    results = runner.run_all(scs)

    args.out.mkdir(parents=True, exist_ok=True)
    run_dir = write_results(args.out, scs, results, cli_args=vars(args))
    counts = summarize(results)
    print(f"{counts['total']} scenarios: {counts[STATUS_PASS]} passed, {counts[STATUS_FAIL]} failed, "
          f"{counts[STATUS_SKIP]} skipped, {counts[STATUS_ERROR]} errors")
    print(f"Results: {run_dir}")

    if getattr(args, 'auto_plot', False):
        rc = _run_plot(args.out, run_dir=run_dir, fmt=args.plot_format)
        if rc != 0:
            print(f"Plotting exited with {rc}", file=sys.stderr)

    return 1 if counts[STATUS_FAIL] or counts[STATUS_ERROR] else 0
