#!/usr/bin/env python3
"""
Scenario runner entrypoint for bindconf.

This file only defines CLI arguments and the default scenarios; the
implementation details live under bindconf/runner/.
"""
from __future__ import annotations
import argparse
from errno import EADDRINUSE
from pathlib import Path
from typing import List, Optional, Sequence
import sys

# Support running both as a module (`python -m bindconf.run_scenarios`) and as a script
if __package__ is None or __package__ == "":
    # Add repo root to sys.path so absolute package imports work
    _REPO_ROOT = Path(__file__).resolve().parents[1]
    if str(_REPO_ROOT) not in sys.path:
        sys.path.insert(0, str(_REPO_ROOT))
    from bindconf.runner.constants import DEFAULT_REUSE_OPTION, DEVICE_NAME_PREFIX, REUSE_OPTIONS
    from bindconf.runner.types import BindStep, ReleaseStep, Scenario
    from bindconf.runner.exec import run_from_args

    REPO_ROOT = _REPO_ROOT
else:
    from .runner.constants import DEFAULT_REUSE_OPTION, DEVICE_NAME_PREFIX, REUSE_OPTIONS
    from .runner.types import BindStep, ReleaseStep, Scenario
    from .runner.exec import run_from_args

    REPO_ROOT = Path(__file__).resolve().parents[1]


def bind(device: int = 0, reuse: bool = False, want: int = 0) -> BindStep:
    return BindStep(reuse=reuse, device=device, want=want)


def release(row: int) -> ReleaseStep:
    return ReleaseStep(row=row)


def default_scenarios() -> List[Scenario]:
    return [
        Scenario(
            name="bind twice with device fails",
            steps=[
                bind(device=3, reuse=False),
                bind(device=3, reuse=False, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="bind to device",
            steps=[
                bind(device=1),
                bind(device=2),
            ],
        ),
        Scenario(
            name="bind to device and then without device",
            steps=[
                bind(device=123),
                bind(device=0, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="bind without device",
            steps=[
                bind(),
                bind(device=123, want=EADDRINUSE),
                bind(device=123, reuse=True, want=EADDRINUSE),
                bind(want=EADDRINUSE),
                bind(reuse=True, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="bind with device",
            steps=[
                bind(device=123),
                bind(device=123, want=EADDRINUSE),
                bind(device=123, reuse=True, want=EADDRINUSE),
                bind(device=0, want=EADDRINUSE),
                bind(device=0, reuse=True, want=EADDRINUSE),
                bind(device=456, reuse=True),
                bind(device=789),
                bind(want=EADDRINUSE),
                bind(reuse=True, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="bind with reuse",
            steps=[
                bind(reuse=True),
                bind(device=123, want=EADDRINUSE),
                bind(device=123, reuse=True),
                bind(device=0, want=EADDRINUSE),
                bind(device=0, reuse=True),
            ],
        ),
        Scenario(
            name="binding with reuse and device",
            steps=[
                bind(device=123, reuse=True),
                bind(device=123, want=EADDRINUSE),
                bind(device=123, reuse=True),
                bind(device=0, want=EADDRINUSE),
                bind(device=456, reuse=True),
                bind(device=0, reuse=True),
                bind(device=789, reuse=True),
                bind(device=999, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="mixing reuse and not reuse by binding to device",
            steps=[
                bind(device=123, reuse=True),
                bind(device=456),
                bind(device=789, reuse=True),
                bind(device=999),
            ],
        ),
        Scenario(
            name="can't bind to 0 after mixing reuse and not reuse",
            steps=[
                bind(device=123, reuse=True),
                bind(device=456),
                bind(device=0, reuse=True, want=EADDRINUSE),
            ],
        ),
        Scenario(
            name="bind and release",
            steps=[
                bind(device=123, reuse=True),
                bind(device=0, reuse=True),
                bind(device=345, reuse=False, want=EADDRINUSE),
                bind(device=789, reuse=True),
                # Release the bind to device 0 and try again.
                release(1),
                bind(device=345, reuse=False),
            ],
        ),
        Scenario(
            name="bind twice with reuse once",
            steps=[
                bind(device=123, reuse=False),
                bind(device=0, reuse=True, want=EADDRINUSE),
            ],
        ),
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser()
    p.add_argument("--out", type=Path, default=REPO_ROOT / "results")
    p.add_argument("--scenario", action="append",
                   help="Scenario(s) to run; filter by scenario name")
    p.add_argument("--catalog", type=Path,
                   help="JSON scenario catalog to run instead of the built-in scenarios")
    p.add_argument("--reuse-option", default=DEFAULT_REUSE_OPTION, choices=sorted(REUSE_OPTIONS),
                   help="Socket option a step with reuse=true sets before binding")
    p.add_argument("--device-prefix", default=DEVICE_NAME_PREFIX,
                   help="Prefix of the interface names tried before creating a TUN device (eth -> eth1, eth2, ...)")
    p.add_argument("--no-tunnels", action="store_true",
                   help="Never create TUN devices; scenarios that need one are skipped")
    p.add_argument("--skip-privilege-check", action="store_true",
                   help="Run scenarios even when not root (SO_BINDTODEVICE will usually fail)")
    p.add_argument("--dry-run", action="store_true")
    # Auto-plot options
    p.add_argument("--auto-plot", action="store_true", help="Render an outcome grid after the run")
    p.add_argument("--plot-format", default="svg", choices=["svg", "png", "pdf"])
    args = p.parse_args(argv)

    scs = default_scenarios()
    return run_from_args(args, scs)


if __name__ == "__main__":
    raise SystemExit(main())
