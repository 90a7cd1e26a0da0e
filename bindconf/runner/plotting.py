from __future__ import annotations
import shlex
import subprocess
import sys
from pathlib import Path
from typing import List, Optional


def run_plot(results_root: Path, scenarios: Optional[List[str]] = None, run_dir: Optional[Path] = None,
             fmt: str = "svg") -> int:
    plot_script = Path(__file__).resolve().parents[1] / "plot_results.py"
    cmd = [
        sys.executable, str(plot_script),
        "--results-dir", str(results_root),
        "--output", fmt,
    ]
    for name in scenarios or []:
        cmd += ["--scenario", name]
    if run_dir is not None:
        cmd += ["--run-dir", str(run_dir)]
    print(f"Auto-plot: {' '.join(shlex.quote(c) for c in cmd)}")
    return subprocess.call(cmd)
