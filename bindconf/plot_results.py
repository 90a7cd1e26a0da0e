#!/usr/bin/env python3
"""
Render bindconf results as an outcome grid.

Features
- Reads results/run_<ts>/summary.json and the per-scenario <name>.json next to it
- One row per scenario, one column per step; each cell is colored by what
  happened to that step (passed, failed, skipped, never reached)
- Writes outcomes.<fmt> into the run directory

Examples
- python3 bindconf/plot_results.py --results-dir results
- python3 bindconf/plot_results.py --run-dir results/run_2026-10-19T12-00-00Z --output png
"""
from __future__ import annotations
import argparse
import errno
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple


CELL_COLORS = {
    "pass": "#2ca02c",     # green
    "fail": "#d62728",     # red
    "skip": "#7f7f7f",     # grey
    "error": "#9467bd",    # purple
    "not_run": "#e5e5e5",  # light grey
}


def latest_run_dir(results_dir: Path) -> Optional[Path]:
    runs = sorted(p for p in results_dir.glob("run_*") if (p / "summary.json").exists())
    return runs[-1] if runs else None


def gather_results(results_dir: Path, scenario_filter: Optional[List[str]] = None,
                   run_dir: Optional[Path] = None) -> Tuple[Optional[Path], List[Dict]]:
    """Load the per-scenario result dicts of one run, in the order they ran."""
    run_dir = run_dir or latest_run_dir(results_dir)
    if run_dir is None:
        return None, []
    summary = json.loads((run_dir / "summary.json").read_text())
    out: List[Dict] = []
    for name in summary.get("order", []):
        if scenario_filter and name not in scenario_filter:
            continue
        for path in run_dir.glob("*.json"):
            if path.name in ("summary.json", "cli_args.json"):
                continue
            d = json.loads(path.read_text())
            if d.get("name") == name:
                out.append(d)
                break
    return run_dir, out


def cell_states(result: Dict) -> List[str]:
    """Per-step state for one scenario result."""
    total = int(result.get("total_steps") or len(result.get("records", [])))
    status = result.get("status")
    if status == "skip":
        return ["skip"] * total
    states = ["not_run"] * total
    for rec in result.get("records", []):
        idx = rec["index"]
        if idx >= total:
            continue
        if rec.get("ok"):
            states[idx] = "pass"
        else:
            states[idx] = "error" if status == "error" else "fail"
    return states


def cell_label(rec: Optional[Dict]) -> str:
    if rec is None:
        return ""
    if rec.get("kind") == "release":
        return f"rel {rec.get('creation_index')}"
    dev = rec.get("device") or 0
    label = f"d{dev}" + ("+r" if rec.get("reuse") else "")
    want = rec.get("want") or 0
    return label + ("\nok" if want == 0 else "\n" + errno.errorcode.get(want, str(want)))


def plot_matplotlib(results: List[Dict], run_dir: Path, fmt: str = "svg", hide_title: bool = False) -> Path:
    import matplotlib.pyplot as plt
    from matplotlib.patches import Rectangle

    n_rows = len(results)
    n_cols = max((int(r.get("total_steps") or 0) for r in results), default=1) or 1
    fig, ax = plt.subplots(figsize=(max(6, 1.1 * n_cols + 4), max(2, 0.5 * n_rows + 1)))

    for row, res in enumerate(results):
        recs = {rec["index"]: rec for rec in res.get("records", [])}
        for col, state in enumerate(cell_states(res)):
            y = n_rows - 1 - row
            ax.add_patch(Rectangle((col, y), 1, 1, facecolor=CELL_COLORS[state], edgecolor="#333333"))
            text = cell_label(recs.get(col))
            if text:
                ax.text(col + 0.5, y + 0.5, text, ha="center", va="center", fontsize=6,
                        color="white" if state in ("pass", "fail", "error") else "black")

    ax.set_xlim(0, n_cols)
    ax.set_ylim(0, n_rows)
    ax.set_xticks([c + 0.5 for c in range(n_cols)])
    ax.set_xticklabels([str(c) for c in range(n_cols)])
    ax.set_yticks([n_rows - 1 - r + 0.5 for r in range(n_rows)])
    ax.set_yticklabels([f"{r['name']} [{r['status']}]" for r in results], fontsize=7)
    ax.set_xlabel("step")
    for spine in ax.spines.values():
        spine.set_visible(False)
    ax.tick_params(length=0)
    if not hide_title:
        ax.set_title(f"bind-to-device conformance: {run_dir.name}")

    handles = [Rectangle((0, 0), 1, 1, facecolor=c, edgecolor="#333333") for c in CELL_COLORS.values()]
    ax.legend(handles, [k.replace("_", " ") for k in CELL_COLORS], loc="upper left",
              bbox_to_anchor=(1.01, 1.0), fontsize=7, frameon=False)
    fig.tight_layout()
    out = run_dir / f"outcomes.{fmt}"
    fig.savefig(out)
    plt.close(fig)
    return out


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--results-dir", type=Path, default=Path("results"))
    ap.add_argument("--run-dir", type=Path, help="Plot this run directory (results/run_<ts>); default is the latest run")
    ap.add_argument("--scenario", action="append", help="Scenario(s) to include; default all")
    ap.add_argument("--output", default="svg", choices=["svg", "png", "pdf"])
    ap.add_argument("--no-title", action="store_true", help="Hide the main title on plots")
    args = ap.parse_args(argv)

    run_dir, results = gather_results(args.results_dir, args.scenario, run_dir=args.run_dir)
    if run_dir is None or not results:
        print(f"No results found under {args.run_dir or args.results_dir}")
        return 1

    out = plot_matplotlib(results, run_dir, fmt=args.output, hide_title=args.no_title)
    print("Wrote:")
    print("   ", out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
