from __future__ import annotations
import errno
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .errors import CatalogError
from .types import BindStep, ReleaseStep, Scenario, Step

ROW_KEYS = ("reuse", "device", "release", "releaseRow", "want")


def _parse_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v != 0
    if isinstance(v, str):
        sl = v.strip().lower()
        if sl in ("1", "true", "yes", "y", "on"):
            return True
        if sl in ("0", "false", "no", "n", "off", ""):
            return False
    raise ValueError(f"Invalid boolean value: {v!r}")


def _parse_int(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, (int, str)):
        raise ValueError(f"Expected an integer, got {v!r}")
    if isinstance(v, str) and not v.strip().lstrip("-").isdigit():
        raise ValueError(f"Expected an integer, got {v!r}")
    return int(v)


def parse_want(v: Any) -> int:
    """0 / "success" for success; an errno number or name such as "EADDRINUSE"."""
    if isinstance(v, str):
        s = v.strip()
        if s.lower() in ("", "0", "success", "ok"):
            return 0
        if s.lstrip("-").isdigit():
            return int(s)
        code = getattr(errno, s.upper(), None)
        if not isinstance(code, int):
            raise ValueError(f"Unknown errno name: {v}")
        return code
    return _parse_int(v)


def step_from_row(row: Dict[str, Any]) -> Step:
    unknown = set(row) - set(ROW_KEYS)
    if unknown:
        raise ValueError(f"unknown field(s): {', '.join(sorted(unknown))}")
    if _parse_bool(row.get("release", False)):
        if "releaseRow" not in row:
            raise ValueError("release step without releaseRow")
        return ReleaseStep(row=_parse_int(row["releaseRow"]))
    return BindStep(
        reuse=_parse_bool(row.get("reuse", False)),
        device=_parse_int(row.get("device", 0)),
        want=parse_want(row.get("want", 0)),
    )


def step_to_row(step: Step) -> Dict[str, Any]:
    if isinstance(step, ReleaseStep):
        return {"release": True, "releaseRow": step.row}
    want: Any = errno.errorcode.get(step.want, step.want) if step.want else 0
    return {"reuse": step.reuse, "device": step.device, "want": want}


def scenario_from_dict(d: Dict[str, Any]) -> Scenario:
    if not isinstance(d, dict) or "name" not in d:
        raise CatalogError(f"scenario entry must be an object with a 'name': {d!r}")
    name = str(d["name"])
    rows = d.get("steps", d.get("actions"))
    if not isinstance(rows, list):
        raise CatalogError(f"scenario '{name}': 'steps' must be a list")
    steps: List[Step] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise CatalogError(f"scenario '{name}' row {i}: expected an object, got {row!r}")
        try:
            steps.append(step_from_row(row))
        except (TypeError, ValueError) as e:
            raise CatalogError(f"scenario '{name}' row {i}: {e}") from e
    return Scenario(name=name, steps=steps, title=d.get("title"))


def scenario_to_dict(sc: Scenario) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": sc.name}
    if sc.title:
        d["title"] = sc.title
    d["steps"] = [step_to_row(s) for s in sc.steps]
    return d


def load_catalog(path: Path) -> List[Scenario]:
    """Load scenarios from a JSON file: a list of scenarios or {"scenarios": [...]}."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise CatalogError(f"{path}: not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise CatalogError(f"{path}: invalid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("scenarios")
    if not isinstance(data, list):
        raise CatalogError(f"{path}: expected a list of scenarios")
    scs = [scenario_from_dict(d) for d in data]
    seen = set()
    for sc in scs:
        if sc.name in seen:
            raise CatalogError(f"{path}: duplicate scenario name '{sc.name}'")
        seen.add(sc.name)
    return scs


def filter_scenarios(scenarios: Sequence[Scenario], names: Optional[Sequence[str]]) -> List[Scenario]:
    if not names:
        return list(scenarios)
    return [s for s in scenarios if s.name in names]
