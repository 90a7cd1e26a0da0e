from __future__ import annotations
import dataclasses as dc
from typing import Dict, List, Optional, Union


@dc.dataclass(frozen=True)
class BindStep:
    reuse: bool = False
    # 0 = no SO_BINDTODEVICE
    device: int = 0
    # 0 = bind must succeed, otherwise the errno bind must fail with
    want: int = 0


@dc.dataclass(frozen=True)
class ReleaseStep:
    # Creation index of the socket to close. Only bind steps create sockets,
    # so this is not the same as the step's position in the scenario.
    row: int


Step = Union[BindStep, ReleaseStep]


@dc.dataclass
class Scenario:
    name: str
    steps: List[Step] = dc.field(default_factory=list)
    # Optional: friendly title used in plots; if absent, fall back to 'name'
    title: Optional[str] = None


@dc.dataclass
class StepRecord:
    index: int
    kind: str  # bind|release
    creation_index: Optional[int] = None
    reuse: bool = False
    device: int = 0
    device_name: Optional[str] = None
    port: Optional[int] = None
    want: int = 0
    got: Optional[int] = None
    ok: bool = False


@dc.dataclass
class ScenarioResult:
    name: str
    status: str  # pass|fail|skip|error
    reason: str = ""
    step_index: Optional[int] = None
    records: List[StepRecord] = dc.field(default_factory=list)
    devices: Dict[int, str] = dc.field(default_factory=dict)
    port: int = 0
    duration_sec: float = 0.0
    total_steps: int = 0
