from __future__ import annotations
from typing import Optional


class ConformanceError(Exception):
    """Base class for everything the scenario engine raises on purpose."""


class EnvironmentUnavailable(ConformanceError):
    """The host cannot run the scenario (no privilege, no TUN device, ...).

    Reported as a skip, never as a failure.
    """


class BadReference(ConformanceError):
    """A release step names a creation index that is not live."""

    def __init__(self, index: int, message: Optional[str] = None):
        self.index = index
        super().__init__(message or f"no live socket at creation index {index}")


class UnexpectedOutcome(ConformanceError):
    """A bind or socket option call did not behave as the scenario declared."""

    def __init__(self, scenario: str, step_index: int, message: str):
        self.scenario = scenario
        self.step_index = step_index
        self.message = message
        super().__init__(f"{scenario}: step {step_index}: {message}")


class InvariantViolation(ConformanceError):
    """Engine bug: internal bookkeeping was used in a way the executor never should."""


class CatalogError(ValueError):
    """Malformed scenario catalog data."""
