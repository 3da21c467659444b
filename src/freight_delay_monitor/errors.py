"""Error taxonomy for the freight delay monitor.

Adapter-level failures are absorbed at the adapter boundary wherever a
fallback exists. Only exhaustion of the pipeline's own retry budget becomes a
Failed run.
"""

from __future__ import annotations


class FreightMonitorError(Exception):
    """Base class for monitor errors."""


class ValidationError(FreightMonitorError, ValueError):
    """Malformed start-run input. The run is never created."""


class AdapterDegraded(FreightMonitorError):
    """A lookup or generation provider failed; the adapter falls back."""


class DeliveryFailed(FreightMonitorError):
    """A notification could not be sent. Logged and swallowed by delivery."""


class StepExhausted(FreightMonitorError):
    """A pipeline step used up its retry budget. Fails the run."""

    def __init__(self, step: str, attempts: int) -> None:
        super().__init__(f"Step {step!r} failed after {attempts} attempt(s)")
        self.step = step
        self.attempts = attempts


class InvalidTransition(FreightMonitorError, ValueError):
    """A run phase change that would break monotonicity."""


class RunNotFound(FreightMonitorError, KeyError):
    """No run is known under the given id."""

    def __str__(self) -> str:
        return f"Run not found: {self.args[0]}" if self.args else "Run not found"


class ResultNotReady(FreightMonitorError):
    """The run has not reached a terminal status yet."""


class RunStartFailed(FreightMonitorError):
    """The execution runtime refused to start a run."""
