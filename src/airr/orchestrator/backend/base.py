"""Backend interface for task execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from airr.orchestrator.models import TaskKind


@dataclass(slots=True)
class BackendRunRequest:
    """Inputs required to execute one task attempt."""

    task_id: str
    attempt_no: int
    backend: str
    task_kind: TaskKind
    input_text: str


@dataclass(slots=True)
class BackendRunResult:
    """Measured outcome reported by a backend."""

    input_units: int
    output_units: int
    latency_ms: int
    cost: int


class BackendRunError(RuntimeError):
    """Backend execution error with retryability hint."""

    def __init__(
        self,
        message: str,
        *,
        transient: bool,
        latency_ms: int = 0,
        cost: int = 0,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.latency_ms = latency_ms
        self.cost = cost


class ExecutionBackend(Protocol):
    """Protocol implemented by backend runners."""

    def run(self, request: BackendRunRequest) -> BackendRunResult:
        """Run a task attempt and return measured metrics."""
