"""Execution backend implementations."""

from airr.orchestrator.backend.base import (
    BackendRunError,
    BackendRunRequest,
    BackendRunResult,
    ExecutionBackend,
)
from airr.orchestrator.backend.simulated import SimulatedBackend

__all__ = [
    "BackendRunError",
    "BackendRunRequest",
    "BackendRunResult",
    "ExecutionBackend",
    "SimulatedBackend",
]
