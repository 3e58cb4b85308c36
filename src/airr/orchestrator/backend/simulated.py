"""Catalog-driven simulated backend with bounded latency jitter."""

from __future__ import annotations

import math
import random

from airr.orchestrator.backend.base import BackendRunError, BackendRunRequest, BackendRunResult
from airr.orchestrator.catalog import BackendCatalog
from airr.orchestrator.models import TaskKind

OUTPUT_UNIT_CAPS: dict[TaskKind, int] = {
    TaskKind.SUMMARY: 200,
    TaskKind.CLASSIFICATION: 8,
    TaskKind.EXTRACTION: 120,
}


class SimulatedBackend:
    """Report catalog cost and latency plus jitter instead of calling a model."""

    def __init__(
        self,
        *,
        catalog: BackendCatalog,
        jitter_ms: int = 200,
        failure_rate: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        if jitter_ms < 0:
            raise ValueError(f"jitter_ms must be >= 0, got {jitter_ms}")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.catalog = catalog
        self.jitter_ms = jitter_ms
        self.failure_rate = failure_rate
        self._random = rng or random.Random()  # noqa: S311

    def run(self, request: BackendRunRequest) -> BackendRunResult:
        try:
            profile = self.catalog.get(request.backend)
        except KeyError as error:
            raise BackendRunError(
                f"Backend {request.backend!r} is not in the catalog",
                transient=False,
            ) from error

        latency_ms = profile.expected_latency_ms + self._random.randint(0, self.jitter_ms)
        if self.failure_rate > 0 and self._random.random() < self.failure_rate:
            raise BackendRunError(
                f"Simulated transient failure on {profile.name}",
                transient=True,
                latency_ms=latency_ms,
            )

        input_units = estimate_units(request.input_text)
        return BackendRunResult(
            input_units=input_units,
            output_units=min(input_units, OUTPUT_UNIT_CAPS[request.task_kind]),
            latency_ms=latency_ms,
            cost=profile.cost_per_task,
        )


def estimate_units(text: str) -> int:
    """Rough token estimate: four characters per unit, at least one."""

    return max(1, math.ceil(len(text) / 4))
