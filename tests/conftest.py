"""Shared test fixtures."""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from airr.ingestion.adapter import IngestionAdapter
from airr.ingestion.extraction import TextExtractor
from airr.ingestion.file_store import LocalFileStore
from airr.ingestion.notifier import IngestionEvent
from airr.orchestrator.backend import (
    BackendRunError,
    BackendRunRequest,
    BackendRunResult,
    ExecutionBackend,
    SimulatedBackend,
)
from airr.orchestrator.catalog import DEFAULT_CATALOG
from airr.orchestrator.repository import RouterRepository
from airr.orchestrator.routing import RoutingEngine
from airr.orchestrator.services import TaskOrchestrator


class RecordingNotifier:
    """Keeps every delivered event."""

    def __init__(self) -> None:
        self.events: list[IngestionEvent] = []
        self.closed = False

    def notify(self, event: IngestionEvent) -> None:
        self.events.append(event)

    def close(self) -> None:
        self.closed = True


class BrokenNotifier:
    def notify(self, event: IngestionEvent) -> None:
        raise RuntimeError(f"workflow endpoint unreachable for {event.artifact_id}")

    def close(self) -> None:
        pass


class ScriptedBackend:
    """Plays back queued outcomes, then succeeds with fixed metrics."""

    def __init__(self, outcomes: list[BackendRunError | BackendRunResult] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.requests: list[BackendRunRequest] = []

    def run(self, request: BackendRunRequest) -> BackendRunResult:
        self.requests.append(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BackendRunError):
                raise outcome
            return outcome
        profile = DEFAULT_CATALOG.get(request.backend)
        return BackendRunResult(
            input_units=3,
            output_units=2,
            latency_ms=profile.expected_latency_ms,
            cost=profile.cost_per_task,
        )


def transient_error(message: str = "upstream timeout") -> BackendRunError:
    return BackendRunError(message, transient=True, latency_ms=50)


def permanent_error(message: str = "model rejected input") -> BackendRunError:
    return BackendRunError(message, transient=False, latency_ms=20)


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[RouterRepository]:
    repo = RouterRepository(tmp_path / "router.db")
    repo.init_schema()
    try:
        yield repo
    finally:
        repo.close()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def ingestion(
    repository: RouterRepository,
    tmp_path: Path,
    notifier: RecordingNotifier,
) -> IngestionAdapter:
    return IngestionAdapter(
        repository=repository,
        file_store=LocalFileStore(tmp_path / "files"),
        extractor=TextExtractor(),
        notifier=notifier,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture()
def make_orchestrator(
    repository: RouterRepository,
    ingestion: IngestionAdapter,
) -> Callable[..., TaskOrchestrator]:
    def _make(
        backend: ExecutionBackend | None = None,
        *,
        max_attempts: int = 3,
    ) -> TaskOrchestrator:
        return TaskOrchestrator(
            repository=repository,
            engine=RoutingEngine(DEFAULT_CATALOG),
            backend=backend
            or SimulatedBackend(catalog=DEFAULT_CATALOG, jitter_ms=0, rng=random.Random(7)),
            ingestion=ingestion,
            max_attempts=max_attempts,
        )

    return _make


@pytest.fixture()
def orchestrator(make_orchestrator: Callable[..., TaskOrchestrator]) -> TaskOrchestrator:
    return make_orchestrator()
