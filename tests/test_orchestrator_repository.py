from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

import allure
import pytest
from sqlmodel import Session, select

from airr.orchestrator.catalog import DEFAULT_CATALOG
from airr.orchestrator.errors import AlreadyRoutedError, InvalidInputError, NotFoundError
from airr.orchestrator.models import (
    ArtifactCreate,
    ArtifactStatus,
    ContentFill,
    ContentStatus,
    ExecutionRecordWrite,
    TaskCreate,
    TaskStatus,
)
from airr.orchestrator.repository import RouterRepository
from airr.orchestrator.routing import RoutingEngine
from airr.storage.sqlmodel_models import RoutingDecision

pytestmark = [
    allure.epic("Inference Routing"),
    allure.feature("Audit Trail Persistence"),
]


def _create_task(repository: RouterRepository, *, budget: int = 40) -> str:
    task = repository.create_task(
        TaskCreate(
            task_kind="summary",
            sla_tier="high_quality",
            input_text="Quarterly revenue grew 12 percent.",
            budget_ceiling=budget,
        ),
    )
    return task.task_id


def _route(repository: RouterRepository, task_id: str) -> None:
    estimate = RoutingEngine(DEFAULT_CATALOG).decide("summary", "high_quality", 40)
    repository.record_routing_decision(task_id=task_id, estimate=estimate)


def _record(*, success: bool, retryable: bool = False) -> ExecutionRecordWrite:
    return ExecutionRecordWrite(
        backend="gpt_4_1",
        input_units=9,
        output_units=9 if success else 0,
        latency_ms=1800,
        cost=40 if success else 0,
        success=success,
        failure_reason=None if success else "timeout",
        retryable=retryable,
    )


def _decision_count(repository: RouterRepository, task_id: str) -> int:
    with Session(repository.engine) as session:
        rows = session.exec(
            select(RoutingDecision).where(RoutingDecision.task_id == task_id),
        ).all()
    return len(rows)


def test_create_task_starts_pending_with_utc_timestamps(repository: RouterRepository) -> None:
    task_id = _create_task(repository)
    task = repository.get_task(task_id=task_id)

    assert task is not None
    assert task.status == TaskStatus.PENDING
    assert task.budget_ceiling == 40
    assert task.created_at.tzinfo is not None
    assert repository.get_task(task_id="missing") is None


def test_record_routing_decision_moves_task_to_routed(repository: RouterRepository) -> None:
    task_id = _create_task(repository)
    estimate = RoutingEngine(DEFAULT_CATALOG).decide("summary", "high_quality", 40)

    task, decision = repository.record_routing_decision(task_id=task_id, estimate=estimate)

    assert task.status == TaskStatus.ROUTED
    assert decision.backend == "gpt_4_1"
    assert decision.estimated_cost == 40
    assert decision.justification == estimate.justification
    assert repository.get_decision(task_id=task_id) == decision


def test_second_routing_decision_is_rejected(repository: RouterRepository) -> None:
    task_id = _create_task(repository)
    _route(repository, task_id)

    with pytest.raises(AlreadyRoutedError):
        _route(repository, task_id)

    assert _decision_count(repository, task_id) == 1


def test_routing_unknown_task_raises_not_found(repository: RouterRepository) -> None:
    with pytest.raises(NotFoundError):
        _route(repository, "does-not-exist")


def test_concurrent_routing_writes_exactly_one_decision(tmp_path: Path) -> None:
    db_path = tmp_path / "concurrent.db"
    setup = RouterRepository(db_path)
    setup.init_schema()
    task_id = _create_task(setup)
    setup.close()

    start = threading.Event()
    outcomes: list[str] = []
    lock = threading.Lock()

    def _worker() -> None:
        repository = RouterRepository(db_path)
        try:
            start.wait(timeout=2)
            _route(repository, task_id)
            result = "ok"
        except AlreadyRoutedError:
            result = "already_routed"
        finally:
            repository.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    start.set()
    for thread in threads:
        thread.join(timeout=10)

    assert sorted(outcomes) == ["already_routed"] * 5 + ["ok"]
    verify = RouterRepository(db_path)
    try:
        assert _decision_count(verify, task_id) == 1
        task = verify.get_task(task_id=task_id)
        assert task is not None
        assert task.status == TaskStatus.ROUTED
    finally:
        verify.close()


def test_transition_task_is_compare_and_set(repository: RouterRepository) -> None:
    task_id = _create_task(repository)

    assert not repository.transition_task(
        task_id=task_id,
        from_statuses=(TaskStatus.ROUTED,),
        to_status=TaskStatus.RUNNING,
    )
    _route(repository, task_id)
    assert repository.transition_task(
        task_id=task_id,
        from_statuses=(TaskStatus.ROUTED,),
        to_status=TaskStatus.RUNNING,
    )
    assert not repository.transition_task(
        task_id=task_id,
        from_statuses=(TaskStatus.ROUTED,),
        to_status=TaskStatus.RUNNING,
    )


def test_finish_attempt_numbers_records_and_finalizes(repository: RouterRepository) -> None:
    task_id = _create_task(repository)
    _route(repository, task_id)
    repository.transition_task(
        task_id=task_id,
        from_statuses=(TaskStatus.ROUTED,),
        to_status=TaskStatus.RUNNING,
    )

    running, first = repository.finish_attempt(
        task_id=task_id,
        record=_record(success=False, retryable=True),
        to_status=None,
    )
    completed, second = repository.finish_attempt(
        task_id=task_id,
        record=_record(success=True),
        to_status=TaskStatus.COMPLETED,
    )

    assert running.status == TaskStatus.RUNNING
    assert (first.attempt_no, second.attempt_no) == (1, 2)
    assert completed.status == TaskStatus.COMPLETED
    assert [record.record_id for record in repository.list_execution_records(task_id=task_id)] == [
        first.record_id,
        second.record_id,
    ]


def test_finish_attempt_requires_running_task(repository: RouterRepository) -> None:
    task_id = _create_task(repository)
    _route(repository, task_id)

    with pytest.raises(InvalidInputError, match="is not running"):
        repository.finish_attempt(task_id=task_id, record=_record(success=True), to_status=None)


def test_fail_task_only_affects_non_terminal_tasks(repository: RouterRepository) -> None:
    task_id = _create_task(repository)

    assert repository.fail_task(task_id=task_id, error_message="cancelled by operator")
    assert not repository.fail_task(task_id=task_id, error_message="again")
    task = repository.get_task(task_id=task_id)
    assert task is not None
    assert task.status == TaskStatus.FAILED
    assert task.error_message == "cancelled by operator"


def test_audit_trail_snapshot_contains_decision_and_records(
    repository: RouterRepository,
) -> None:
    task_id = _create_task(repository)
    assert repository.get_audit_trail(task_id="nope") is None

    trail = repository.get_audit_trail(task_id=task_id)
    assert trail is not None
    assert trail.decision is None
    assert trail.executions == []

    _route(repository, task_id)
    repository.transition_task(
        task_id=task_id,
        from_statuses=(TaskStatus.ROUTED,),
        to_status=TaskStatus.RUNNING,
    )
    repository.finish_attempt(
        task_id=task_id,
        record=_record(success=True),
        to_status=TaskStatus.COMPLETED,
    )

    trail = repository.get_audit_trail(task_id=task_id)
    assert trail is not None
    assert trail.task.status == TaskStatus.COMPLETED
    assert trail.decision is not None
    assert [record.attempt_no for record in trail.executions] == [1]


def test_list_decisions_with_tasks_is_newest_first(repository: RouterRepository) -> None:
    task_ids = [_create_task(repository, budget=budget) for budget in (40, 10, 1)]
    for task_id in task_ids:
        _route(repository, task_id)

    rows = repository.list_decisions_with_tasks(limit=2)

    assert [row.task.task_id for row in rows] == [task_ids[2], task_ids[1]]
    assert all(row.decision.task_id == row.task.task_id for row in rows)


def test_list_decisions_with_identical_timestamps_keeps_insertion_order(
    repository: RouterRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    frozen = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
    monkeypatch.setattr("airr.orchestrator.repository.utc_now", lambda: frozen)
    task_ids = [_create_task(repository, budget=budget) for budget in (40, 10, 1, 5)]
    for task_id in task_ids:
        _route(repository, task_id)

    rows = repository.list_decisions_with_tasks(limit=10)

    assert [row.task.task_id for row in rows] == list(reversed(task_ids))
    assert {row.decision.created_at for row in rows} == {frozen}


def test_ingestion_rows_follow_forward_only_transitions(repository: RouterRepository) -> None:
    artifact, content = repository.create_ingestion(
        ArtifactCreate(
            file_name="call.mp3",
            media_type="audio/mpeg",
            storage_locator="raw/abc.mp3",
            size_bytes=42,
        ),
    )
    assert artifact.status == ArtifactStatus.UPLOADED
    assert content.status == ContentStatus.PROCESSING
    assert content.artifact_id == artifact.artifact_id

    assert repository.update_artifact_status(
        artifact_id=artifact.artifact_id,
        status=ArtifactStatus.PROCESSING,
    )
    assert repository.update_artifact_status(
        artifact_id=artifact.artifact_id,
        status=ArtifactStatus.READY,
    )
    assert not repository.update_artifact_status(
        artifact_id=artifact.artifact_id,
        status=ArtifactStatus.PROCESSING,
    )

    fill = ContentFill(text="hello", language="en", duration_seconds=3, is_placeholder=False)
    assert repository.fill_content(content_id=content.content_id, fill=fill)
    assert not repository.fill_content(content_id=content.content_id, fill=fill)
    assert not repository.fail_content(content_id=content.content_id, error_message="late")

    stored = repository.get_content(content_id=content.content_id)
    assert stored is not None
    assert stored.status == ContentStatus.READY
    assert stored.text == "hello"
    assert stored.duration_seconds == 3
