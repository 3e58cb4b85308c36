"""Controllers for routing CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from airr.config import Settings
from airr.ingestion.notifier import notifier_from_settings
from airr.orchestrator.errors import NotFoundError
from airr.orchestrator.models import AuditTrail, TaskCreate
from airr.orchestrator.repository import RouterRepository
from airr.orchestrator.routing import RoutingEngine
from airr.orchestrator.services import TaskOrchestrator


@dataclass(slots=True)
class DbInitCommand:
    """CLI input for schema migration."""

    db_path: Path | None


@dataclass(slots=True)
class RoutePreviewCommand:
    """CLI input for a dry-run routing decision."""

    task_kind: str
    sla_tier: str
    budget_ceiling: int


@dataclass(slots=True)
class TaskRunCommand:
    """CLI input for create + route + execute."""

    db_path: Path | None
    task_kind: str
    sla_tier: str
    input_text: str
    budget_ceiling: int


@dataclass(slots=True)
class TaskAuditCommand:
    """CLI input for audit trail inspection."""

    db_path: Path | None
    task_id: str


@dataclass(slots=True)
class DecisionsListCommand:
    """CLI input for recent routing decisions."""

    db_path: Path | None
    limit: int


class RouterCliController:
    """Coordinates schema, routing, execution, and audit CLI operations."""

    def init_db(self, command: DbInitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings):
            pass
        return [f"Database schema is up to date: {settings.db_path}"]

    def preview_route(self, command: RoutePreviewCommand) -> list[str]:
        """Evaluate the decision engine without touching storage."""

        settings = Settings.from_env()
        estimate = RoutingEngine(settings.routing.catalog).decide(
            command.task_kind,
            command.sla_tier,
            command.budget_ceiling,
        )
        return [
            f"Backend: {estimate.backend}",
            f"Estimated cost: {estimate.estimated_cost}",
            f"Estimated latency ms: {estimate.estimated_latency_ms}",
            f"Over budget: {'yes' if estimate.over_budget else 'no'}",
            f"Justification: {estimate.justification}",
        ]

    def run_task(self, command: TaskRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        with _orchestrator(settings) as orchestrator:
            trail = orchestrator.run_task(
                TaskCreate(
                    task_kind=command.task_kind,
                    sla_tier=command.sla_tier,
                    input_text=command.input_text,
                    budget_ceiling=command.budget_ceiling,
                ),
            )
        return _render_trail(trail)

    def audit_task(self, command: TaskAuditCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            trail = repository.get_audit_trail(task_id=command.task_id)
        if trail is None:
            raise NotFoundError(f"Task not found: {command.task_id}")
        return _render_trail(trail)

    def list_decisions(self, command: DecisionsListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _orchestrator(settings) as orchestrator:
            rows = orchestrator.list_routing_decisions(limit=command.limit)
        if not rows:
            return ["No routing decisions."]
        lines = [f"Routing decisions: {len(rows)}"]
        for row in rows:
            lines.append(
                f"{row.decision.created_at.isoformat()} task={row.task.task_id} "
                f"kind={row.task.task_kind.value} sla={row.task.sla_tier.value} "
                f"budget={row.task.budget_ceiling} backend={row.decision.backend} "
                f"cost={row.decision.estimated_cost} status={row.task.status.value}",
            )
        return lines


def _render_trail(trail: AuditTrail) -> list[str]:
    task = trail.task
    lines = [
        f"Task: {task.task_id}",
        f"Kind: {task.task_kind.value}",
        f"SLA tier: {task.sla_tier.value}",
        f"Budget ceiling: {task.budget_ceiling}",
        f"Status: {task.status.value}",
        f"Error: {task.error_message or '-'}",
    ]
    decision = trail.decision
    if decision is None:
        lines.append("Decision: -")
    else:
        lines.append(
            f"Decision: backend={decision.backend} cost={decision.estimated_cost} "
            f"latency_ms={decision.estimated_latency_ms} "
            f"over_budget={'yes' if decision.over_budget else 'no'}",
        )
        lines.append(f"  {decision.justification}")
    lines.append(f"Executions: {len(trail.executions)}")
    for record in trail.executions:
        outcome = "ok" if record.success else f"failed ({record.failure_reason or '-'})"
        lines.append(
            f"  #{record.attempt_no} {record.backend} units={record.input_units}/"
            f"{record.output_units} latency_ms={record.latency_ms} cost={record.cost} "
            f"{outcome}",
        )
    return lines


@contextmanager
def _repository(settings: Settings) -> Iterator[RouterRepository]:
    repository = RouterRepository(
        db_path=settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _orchestrator(settings: Settings) -> Iterator[TaskOrchestrator]:
    notifier = notifier_from_settings(settings.ingestion)
    try:
        with _repository(settings) as repository:
            yield TaskOrchestrator.from_settings(
                settings,
                repository=repository,
                notifier=notifier,
            )
    finally:
        notifier.close()
