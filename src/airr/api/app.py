"""HTTP surface for ingestion, routing, execution, and audit reporting."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt

from airr import __version__
from airr.config import Settings
from airr.ingestion.notifier import WorkflowNotifier, notifier_from_settings
from airr.orchestrator.errors import RouterError
from airr.orchestrator.models import (
    ArtifactStatus,
    AuditTrail,
    ContentStatus,
    SlaTier,
    TaskCreate,
    TaskKind,
    TaskStatus,
)
from airr.orchestrator.repository import RouterRepository
from airr.orchestrator.services import MAX_LIST_LIMIT, ResumeRequest, TaskOrchestrator

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[str, int] = {
    "invalid_input": 400,
    "not_found": 404,
    "already_routed": 409,
    "backend_execution_failure": 502,
    "dependency_failure": 503,
}


class _ViewModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TaskResponse(_ViewModel):
    task_id: str
    task_kind: TaskKind
    sla_tier: SlaTier
    budget_ceiling: int
    input_text: str
    content_id: str | None
    status: TaskStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class RoutingDecisionResponse(_ViewModel):
    decision_id: str
    task_id: str
    backend: str
    justification: str
    estimated_cost: int
    estimated_latency_ms: int
    over_budget: bool
    created_at: datetime


class ExecutionRecordResponse(_ViewModel):
    record_id: str
    task_id: str
    attempt_no: int
    backend: str
    input_units: int
    output_units: int
    latency_ms: int
    cost: int
    success: bool
    failure_reason: str | None
    retryable: bool
    created_at: datetime


class AuditTrailResponse(_ViewModel):
    task: TaskResponse
    decision: RoutingDecisionResponse | None
    executions: list[ExecutionRecordResponse] = Field(default_factory=list)


class RoutedTaskResponse(_ViewModel):
    task: TaskResponse
    decision: RoutingDecisionResponse


class ExecutionOutcomeResponse(_ViewModel):
    task: TaskResponse
    record: ExecutionRecordResponse


class DecisionWithTaskResponse(_ViewModel):
    decision: RoutingDecisionResponse
    task: TaskResponse


class ArtifactResponse(_ViewModel):
    artifact_id: str
    file_name: str
    media_type: str
    storage_locator: str
    size_bytes: int
    status: ArtifactStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class ContentResponse(_ViewModel):
    content_id: str
    artifact_id: str
    text: str | None
    language: str | None
    duration_seconds: int | None
    is_placeholder: bool
    status: ContentStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class UploadResponse(_ViewModel):
    artifact: ArtifactResponse
    content: ContentResponse


class TaskCreateRequest(BaseModel):
    task_kind: str = Field(validation_alias=AliasChoices("task_kind", "taskType"))
    sla_tier: str = Field(validation_alias=AliasChoices("sla_tier", "sla"))
    input_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("input_text", "inputText"),
    )
    budget_ceiling: StrictInt = Field(
        validation_alias=AliasChoices("budget_ceiling", "maxCostCents"),
    )
    content_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content_id", "transcriptId"),
    )


class ResumeRouteRequest(BaseModel):
    artifact_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("artifact_id", "fileId"),
    )
    content_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("content_id", "transcriptId"),
    )
    task_kind: str | None = None
    sla_tier: str | None = None
    budget_ceiling: StrictInt | None = None


def create_app(
    settings: Settings | None = None,
    *,
    notifier: WorkflowNotifier | None = None,
) -> FastAPI:
    """Build the API with its own repository and orchestrator.

    A notifier passed in stays owned by the caller; one built from settings
    is closed together with the repository on shutdown.
    """

    resolved = settings or Settings.from_env()
    resolved.validate()
    repository = RouterRepository(
        resolved.db_path,
        sqlite_busy_timeout_ms=resolved.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    owned_notifier = notifier_from_settings(resolved.ingestion) if notifier is None else None
    orchestrator = TaskOrchestrator.from_settings(
        resolved,
        repository=repository,
        notifier=notifier or owned_notifier,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            repository.close()
            if owned_notifier is not None:
                owned_notifier.close()

    app = FastAPI(title="airr-router", version=__version__, lifespan=lifespan)
    app.state.settings = resolved
    app.state.orchestrator = orchestrator
    _register_error_handlers(app)
    _register_routes(app)
    return app


def _orchestrator(request: Request) -> TaskOrchestrator:
    return request.app.state.orchestrator


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RouterError)
    async def router_error_handler(_: Request, exc: RouterError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
        if status_code >= 500:
            logger.error("Request failed with %s: %s", exc.kind, exc.message)
        return JSONResponse(status_code=status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"kind": "invalid_input", "message": problems or "Invalid request."},
        )


def _register_routes(app: FastAPI) -> None:
    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/upload", response_model=UploadResponse)
    async def upload(
        request: Request,
        background_tasks: BackgroundTasks,
        filename: str = Query(min_length=1, max_length=255),
    ) -> UploadResponse:
        payload = await request.body()
        ingestion = _orchestrator(request).ingestion
        result = await run_in_threadpool(
            ingestion.ingest,
            payload,
            file_name=filename,
            media_type=request.headers.get("content-type", ""),
            notify=False,
        )
        background_tasks.add_task(ingestion.notify_ingested, result)
        return UploadResponse.model_validate(result)

    @app.post("/api/tasks", response_model=AuditTrailResponse)
    def create_task(request: Request, body: TaskCreateRequest) -> AuditTrailResponse:
        trail = _orchestrator(request).run_task(
            TaskCreate(
                task_kind=body.task_kind,
                sla_tier=body.sla_tier,
                input_text=body.input_text,
                budget_ceiling=body.budget_ceiling,
                content_id=body.content_id,
            ),
        )
        return _trail_response(trail)

    @app.post("/api/tasks/{task_id}/route", response_model=RoutedTaskResponse)
    def route_task(request: Request, task_id: str) -> RoutedTaskResponse:
        return RoutedTaskResponse.model_validate(_orchestrator(request).route(task_id))

    @app.post("/api/tasks/{task_id}/execute", response_model=ExecutionOutcomeResponse)
    def execute_task(request: Request, task_id: str) -> ExecutionOutcomeResponse:
        return ExecutionOutcomeResponse.model_validate(_orchestrator(request).execute(task_id))

    @app.get("/api/tasks/{task_id}/audit", response_model=AuditTrailResponse)
    def task_audit(request: Request, task_id: str) -> AuditTrailResponse:
        return _trail_response(_orchestrator(request).get_audit_trail(task_id))

    @app.post("/api/transcribe-and-route", response_model=AuditTrailResponse)
    def transcribe_and_route(request: Request, body: ResumeRouteRequest) -> AuditTrailResponse:
        trail = _orchestrator(request).resume_from_content(
            ResumeRequest(
                artifact_id=body.artifact_id,
                content_id=body.content_id,
                task_kind=body.task_kind,
                sla_tier=body.sla_tier,
                budget_ceiling=body.budget_ceiling,
            ),
        )
        return _trail_response(trail)

    @app.get("/api/routing-decisions", response_model=list[DecisionWithTaskResponse])
    def routing_decisions(
        request: Request,
        limit: int = Query(default=50, ge=1, le=MAX_LIST_LIMIT),
    ) -> list[DecisionWithTaskResponse]:
        rows = _orchestrator(request).list_routing_decisions(limit=limit)
        return [DecisionWithTaskResponse.model_validate(row) for row in rows]


def _trail_response(trail: AuditTrail) -> AuditTrailResponse:
    return AuditTrailResponse.model_validate(trail)
