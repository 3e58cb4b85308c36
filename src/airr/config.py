"""Runtime configuration for routing, execution, and ingestion."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from airr.orchestrator.catalog import DEFAULT_CATALOG, BackendCatalog, parse_catalog
from airr.orchestrator.models import SlaTier, TaskKind


@dataclass(slots=True)
class RoutingSettings:
    """Backend catalog used by the decision engine."""

    catalog: BackendCatalog = DEFAULT_CATALOG


@dataclass(slots=True)
class ExecutionSettings:
    """Backend execution and retry settings."""

    max_attempts: int = 3
    latency_jitter_ms: int = 200
    simulated_failure_rate: float = 0.0
    simulated_seed: int | None = None


@dataclass(slots=True)
class IngestionSettings:
    """Upload, storage, and resume-trigger settings."""

    storage_dir: Path = Path(".airr_files")
    max_upload_bytes: int = 200 * 1024 * 1024
    max_extracted_chars: int = 0
    webhook_url: str | None = None
    webhook_timeout_seconds: float = 10.0
    resume_task_kind: str = TaskKind.SUMMARY.value
    resume_sla_tier: str = SlaTier.HIGH_QUALITY.value
    resume_budget_ceiling: int = 100


@dataclass(slots=True)
class ServerSettings:
    """HTTP server bind settings."""

    host: str = "127.0.0.1"
    port: int = 4000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".airr.db")
    sqlite_busy_timeout_ms: int = 5_000
    routing: RoutingSettings = field(default_factory=RoutingSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    server: ServerSettings = field(default_factory=ServerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        raw_catalog = os.getenv("AIRR_BACKEND_CATALOG", "").strip()
        raw_seed = os.getenv("AIRR_SIMULATED_SEED", "").strip()
        webhook_url = os.getenv("AIRR_WORKFLOW_WEBHOOK_URL", "").strip()
        return cls(
            db_path=db_path or Path(os.getenv("AIRR_DB_PATH", ".airr.db")),
            sqlite_busy_timeout_ms=int(os.getenv("AIRR_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            routing=RoutingSettings(
                catalog=parse_catalog(raw_catalog) if raw_catalog else DEFAULT_CATALOG,
            ),
            execution=ExecutionSettings(
                max_attempts=int(os.getenv("AIRR_MAX_ATTEMPTS", "3")),
                latency_jitter_ms=int(os.getenv("AIRR_LATENCY_JITTER_MS", "200")),
                simulated_failure_rate=float(os.getenv("AIRR_SIMULATED_FAILURE_RATE", "0.0")),
                simulated_seed=int(raw_seed) if raw_seed else None,
            ),
            ingestion=IngestionSettings(
                storage_dir=Path(os.getenv("AIRR_STORAGE_DIR", ".airr_files")),
                max_upload_bytes=int(
                    os.getenv("AIRR_MAX_UPLOAD_BYTES", str(200 * 1024 * 1024)),
                ),
                max_extracted_chars=int(os.getenv("AIRR_MAX_EXTRACTED_CHARS", "0")),
                webhook_url=webhook_url or None,
                webhook_timeout_seconds=float(
                    os.getenv("AIRR_WORKFLOW_WEBHOOK_TIMEOUT_SECONDS", "10.0"),
                ),
                resume_task_kind=os.getenv("AIRR_RESUME_TASK_KIND", TaskKind.SUMMARY.value)
                .strip()
                .lower(),
                resume_sla_tier=os.getenv("AIRR_RESUME_SLA_TIER", SlaTier.HIGH_QUALITY.value)
                .strip()
                .lower(),
                resume_budget_ceiling=int(os.getenv("AIRR_RESUME_BUDGET_CEILING", "100")),
            ),
            server=ServerSettings(
                host=os.getenv("AIRR_HOST", "127.0.0.1"),
                port=int(os.getenv("AIRR_PORT", "4000")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("AIRR_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.execution.max_attempts <= 0:
            raise ValueError("AIRR_MAX_ATTEMPTS must be a positive integer.")
        if self.execution.latency_jitter_ms < 0:
            raise ValueError("AIRR_LATENCY_JITTER_MS must be >= 0.")
        if not 0.0 <= self.execution.simulated_failure_rate <= 1.0:
            raise ValueError("AIRR_SIMULATED_FAILURE_RATE must be within [0, 1].")
        if self.ingestion.max_upload_bytes <= 0:
            raise ValueError("AIRR_MAX_UPLOAD_BYTES must be a positive integer.")
        if self.ingestion.max_extracted_chars < 0:
            raise ValueError("AIRR_MAX_EXTRACTED_CHARS must be zero (no limit) or positive.")
        if self.ingestion.webhook_timeout_seconds <= 0:
            raise ValueError("AIRR_WORKFLOW_WEBHOOK_TIMEOUT_SECONDS must be > 0.")
        if self.ingestion.webhook_url is not None:
            _validate_webhook_url(self.ingestion.webhook_url)
        if self.ingestion.resume_task_kind not in {kind.value for kind in TaskKind}:
            raise ValueError(
                f"Unsupported AIRR_RESUME_TASK_KIND: {self.ingestion.resume_task_kind!r}",
            )
        if self.ingestion.resume_sla_tier not in {tier.value for tier in SlaTier}:
            raise ValueError(
                f"Unsupported AIRR_RESUME_SLA_TIER: {self.ingestion.resume_sla_tier!r}",
            )
        if self.ingestion.resume_budget_ceiling < 0:
            raise ValueError("AIRR_RESUME_BUDGET_CEILING must be >= 0.")


def _validate_webhook_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid workflow webhook URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
