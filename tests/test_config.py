from __future__ import annotations

from pathlib import Path

import allure
import pytest

from airr.config import ExecutionSettings, IngestionSettings, Settings
from airr.orchestrator.catalog import DEFAULT_CATALOG

pytestmark = [
    allure.epic("Inference Routing"),
    allure.feature("Configuration"),
]

_AIRR_ENV_KEYS = (
    "AIRR_DB_PATH",
    "AIRR_BACKEND_CATALOG",
    "AIRR_MAX_ATTEMPTS",
    "AIRR_LATENCY_JITTER_MS",
    "AIRR_SIMULATED_FAILURE_RATE",
    "AIRR_SIMULATED_SEED",
    "AIRR_STORAGE_DIR",
    "AIRR_MAX_EXTRACTED_CHARS",
    "AIRR_WORKFLOW_WEBHOOK_URL",
    "AIRR_RESUME_TASK_KIND",
    "AIRR_RESUME_SLA_TIER",
    "AIRR_RESUME_BUDGET_CEILING",
    "AIRR_PORT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _AIRR_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.db_path == Path(".airr.db")
    assert settings.routing.catalog == DEFAULT_CATALOG
    assert settings.execution.max_attempts == 3
    assert settings.execution.latency_jitter_ms == 200
    assert settings.execution.simulated_seed is None
    assert settings.ingestion.webhook_url is None
    assert settings.ingestion.max_extracted_chars == 0
    assert settings.ingestion.resume_task_kind == "summary"
    assert settings.ingestion.resume_sla_tier == "high_quality"
    assert settings.ingestion.resume_budget_ceiling == 100
    assert settings.server.port == 4000
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AIRR_BACKEND_CATALOG", "large:50:2000,tiny:2:40")
    monkeypatch.setenv("AIRR_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("AIRR_SIMULATED_SEED", "11")
    monkeypatch.setenv("AIRR_STORAGE_DIR", str(tmp_path / "blobs"))
    monkeypatch.setenv("AIRR_MAX_EXTRACTED_CHARS", "4000")
    monkeypatch.setenv("AIRR_WORKFLOW_WEBHOOK_URL", "https://n8n.example.com/webhook/resume")
    monkeypatch.setenv("AIRR_RESUME_SLA_TIER", " LOW_COST ")
    monkeypatch.setenv("AIRR_PORT", "8080")

    settings = Settings.from_env(db_path=tmp_path / "explicit.db")

    assert settings.db_path == tmp_path / "explicit.db"
    assert settings.routing.catalog.names == ("large", "tiny")
    assert settings.execution.max_attempts == 5
    assert settings.execution.simulated_seed == 11
    assert settings.ingestion.storage_dir == tmp_path / "blobs"
    assert settings.ingestion.max_extracted_chars == 4000
    assert settings.ingestion.webhook_url == "https://n8n.example.com/webhook/resume"
    assert settings.ingestion.resume_sla_tier == "low_cost"
    assert settings.server.port == 8080
    settings.validate()


def test_from_env_rejects_malformed_catalog(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AIRR_BACKEND_CATALOG", "broken")

    with pytest.raises(ValueError, match="AIRR_BACKEND_CATALOG"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(sqlite_busy_timeout_ms=0), "AIRR_SQLITE_BUSY_TIMEOUT_MS"),
        (Settings(execution=ExecutionSettings(max_attempts=0)), "AIRR_MAX_ATTEMPTS"),
        (Settings(execution=ExecutionSettings(latency_jitter_ms=-1)), "AIRR_LATENCY_JITTER_MS"),
        (
            Settings(execution=ExecutionSettings(simulated_failure_rate=1.5)),
            "AIRR_SIMULATED_FAILURE_RATE",
        ),
        (Settings(ingestion=IngestionSettings(max_upload_bytes=0)), "AIRR_MAX_UPLOAD_BYTES"),
        (
            Settings(ingestion=IngestionSettings(max_extracted_chars=-1)),
            "AIRR_MAX_EXTRACTED_CHARS",
        ),
        (
            Settings(ingestion=IngestionSettings(webhook_url="ftp://example.com/hook")),
            "Invalid workflow webhook URL",
        ),
        (
            Settings(ingestion=IngestionSettings(resume_task_kind="translate")),
            "AIRR_RESUME_TASK_KIND",
        ),
        (
            Settings(ingestion=IngestionSettings(resume_sla_tier="premium")),
            "AIRR_RESUME_SLA_TIER",
        ),
        (
            Settings(ingestion=IngestionSettings(resume_budget_ceiling=-1)),
            "AIRR_RESUME_BUDGET_CEILING",
        ),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()
