"""Ingestion adapter: store uploads, register pending content, notify workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath

from airr.ingestion.extraction import TextExtractor
from airr.ingestion.file_store import FileStore
from airr.ingestion.notifier import IngestionEvent, WorkflowNotifier
from airr.orchestrator.errors import (
    DependencyFailureError,
    InvalidInputError,
    NotFoundError,
    dependency_guard,
)
from airr.orchestrator.models import (
    ArtifactCreate,
    ArtifactStatus,
    ArtifactView,
    ContentFill,
    ContentStatus,
    ContentView,
)
from airr.orchestrator.repository import RouterRepository

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "[placeholder]"
DEFAULT_LANGUAGE = "en"


@dataclass(slots=True)
class IngestionResult:
    """Rows created for one upload."""

    artifact: ArtifactView
    content: ContentView


class IngestionAdapter:
    """Accept raw artifacts and prepare their content for the orchestrator."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: RouterRepository,
        file_store: FileStore,
        extractor: TextExtractor,
        notifier: WorkflowNotifier,
        max_upload_bytes: int = 200 * 1024 * 1024,
    ) -> None:
        self.repository = repository
        self.file_store = file_store
        self.extractor = extractor
        self.notifier = notifier
        self.max_upload_bytes = max_upload_bytes

    def ingest(
        self,
        data: bytes,
        *,
        file_name: str,
        media_type: str,
        notify: bool = True,
    ) -> IngestionResult:
        """Store bytes, create uploaded/processing rows, and emit one notification.

        Pass ``notify=False`` to defer the notification to ``notify_ingested``.
        """

        name = PurePath(file_name or "").name.strip()
        if not name:
            raise InvalidInputError("Missing file name.")
        if not data:
            raise InvalidInputError("Uploaded file is empty.")
        if len(data) > self.max_upload_bytes:
            raise InvalidInputError(
                f"Uploaded file exceeds the {self.max_upload_bytes} byte limit.",
            )
        normalized_type = (media_type or "").strip() or "application/octet-stream"

        with dependency_guard("Artifact storage"):
            locator = self.file_store.store(data, file_name=name, media_type=normalized_type)
        with dependency_guard("Ingestion insert"):
            artifact, content = self.repository.create_ingestion(
                ArtifactCreate(
                    file_name=name,
                    media_type=normalized_type,
                    storage_locator=locator,
                    size_bytes=len(data),
                ),
            )
        logger.info(
            "Ingested artifact %s (%s, %d bytes) content=%s",
            artifact.artifact_id,
            normalized_type,
            len(data),
            content.content_id,
        )

        result = IngestionResult(artifact=artifact, content=content)
        if notify:
            self.notify_ingested(result)
        return result

    def notify_ingested(self, result: IngestionResult) -> None:
        """Tell the workflow endpoint about an upload; failures are only logged."""

        self._notify(
            IngestionEvent(
                artifact_id=result.artifact.artifact_id,
                content_id=result.content.content_id,
            ),
        )

    def extract(self, *, artifact_id: str, content_id: str) -> ContentView:
        """Fill pending content from the stored artifact, exactly once.

        Already-ready content is returned unchanged so duplicate resume
        triggers do not re-extract.
        """

        with dependency_guard("Content lookup"):
            artifact = self.repository.get_artifact(artifact_id=artifact_id)
            content = self.repository.get_content(content_id=content_id)
        if artifact is None:
            raise NotFoundError(f"Artifact not found: {artifact_id}")
        if content is None:
            raise NotFoundError(f"Content not found: {content_id}")
        if content.artifact_id != artifact.artifact_id:
            raise InvalidInputError(
                f"Content {content_id} does not belong to artifact {artifact_id}.",
            )
        if content.status == ContentStatus.READY:
            return content
        if content.status == ContentStatus.FAILED:
            raise InvalidInputError(
                f"Content {content_id} previously failed: {content.error_message or '-'}",
            )

        with dependency_guard("Artifact status update"):
            self.repository.update_artifact_status(
                artifact_id=artifact_id,
                status=ArtifactStatus.PROCESSING,
            )
        try:
            with dependency_guard("Artifact fetch"):
                data = self.file_store.fetch(artifact.storage_locator)
        except DependencyFailureError as error:
            self._mark_failed(artifact_id=artifact_id, content_id=content_id, message=error.message)
            raise

        extracted = self.extractor.extract(data, media_type=artifact.media_type)
        if extracted.is_success:
            fill = ContentFill(
                text=extracted.text,
                language=DEFAULT_LANGUAGE,
                duration_seconds=None,
                is_placeholder=False,
            )
        else:
            logger.info(
                "No text extracted from artifact %s (%s); using placeholder",
                artifact_id,
                extracted.error,
            )
            fill = ContentFill(
                text=placeholder_text(artifact),
                language=DEFAULT_LANGUAGE,
                duration_seconds=None,
                is_placeholder=True,
            )

        with dependency_guard("Content update"):
            self.repository.fill_content(content_id=content_id, fill=fill)
            filled = self.repository.get_content(content_id=content_id)
        if filled is None:
            raise NotFoundError(f"Content not found: {content_id}")
        return filled

    def _notify(self, event: IngestionEvent) -> None:
        try:
            self.notifier.notify(event)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Workflow notification failed for artifact %s: %s",
                event.artifact_id,
                exc,
            )

    def _mark_failed(self, *, artifact_id: str, content_id: str, message: str) -> None:
        with dependency_guard("Failure bookkeeping"):
            self.repository.fail_content(content_id=content_id, error_message=message)
            self.repository.update_artifact_status(
                artifact_id=artifact_id,
                status=ArtifactStatus.FAILED,
                error_message=message,
            )


def placeholder_text(artifact: ArtifactView) -> str:
    """Clearly labeled stand-in used when an artifact yields no text."""

    return (
        f"{PLACEHOLDER_MARKER} No text could be extracted from {artifact.file_name} "
        f"({artifact.media_type}) stored at {artifact.storage_locator}."
    )
