"""Outbound workflow notifications emitted after ingestion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from airr.config import IngestionSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestionEvent:
    """Identifiers an external trigger needs to resume the pipeline."""

    artifact_id: str
    content_id: str

    def to_payload(self) -> dict[str, str]:
        return {"artifactId": self.artifact_id, "contentId": self.content_id}


class NotificationError(RuntimeError):
    """Workflow notification could not be delivered."""


class WorkflowNotifier(Protocol):
    """Fire-and-forget outbound event interface."""

    def notify(self, event: IngestionEvent) -> None:
        """Deliver one event; raise NotificationError on failure."""

    def close(self) -> None:
        """Release any connection the notifier holds."""


class NullNotifier:
    """Notifier used when no workflow endpoint is configured."""

    def notify(self, event: IngestionEvent) -> None:
        logger.debug(
            "No workflow webhook configured; skipping notify for artifact %s",
            event.artifact_id,
        )

    def close(self) -> None:
        pass


class WebhookNotifier:
    """POST ingestion events as JSON to a workflow webhook."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def notify(self, event: IngestionEvent) -> None:
        try:
            response = self._client.post(self.url, json=event.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Webhook delivery to {self.url} failed: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> WebhookNotifier:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def notifier_from_settings(settings: IngestionSettings) -> WorkflowNotifier:
    """Webhook notifier when a URL is configured, otherwise a no-op."""

    if settings.webhook_url:
        return WebhookNotifier(
            settings.webhook_url,
            timeout_seconds=settings.webhook_timeout_seconds,
        )
    return NullNotifier()
