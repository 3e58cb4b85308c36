"""Error taxonomy surfaced by the routing pipeline."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class RouterError(Exception):
    """Base class for pipeline errors carrying a stable ``kind``."""

    kind = "router_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        """Serialize as the structured ``{kind, message}`` error body."""

        return {"kind": self.kind, "message": self.message}


class InvalidInputError(RouterError):
    """Bad task kind, SLA tier, budget ceiling, or missing text."""

    kind = "invalid_input"


class NotFoundError(RouterError):
    """Referenced artifact, content, or task does not exist."""

    kind = "not_found"


class AlreadyRoutedError(RouterError):
    """Routing was requested for a task that already has a decision."""

    kind = "already_routed"


class BackendExecutionFailureError(RouterError):
    """Backend attempt failed; recorded and possibly retryable."""

    kind = "backend_execution_failure"

    def __init__(self, message: str, *, retryable: bool, task_id: str | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.task_id = task_id

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        if self.task_id is not None:
            payload["task_id"] = self.task_id
        return payload


class DependencyFailureError(RouterError):
    """Persistence or storage collaborator failed."""

    kind = "dependency_failure"


@contextmanager
def dependency_guard(operation: str) -> Iterator[None]:
    """Re-raise database and filesystem errors as DependencyFailureError."""

    try:
        yield
    except (SQLAlchemyError, OSError) as error:
        raise DependencyFailureError(f"{operation} failed: {error}") from error
