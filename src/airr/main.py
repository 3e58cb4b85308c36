"""CLI entrypoint for the airr router."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click
import uvicorn

from airr import __version__
from airr.api.app import create_app
from airr.config import Settings
from airr.orchestrator.controllers import (
    DbInitCommand,
    DecisionsListCommand,
    RoutePreviewCommand,
    RouterCliController,
    TaskAuditCommand,
    TaskRunCommand,
)
from airr.orchestrator.errors import RouterError

click.rich_click.USE_MARKDOWN = True
ROUTER_CONTROLLER = RouterCliController()

LOG_LEVELS = ("debug", "info", "warning", "error")


@click.group()
@click.version_option(version=__version__, prog_name="airr")
def airr() -> None:
    """AI inference routing CLI."""


@airr.group()
def db() -> None:
    """Database commands."""


@db.command("init")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def db_init(db_path: Path | None) -> None:
    """Apply schema migrations up to head."""

    _emit_lines(ROUTER_CONTROLLER.init_db(DbInitCommand(db_path=db_path)))


@airr.command("serve")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--host", default=None, help="Bind host. Defaults to AIRR_HOST.")
@click.option("--port", type=click.IntRange(min=1, max=65535), default=None, help="Bind port.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default="info",
    show_default=True,
    help="Root logging level.",
)
def serve(db_path: Path | None, host: str | None, port: int | None, log_level: str) -> None:
    """Run the HTTP API."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env(db_path=db_path)
    try:
        settings.validate()
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_level=log_level,
    )


@airr.group()
def route() -> None:
    """Routing decision commands."""


@route.command("preview")
@click.option("--task-kind", required=True, help="summary, classification, or extraction.")
@click.option("--sla", "sla_tier", required=True, help="low_latency, low_cost, or high_quality.")
@click.option("--budget", type=int, required=True, help="Budget ceiling in cost units.")
def route_preview(task_kind: str, sla_tier: str, budget: int) -> None:
    """Show which backend would be chosen, without persisting anything."""

    _run(
        lambda: ROUTER_CONTROLLER.preview_route(
            RoutePreviewCommand(task_kind=task_kind, sla_tier=sla_tier, budget_ceiling=budget),
        ),
    )


@airr.group()
def task() -> None:
    """Task lifecycle commands."""


@task.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--task-kind", required=True, help="summary, classification, or extraction.")
@click.option("--sla", "sla_tier", required=True, help="low_latency, low_cost, or high_quality.")
@click.option("--budget", type=int, required=True, help="Budget ceiling in cost units.")
@click.option("--input-text", required=True, help="Text the task operates on.")
def task_run(  # noqa: PLR0913
    db_path: Path | None,
    task_kind: str,
    sla_tier: str,
    budget: int,
    input_text: str,
) -> None:
    """Create, route, and execute a task, then print its audit trail."""

    _run(
        lambda: ROUTER_CONTROLLER.run_task(
            TaskRunCommand(
                db_path=db_path,
                task_kind=task_kind,
                sla_tier=sla_tier,
                input_text=input_text,
                budget_ceiling=budget,
            ),
        ),
    )


@task.command("audit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--task-id", required=True, help="Task id.")
def task_audit(db_path: Path | None, task_id: str) -> None:
    """Print a task's routing decision and execution records."""

    _run(
        lambda: ROUTER_CONTROLLER.audit_task(TaskAuditCommand(db_path=db_path, task_id=task_id)),
    )


@airr.group()
def decisions() -> None:
    """Routing decision reports."""


@decisions.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max number of decisions to print, newest first.",
)
def decisions_list(db_path: Path | None, limit: int) -> None:
    """List recent routing decisions joined with their tasks."""

    _run(
        lambda: ROUTER_CONTROLLER.list_decisions(
            DecisionsListCommand(db_path=db_path, limit=limit),
        ),
    )


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except RouterError as error:
        raise click.ClickException(f"{error.kind}: {error.message}") from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    airr()
