"""Routing decision engine: SLA tier and budget ceiling to execution backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from airr.orchestrator.catalog import BackendCatalog, BackendProfile
from airr.orchestrator.errors import InvalidInputError
from airr.orchestrator.models import SlaTier, TaskKind

_EnumT = TypeVar("_EnumT", bound=Enum)


@dataclass(frozen=True, slots=True)
class RoutingEstimate:
    """Chosen backend with its estimates and audit justification."""

    backend: str
    estimated_cost: int
    estimated_latency_ms: int
    justification: str
    over_budget: bool


class RoutingEngine:
    """Pure, deterministic backend selection over an injected catalog."""

    def __init__(self, catalog: BackendCatalog) -> None:
        self.catalog = catalog

    def decide(
        self,
        task_kind: TaskKind | str,
        sla_tier: SlaTier | str,
        budget_ceiling: int,
    ) -> RoutingEstimate:
        """Pick the most capable affordable backend at or below the tier preference.

        Task kind is echoed into the justification only and does not change the
        preference. When even the cheapest backend exceeds the ceiling it is still chosen and
        the estimate is flagged ``over_budget``; the engine never refuses a task
        for cost reasons.
        """

        kind = task_kind.value if isinstance(task_kind, TaskKind) else str(task_kind)
        tier = parse_sla_tier(sla_tier)
        ceiling = validate_budget_ceiling(budget_ceiling, allow_negative=True)

        chain = self.catalog.fallback_chain(tier)
        preferred = chain[0]
        chosen: BackendProfile | None = next(
            (profile for profile in chain if profile.cost_per_task <= ceiling),
            None,
        )
        over_budget = chosen is None
        if chosen is None:
            chosen = self.catalog.cheapest

        return RoutingEstimate(
            backend=chosen.name,
            estimated_cost=chosen.cost_per_task,
            estimated_latency_ms=chosen.expected_latency_ms,
            justification=_justification(
                chosen=chosen,
                preferred=preferred,
                task_kind=kind,
                sla_tier=tier,
                budget_ceiling=ceiling,
                over_budget=over_budget,
            ),
            over_budget=over_budget,
        )


def parse_task_kind(value: TaskKind | str) -> TaskKind:
    """Validate task kind, accepting enum members or their string values."""

    return _parse_enum(TaskKind, value, label="task kind")


def parse_sla_tier(value: SlaTier | str) -> SlaTier:
    """Validate SLA tier, accepting enum members or their string values."""

    return _parse_enum(SlaTier, value, label="SLA tier")


def validate_budget_ceiling(value: object, *, allow_negative: bool = False) -> int:
    """Ensure the ceiling is an integer (bool excluded) and, by default, non-negative."""

    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"Budget ceiling must be an integer, got {value!r}.")
    if not allow_negative and value < 0:
        raise InvalidInputError(f"Budget ceiling must be >= 0, got {value}.")
    return value


def _parse_enum(enum_cls: type[_EnumT], value: object, *, label: str) -> _EnumT:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    supported = ", ".join(member.value for member in enum_cls)
    raise InvalidInputError(f"Unsupported {label}: {value!r}. Use one of: {supported}.")


def _justification(  # noqa: PLR0913
    *,
    chosen: BackendProfile,
    preferred: BackendProfile,
    task_kind: str,
    sla_tier: SlaTier,
    budget_ceiling: int,
    over_budget: bool,
) -> str:
    reason = (
        f"Selected {chosen.name} based on sla={sla_tier.value}, "
        f"task_kind={task_kind}, budget_ceiling={budget_ceiling}"
    )
    if chosen.name != preferred.name:
        reason += (
            f"; preferred {preferred.name} costs {preferred.cost_per_task} "
            "which exceeds the budget ceiling"
        )
    if over_budget:
        reason += (
            f"; no backend fits the ceiling, {chosen.name} "
            f"(cost {chosen.cost_per_task}) chosen as the cheapest option"
        )
    return reason
