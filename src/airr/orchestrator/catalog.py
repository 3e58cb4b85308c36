"""Execution backend catalog with per-task cost and latency profiles."""

from __future__ import annotations

from dataclasses import dataclass

from airr.orchestrator.models import SlaTier


@dataclass(frozen=True, slots=True)
class BackendProfile:
    """Fixed cost (integer units) and expected latency of one backend."""

    name: str
    cost_per_task: int
    expected_latency_ms: int


@dataclass(frozen=True, slots=True)
class BackendCatalog:
    """Immutable backend registry ordered by descending capability and cost.

    The order doubles as the budget fallback chain: the first profile is the
    high-quality backend, the second the balanced one, the last the cheapest.
    """

    profiles: tuple[BackendProfile, ...]

    def __post_init__(self) -> None:
        if not self.profiles:
            raise ValueError("Backend catalog must contain at least one backend.")
        names = [profile.name for profile in self.profiles]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate backend names in catalog: {names!r}")

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(profile.name for profile in self.profiles)

    @property
    def cheapest(self) -> BackendProfile:
        return self.profiles[-1]

    def get(self, name: str) -> BackendProfile:
        """Return profile by backend name."""

        for profile in self.profiles:
            if profile.name == name:
                return profile
        raise KeyError(f"Unknown backend: {name!r}")

    def preferred_index(self, sla_tier: SlaTier) -> int:
        """Position in the fallback chain where the given tier starts."""

        if sla_tier == SlaTier.HIGH_QUALITY:
            return 0
        if sla_tier == SlaTier.LOW_LATENCY:
            return min(1, len(self.profiles) - 1)
        return len(self.profiles) - 1

    def fallback_chain(self, sla_tier: SlaTier) -> tuple[BackendProfile, ...]:
        """Profiles at or below the tier's preferred backend, most capable first."""

        return self.profiles[self.preferred_index(sla_tier) :]


DEFAULT_CATALOG = BackendCatalog(
    profiles=(
        BackendProfile(name="gpt_4_1", cost_per_task=40, expected_latency_ms=1800),
        BackendProfile(name="gpt_4_1_mini", cost_per_task=10, expected_latency_ms=600),
        BackendProfile(name="rules_engine", cost_per_task=1, expected_latency_ms=100),
    ),
)


def parse_catalog(raw: str) -> BackendCatalog:
    """Parse `AIRR_BACKEND_CATALOG` mapping.

    Format:
    - `name:cost_per_task:expected_latency_ms`
    - multiple entries separated by `,`, most capable backend first
    """

    profiles: list[BackendProfile] = []
    for entry in raw.split(","):
        value = entry.strip()
        if not value:
            continue
        parts = [part.strip() for part in value.split(":")]
        if len(parts) != 3 or not parts[0]:
            raise ValueError(
                "Invalid AIRR_BACKEND_CATALOG entry: "
                f"{value!r}. Expected format '<name>:<cost>:<latency_ms>'.",
            )
        name, cost_raw, latency_raw = parts
        try:
            cost = int(cost_raw)
            latency_ms = int(latency_raw)
        except ValueError as error:
            raise ValueError(
                f"Invalid AIRR_BACKEND_CATALOG numbers for {name!r}: {value!r}",
            ) from error
        if cost < 0 or latency_ms < 0:
            raise ValueError(
                f"Backend cost and latency must be >= 0: {name!r} -> {value!r}",
            )
        profiles.append(
            BackendProfile(name=name, cost_per_task=cost, expected_latency_ms=latency_ms),
        )
    return BackendCatalog(profiles=tuple(profiles))
