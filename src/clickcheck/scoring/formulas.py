from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

# Bump whenever a coefficient below changes: reports from different versions
# are not comparable.
SCORING_VERSION = 1


@dataclass(frozen=True, slots=True)
class ImpactFormula:
    """Linear impact metric.

    ``field_weights`` multiply merged totals, ``metric_weights`` multiply
    previously computed impact metrics (for composite scores).
    """

    name: str
    field_weights: Mapping[str, int] = field(default_factory=dict)
    metric_weights: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("formula name must not be empty")
        if not self.field_weights and not self.metric_weights:
            raise ValueError(f"formula {self.name!r} has no terms")
        object.__setattr__(self, "field_weights", MappingProxyType(dict(self.field_weights)))
        object.__setattr__(self, "metric_weights", MappingProxyType(dict(self.metric_weights)))

    @property
    def is_composite(self) -> bool:
        return bool(self.metric_weights)


IO_IMPACT = ImpactFormula("io_impact", field_weights={"read_rows": 100, "read_bytes": 1})
NETWORK_IMPACT = ImpactFormula(
    "network_impact",
    field_weights={"network_receive_bytes": 10, "network_send_bytes": 10},
)
CPU_IMPACT = ImpactFormula("cpu_impact", field_weights={"cpu_time_us": 10_000})
MEMORY_IMPACT = ImpactFormula("memory_impact", field_weights={"memory_bytes": 10})
TIME_IMPACT = ImpactFormula("time_impact", field_weights={"duration_ms": 1_000_000})
TOTAL_IMPACT = ImpactFormula(
    "total_impact",
    metric_weights={
        "io_impact": 1,
        "network_impact": 1,
        "cpu_impact": 1,
        "memory_impact": 1,
        "time_impact": 1,
    },
)

DEFAULT_FORMULAS: tuple[ImpactFormula, ...] = (
    IO_IMPACT,
    NETWORK_IMPACT,
    CPU_IMPACT,
    MEMORY_IMPACT,
    TIME_IMPACT,
    TOTAL_IMPACT,
)
