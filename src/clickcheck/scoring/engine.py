from collections.abc import Iterable

from clickcheck.domain import SUMMED_FIELDS, ImpactScore, MergedTotals
from clickcheck.scoring.formulas import DEFAULT_FORMULAS, SCORING_VERSION, ImpactFormula


class ScoringEngine:
    """Registry of impact formulas, evaluated in registration order."""

    def __init__(
        self,
        formulas: Iterable[ImpactFormula] = DEFAULT_FORMULAS,
        version: int = SCORING_VERSION,
    ) -> None:
        self.version = version
        self._formulas: list[ImpactFormula] = []
        for formula in formulas:
            self.register(formula)

    def register(self, formula: ImpactFormula) -> None:
        known = set(self.metric_names)
        if formula.name in known:
            raise ValueError(f"metric {formula.name!r} is already registered")

        unknown_fields = set(formula.field_weights) - set(SUMMED_FIELDS)
        if unknown_fields:
            raise ValueError(
                f"formula {formula.name!r} references unknown fields: {sorted(unknown_fields)}"
            )

        unknown_metrics = set(formula.metric_weights) - known
        if unknown_metrics:
            raise ValueError(
                f"formula {formula.name!r} references unregistered metrics: {sorted(unknown_metrics)}"
            )

        self._formulas.append(formula)

    @property
    def formulas(self) -> tuple[ImpactFormula, ...]:
        return tuple(self._formulas)

    @property
    def metric_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self._formulas)

    def score(self, totals: MergedTotals) -> ImpactScore:
        values: dict[str, int] = {}
        for formula in self._formulas:
            value = sum(getattr(totals, name) * weight for name, weight in formula.field_weights.items())
            value += sum(values[name] * weight for name, weight in formula.metric_weights.items())
            values[formula.name] = value
        return ImpactScore(values)
