from clickcheck.scoring.engine import ScoringEngine
from clickcheck.scoring.formulas import DEFAULT_FORMULAS, SCORING_VERSION, ImpactFormula

__all__ = [
    "DEFAULT_FORMULAS",
    "SCORING_VERSION",
    "ImpactFormula",
    "ScoringEngine",
]
