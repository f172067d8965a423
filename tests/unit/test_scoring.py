import pytest

from clickcheck.domain import MergedTotals
from clickcheck.scoring import DEFAULT_FORMULAS, SCORING_VERSION, ImpactFormula, ScoringEngine


@pytest.fixture
def engine() -> ScoringEngine:
    return ScoringEngine()


def test_default_metric_names(engine: ScoringEngine) -> None:
    assert engine.metric_names == (
        "io_impact",
        "network_impact",
        "cpu_impact",
        "memory_impact",
        "time_impact",
        "total_impact",
    )
    assert engine.version == SCORING_VERSION
    assert engine.formulas == DEFAULT_FORMULAS


def test_zero_totals_score_zero(engine: ScoringEngine) -> None:
    scores = engine.score(MergedTotals())
    assert all(value == 0 for value in scores.values())


def test_individual_coefficients(engine: ScoringEngine) -> None:
    totals = MergedTotals(
        read_rows=2,
        read_bytes=50,
        network_receive_bytes=3,
        network_send_bytes=4,
        cpu_time_us=5,
        memory_bytes=6,
        duration_ms=7,
    )
    scores = engine.score(totals)

    assert scores["io_impact"] == 2 * 100 + 50
    assert scores["network_impact"] == (3 + 4) * 10
    assert scores["cpu_impact"] == 5 * 10_000
    assert scores["memory_impact"] == 6 * 10
    assert scores["time_impact"] == 7 * 1_000_000
    assert scores["total_impact"] == 250 + 70 + 50_000 + 60 + 7_000_000


def test_scores_are_exact_integers(engine: ScoringEngine) -> None:
    totals = MergedTotals(read_bytes=2**62, read_rows=2**60)
    scores = engine.score(totals)
    assert scores["io_impact"] == 2**60 * 100 + 2**62
    assert isinstance(scores["total_impact"], int)


def test_register_custom_formula() -> None:
    engine = ScoringEngine()
    engine.register(ImpactFormula("write_impact", field_weights={"written_bytes": 2}))

    scores = engine.score(MergedTotals(written_bytes=21))
    assert scores["write_impact"] == 42
    assert "write_impact" in engine.metric_names


def test_register_duplicate_name_fails() -> None:
    engine = ScoringEngine()
    with pytest.raises(ValueError, match="already registered"):
        engine.register(ImpactFormula("io_impact", field_weights={"read_rows": 1}))


def test_register_unknown_field_fails() -> None:
    engine = ScoringEngine()
    with pytest.raises(ValueError, match="unknown fields"):
        engine.register(ImpactFormula("bogus", field_weights={"rows_scanned": 1}))


def test_composite_requires_registered_metrics() -> None:
    engine = ScoringEngine(formulas=())
    with pytest.raises(ValueError, match="unregistered metrics"):
        engine.register(ImpactFormula("total", metric_weights={"io_impact": 1}))


def test_formula_requires_terms() -> None:
    with pytest.raises(ValueError, match="no terms"):
        ImpactFormula("empty")


def test_formula_weights_are_read_only() -> None:
    formula = ImpactFormula("x", field_weights={"read_rows": 1})
    with pytest.raises(TypeError):
        formula.field_weights["read_rows"] = 2  # type: ignore[index]
    assert not formula.is_composite
