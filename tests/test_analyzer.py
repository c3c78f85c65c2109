"""Tests for the analyzer's public operations and error handling."""

from datetime import datetime

import pytest

from splitlab.analyzer import ExperimentAnalyzer
from splitlab.config import AnalysisConfig
from splitlab.errors import DataSourceError, InvalidInputError, NotFoundError
from splitlab.schemas import Granularity


@pytest.fixture
def analyzer(fake_source):
    return ExperimentAnalyzer(fake_source)


OPERATIONS = [
    lambda a, eid: a.get_experiment_results(eid),
    lambda a, eid: a.calculate_significance(eid),
    lambda a, eid: a.get_variant_comparison(eid),
    lambda a, eid: a.get_experiment_time_series(eid, "day"),
    lambda a, eid: a.get_recommendation(eid),
]


@pytest.mark.parametrize("operation", OPERATIONS)
def test_unknown_experiment_raises_not_found(analyzer, operation):
    with pytest.raises(NotFoundError, match="exp_missing") as excinfo:
        operation(analyzer, "exp_missing")
    assert excinfo.value.experiment_id == "exp_missing"


def test_results_aggregate_all_variants(fake_source, analyzer):
    fake_source.add_experiment(
        "exp_1",
        {"control": (1000, 150), "variant_a": (1000, 220), "variant_b": (1000, 170)},
    )

    results = analyzer.get_experiment_results("exp_1")

    assert [v.variant for v in results.variants] == [
        "control",
        "variant_a",
        "variant_b",
    ]
    assert results.aggregate.total_users == 3000
    assert results.aggregate.total_conversions == 540
    assert results.aggregate.overall_conversion_rate == 18.0
    assert results.experiment_name == "Checkout button test"


def test_significance_for_three_variants(fake_source, analyzer):
    fake_source.add_experiment(
        "exp_1",
        {"control": (1000, 150), "variant_a": (1000, 220), "variant_b": (1000, 170)},
    )

    result = analyzer.calculate_significance("exp_1")

    assert result.experiment_id == "exp_1"
    assert result.degrees_of_freedom == 2
    assert result.chi_square >= 0
    assert result.is_significant == (result.p_value < 0.05)
    assert result.best_variant.name == "variant_a"


def test_single_variant_comparison_is_invalid(fake_source, analyzer):
    fake_source.add_experiment("exp_solo", {"control": (1000, 100)})

    with pytest.raises(InvalidInputError):
        analyzer.get_variant_comparison("exp_solo")
    with pytest.raises(InvalidInputError):
        analyzer.calculate_significance("exp_solo")
    # Results do not need a second variant.
    assert analyzer.get_experiment_results("exp_solo").aggregate.total_users == 1000


def test_comparison_carries_experiment_identity(fake_source, analyzer):
    fake_source.add_experiment(
        "exp_1", {"control": (1000, 100), "variant_a": (1000, 150)}
    )

    comparison = analyzer.get_variant_comparison("exp_1")

    assert comparison.experiment_id == "exp_1"
    assert comparison.best_variant.name == "variant_a"


def test_time_series_for_every_variant(fake_source, analyzer):
    fake_source.add_experiment(
        "exp_1",
        {"control": (10, 2), "variant_a": (5, 1)},
        periods={
            "control": ([("2024-01-01", 10)], [("2024-01-01", 2)]),
            "variant_a": ([("2024-01-02", 5)], [("2024-01-03", 1)]),
        },
    )

    series = analyzer.get_experiment_time_series("exp_1", Granularity.DAY)

    assert series.granularity is Granularity.DAY
    assert [s.variant for s in series.variants] == ["control", "variant_a"]
    assert [entry.period for entry in series.timeline] == [
        "2024-01-01",
        "2024-01-02",
        "2024-01-03",
    ]


def test_invalid_granularity(fake_source, analyzer):
    fake_source.add_experiment("exp_1", {"control": (10, 2), "variant_a": (5, 1)})

    with pytest.raises(InvalidInputError):
        analyzer.get_experiment_time_series("exp_1", "quarter")


def test_missing_experiment_wins_over_bad_granularity(analyzer):
    with pytest.raises(NotFoundError):
        analyzer.get_experiment_time_series("exp_missing", "quarter")


def test_all_small_variants_recommend_continue(fake_source, analyzer):
    fake_source.add_experiment(
        "exp_new", {"control": (40, 4), "variant_a": (35, 6), "variant_b": (99, 20)}
    )

    recommendation = analyzer.get_recommendation(
        "exp_new", as_of=datetime(2024, 1, 3)
    )

    assert recommendation.action == "continue"
    assert recommendation.confidence == "low"


def test_config_is_bound_at_construction(fake_source):
    fake_source.add_experiment("exp_1", {"control": (40, 5), "variant_a": (40, 20)})
    analyzer = ExperimentAnalyzer(
        fake_source, AnalysisConfig(min_sample_size=30, min_conversions=5)
    )

    assert analyzer.calculate_significance("exp_1").p_value is not None


class BrokenSource:
    def get_experiment(self, experiment_id):
        raise ConnectionError("database is locked")


def test_data_source_failures_are_wrapped():
    analyzer = ExperimentAnalyzer(BrokenSource())

    with pytest.raises(DataSourceError) as excinfo:
        analyzer.calculate_significance("exp_1")

    error = excinfo.value
    assert error.operation == "calculate_significance"
    assert error.experiment_id == "exp_1"
    assert isinstance(error.__cause__, ConnectionError)
    assert "database is locked" in str(error)


def test_failures_while_computing_metrics_are_wrapped(fake_source, monkeypatch):
    fake_source.add_experiment("exp_1", {"control": (10, 2), "variant_a": (5, 1)})

    def explode(*args):
        raise OSError("disk read failed")

    monkeypatch.setattr(fake_source, "count_assignments", explode)
    analyzer = ExperimentAnalyzer(fake_source)

    with pytest.raises(DataSourceError, match="get_experiment_results"):
        analyzer.get_experiment_results("exp_1")
