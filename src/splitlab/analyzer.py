"""The experiment analyzer: the engine's public operations."""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Union

import structlog

from splitlab.config import AnalysisConfig
from splitlab.datasource import ExperimentDataSource
from splitlab.errors import DataSourceError, NotFoundError, SplitlabError
from splitlab.schemas import (
    AggregateMetrics,
    ComparisonResult,
    Experiment,
    ExperimentResults,
    ExperimentTimeSeries,
    Granularity,
    Recommendation,
    SignificanceResult,
    VariantMetrics,
)
from splitlab.stats.comparison import compare_variants
from splitlab.stats.metrics import compute_metrics, conversion_rate
from splitlab.stats.recommendation import recommend
from splitlab.stats.significance import evaluate_significance
from splitlab.stats.timeseries import (
    build_time_series,
    combine_time_series,
    to_granularity,
)

log = structlog.get_logger()


class ExperimentAnalyzer:
    """
    Computes results, significance, comparisons, time series and
    recommendations for experiments read from a data source.

    Nothing is cached between calls; each operation reads a fresh snapshot.
    """

    def __init__(
        self,
        source: ExperimentDataSource,
        config: Optional[AnalysisConfig] = None,
    ):
        self.source = source
        self.config = config or AnalysisConfig()

    @contextmanager
    def _reading(self, operation: str, experiment_id: str):
        """Wrap data-source failures with the operation and experiment id."""
        try:
            yield
        except SplitlabError:
            raise
        except Exception as e:
            log.error(
                "datasource.query.failed",
                operation=operation,
                experiment_id=experiment_id,
                error=str(e),
                exc_info=True,
            )
            raise DataSourceError(operation, experiment_id, str(e)) from e

    def _load_experiment(self, operation: str, experiment_id: str) -> Experiment:
        with self._reading(operation, experiment_id):
            experiment = self.source.get_experiment(experiment_id)
        if experiment is None:
            raise NotFoundError(experiment_id)
        return experiment

    def _load(
        self, operation: str, experiment_id: str
    ) -> tuple[Experiment, list[VariantMetrics]]:
        experiment = self._load_experiment(operation, experiment_id)
        with self._reading(operation, experiment_id):
            metrics = [
                compute_metrics(
                    self.source,
                    experiment_id,
                    variant,
                    experiment.goal_event,
                    self.config,
                )
                for variant in experiment.variants
            ]
        return experiment, metrics

    def get_experiment_results(self, experiment_id: str) -> ExperimentResults:
        """All variants' metrics plus experiment-wide totals."""
        experiment, metrics = self._load("get_experiment_results", experiment_id)
        total_users = sum(m.total_users for m in metrics)
        total_conversions = sum(m.conversions for m in metrics)
        return ExperimentResults(
            experiment_id=experiment.id,
            experiment_name=experiment.name,
            description=experiment.description,
            status=experiment.status,
            goal_event=experiment.goal_event,
            start_date=experiment.start_date,
            end_date=experiment.end_date,
            created_at=experiment.created_at,
            variants=metrics,
            aggregate=AggregateMetrics(
                total_users=total_users,
                total_conversions=total_conversions,
                overall_conversion_rate=round(
                    conversion_rate(total_conversions, total_users), 2
                ),
            ),
        )

    def calculate_significance(self, experiment_id: str) -> SignificanceResult:
        experiment, metrics = self._load("calculate_significance", experiment_id)
        result = evaluate_significance(metrics, self.config).model_copy(
            update={"experiment_id": experiment.id, "experiment_name": experiment.name}
        )
        log.info(
            "experiment.significance.computed",
            experiment_id=experiment_id,
            is_significant=result.is_significant,
            p_value=result.p_value,
        )
        return result

    def get_variant_comparison(self, experiment_id: str) -> ComparisonResult:
        experiment, metrics = self._load("get_variant_comparison", experiment_id)
        return compare_variants(metrics).model_copy(
            update={"experiment_id": experiment.id, "experiment_name": experiment.name}
        )

    def get_experiment_time_series(
        self,
        experiment_id: str,
        granularity: Union[str, Granularity] = Granularity.DAY,
    ) -> ExperimentTimeSeries:
        """Per-variant time series and a combined timeline at `granularity`."""
        experiment = self._load_experiment("get_experiment_time_series", experiment_id)
        granularity = to_granularity(granularity)
        with self._reading("get_experiment_time_series", experiment_id):
            series = [
                build_time_series(
                    self.source,
                    experiment_id,
                    variant,
                    experiment.goal_event,
                    granularity,
                )
                for variant in experiment.variants
            ]
        return ExperimentTimeSeries(
            experiment_id=experiment.id,
            experiment_name=experiment.name,
            granularity=granularity,
            variants=series,
            timeline=combine_time_series(series),
        )

    def get_recommendation(
        self, experiment_id: str, as_of: Optional[datetime] = None
    ) -> Recommendation:
        """
        Decide whether to ship a winner, keep running, or call it a draw.

        Significance and comparison are computed from the same metrics
        snapshot. `as_of` pins "now" when counting the days the experiment
        has been running.
        """
        experiment, metrics = self._load("get_recommendation", experiment_id)
        significance = evaluate_significance(metrics, self.config)
        comparison = compare_variants(metrics)
        return recommend(
            experiment, metrics, significance, comparison, self.config, as_of
        )
