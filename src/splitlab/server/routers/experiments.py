"""Router exposing the experiment statistics views."""

from datetime import datetime
from typing import Optional

import ibis
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from splitlab.analyzer import ExperimentAnalyzer
from splitlab.config import AnalysisConfig
from splitlab.datasource import IbisExperimentDataSource
from splitlab.db import get_db_connection_from_env
from splitlab.errors import (
    DataSourceError,
    InvalidInputError,
    NotFoundError,
    SplitlabError,
)
from splitlab.schemas import (
    ComparisonResult,
    ExperimentResults,
    ExperimentTimeSeries,
    Granularity,
    Recommendation,
    SignificanceResult,
)

log = structlog.get_logger()
router = APIRouter(prefix="/experiments", tags=["experiments"])


def get_analyzer(
    conn: ibis.BaseBackend = Depends(get_db_connection_from_env),
) -> ExperimentAnalyzer:
    """FastAPI dependency that builds an analyzer over the configured database."""
    return ExperimentAnalyzer(IbisExperimentDataSource(conn), AnalysisConfig.from_env())


def _to_http_error(e: SplitlabError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidInputError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, DataSourceError):
        log.warning(
            "experiment.request.datasource_error",
            operation=e.operation,
            experiment_id=e.experiment_id,
        )
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("/{experiment_id}/results", response_model=ExperimentResults)
def get_results(
    experiment_id: str, analyzer: ExperimentAnalyzer = Depends(get_analyzer)
):
    """Per-variant conversion metrics and experiment totals."""
    try:
        return analyzer.get_experiment_results(experiment_id)
    except SplitlabError as e:
        raise _to_http_error(e) from e


@router.get("/{experiment_id}/significance", response_model=SignificanceResult)
def get_significance(
    experiment_id: str, analyzer: ExperimentAnalyzer = Depends(get_analyzer)
):
    """Chi-square test of conversion against variant."""
    try:
        return analyzer.calculate_significance(experiment_id)
    except SplitlabError as e:
        raise _to_http_error(e) from e


@router.get("/{experiment_id}/comparison", response_model=ComparisonResult)
def get_comparison(
    experiment_id: str, analyzer: ExperimentAnalyzer = Depends(get_analyzer)
):
    try:
        return analyzer.get_variant_comparison(experiment_id)
    except SplitlabError as e:
        raise _to_http_error(e) from e


@router.get("/{experiment_id}/timeseries", response_model=ExperimentTimeSeries)
def get_time_series(
    experiment_id: str,
    granularity: Granularity = Query(default=Granularity.DAY),
    analyzer: ExperimentAnalyzer = Depends(get_analyzer),
):
    """Per-period and cumulative conversion rates for every variant."""
    try:
        return analyzer.get_experiment_time_series(experiment_id, granularity)
    except SplitlabError as e:
        raise _to_http_error(e) from e


@router.get("/{experiment_id}/recommendation", response_model=Recommendation)
def get_recommendation(
    experiment_id: str,
    as_of: Optional[datetime] = Query(default=None),
    analyzer: ExperimentAnalyzer = Depends(get_analyzer),
):
    """Recommended next action for the experiment."""
    try:
        return analyzer.get_recommendation(experiment_id, as_of=as_of)
    except SplitlabError as e:
        raise _to_http_error(e) from e
