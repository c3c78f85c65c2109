"""Read access to experiments, assignments and conversion events."""

from typing import Optional, Protocol

import ibis
import pandas as pd

from splitlab.db import ASSIGNMENTS_TABLE, EVENTS_TABLE, EXPERIMENTS_TABLE
from splitlab.schemas import Experiment, Granularity
from splitlab.stats.timeseries import PeriodCounts, bucket_by_period


class ExperimentDataSource(Protocol):
    """The reads the statistics engine needs from the event store."""

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]: ...

    def count_assignments(self, experiment_id: str, variant: str) -> int: ...

    def count_distinct_converted_users(
        self, experiment_id: str, variant: str, goal_event: str
    ) -> int: ...

    def average_hours_to_conversion(
        self, experiment_id: str, variant: str, goal_event: str
    ) -> Optional[float]: ...

    def assignments_by_period(
        self, experiment_id: str, variant: str, granularity: Granularity
    ) -> PeriodCounts: ...

    def conversions_by_period(
        self,
        experiment_id: str,
        variant: str,
        goal_event: str,
        granularity: Granularity,
    ) -> PeriodCounts: ...


def _clean(value):
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


class IbisExperimentDataSource:
    """ExperimentDataSource backed by the DuckDB tables from `splitlab.db`."""

    def __init__(self, con: ibis.BaseBackend):
        self.con = con

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        table = self.con.table(EXPERIMENTS_TABLE)
        rows = table.filter(table["id"] == experiment_id).limit(1).execute()
        if rows.empty:
            return None
        # Missing columns fall back to the model defaults.
        record = {
            key: _clean(value)
            for key, value in rows.iloc[0].to_dict().items()
            if not pd.isna(value)
        }
        return Experiment.model_validate(record)

    def _assignments(self, experiment_id: str, variant: str):
        table = self.con.table(ASSIGNMENTS_TABLE)
        return table.filter(
            (table.experiment_id == experiment_id) & (table.variant == variant)
        )

    def _converted_users(
        self, experiment_id: str, variant: str, goal_event: str
    ) -> pd.DataFrame:
        """
        One row per converted user with their assignment time and the time of
        their first goal event at or after it.
        """
        assignments = self._assignments(experiment_id, variant).select(
            "user_id", "assigned_at"
        )
        events = self.con.table(EVENTS_TABLE)
        goal = events.filter(events.event_name == goal_event)
        goal = goal.select("user_id", converted_at=goal["timestamp"])

        joined = assignments.join(goal, "user_id")
        joined = joined.filter(joined.converted_at >= joined.assigned_at)
        first = joined.group_by("user_id").aggregate(
            assigned_at=joined.assigned_at.min(),
            converted_at=joined.converted_at.min(),
        )
        return first.execute()

    def count_assignments(self, experiment_id: str, variant: str) -> int:
        return int(self._assignments(experiment_id, variant).count().execute())

    def count_distinct_converted_users(
        self, experiment_id: str, variant: str, goal_event: str
    ) -> int:
        return len(self._converted_users(experiment_id, variant, goal_event))

    def average_hours_to_conversion(
        self, experiment_id: str, variant: str, goal_event: str
    ) -> Optional[float]:
        converted = self._converted_users(experiment_id, variant, goal_event)
        if converted.empty:
            return None
        elapsed = pd.to_datetime(converted["converted_at"]) - pd.to_datetime(
            converted["assigned_at"]
        )
        return float((elapsed.dt.total_seconds() / 3600).mean())

    def assignments_by_period(
        self, experiment_id: str, variant: str, granularity: Granularity
    ) -> PeriodCounts:
        assigned_at = self._assignments(experiment_id, variant).assigned_at.execute()
        return bucket_by_period(assigned_at, granularity)

    def conversions_by_period(
        self,
        experiment_id: str,
        variant: str,
        goal_event: str,
        granularity: Granularity,
    ) -> PeriodCounts:
        converted = self._converted_users(experiment_id, variant, goal_event)
        return bucket_by_period(converted["converted_at"], granularity)
