"""
Pytest fixtures for the splitlab tests.
"""

import json
from datetime import datetime
from typing import Optional

import ibis
import pandas as pd
import pytest

from splitlab.config import AnalysisConfig
from splitlab.db import (
    ASSIGNMENTS_TABLE,
    EVENTS_TABLE,
    EXPERIMENTS_TABLE,
    TABLE_SCHEMAS,
    initialize_schema,
)
from splitlab.schemas import Assignment, ConversionEvent, Experiment

START_DATE = datetime(2024, 1, 1)


class FakeDataSource:
    """In-memory ExperimentDataSource with precomputed per-variant figures."""

    def __init__(self):
        self.experiments: dict[str, Experiment] = {}
        self.counts: dict[tuple[str, str], tuple[int, int]] = {}
        self.avg_hours: dict[tuple[str, str], float] = {}
        self.periods: dict[tuple[str, str], tuple[list, list]] = {}

    def add_experiment(
        self,
        experiment_id: str,
        counts: dict[str, tuple[int, int]],
        *,
        name: str = "Checkout button test",
        goal_event: str = "purchase_completed",
        start_date: datetime = START_DATE,
        end_date: Optional[datetime] = None,
        avg_hours: Optional[dict[str, float]] = None,
        periods: Optional[dict[str, tuple[list, list]]] = None,
    ) -> Experiment:
        experiment = Experiment(
            id=experiment_id,
            name=name,
            variants=list(counts),
            goal_event=goal_event,
            start_date=start_date,
            end_date=end_date,
        )
        self.experiments[experiment_id] = experiment
        for variant, figures in counts.items():
            self.counts[(experiment_id, variant)] = figures
        for variant, hours in (avg_hours or {}).items():
            self.avg_hours[(experiment_id, variant)] = hours
        for variant, series in (periods or {}).items():
            self.periods[(experiment_id, variant)] = series
        return experiment

    def get_experiment(self, experiment_id):
        return self.experiments.get(experiment_id)

    def count_assignments(self, experiment_id, variant):
        return self.counts.get((experiment_id, variant), (0, 0))[0]

    def count_distinct_converted_users(self, experiment_id, variant, goal_event):
        return self.counts.get((experiment_id, variant), (0, 0))[1]

    def average_hours_to_conversion(self, experiment_id, variant, goal_event):
        return self.avg_hours.get((experiment_id, variant))

    def assignments_by_period(self, experiment_id, variant, granularity):
        return self.periods.get((experiment_id, variant), ([], []))[0]

    def conversions_by_period(self, experiment_id, variant, goal_event, granularity):
        return self.periods.get((experiment_id, variant), ([], []))[1]


@pytest.fixture
def fake_source():
    return FakeDataSource()


@pytest.fixture
def config():
    return AnalysisConfig()


class Seeder:
    """Writes rows into the DuckDB tables created by initialize_schema."""

    def __init__(self, con):
        self.con = con

    def insert(self, table_name: str, rows: list[dict]) -> None:
        schema = TABLE_SCHEMAS[table_name]
        frame = pd.DataFrame(rows, columns=list(schema.names))
        for column, dtype in schema.items():
            if dtype.is_timestamp():
                frame[column] = pd.to_datetime(frame[column])
        self.con.insert(table_name, frame)

    def experiment(
        self,
        experiment_id: str,
        variants,
        goal_event: str = "purchase",
        start_date: datetime = START_DATE,
        end_date: Optional[datetime] = None,
        raw_variants: Optional[str] = None,
    ) -> None:
        self.insert(
            EXPERIMENTS_TABLE,
            [
                {
                    "id": experiment_id,
                    "name": f"Experiment {experiment_id}",
                    "description": "Seeded for tests",
                    "status": "running",
                    "variants": raw_variants or json.dumps(list(variants)),
                    "goal_event": goal_event,
                    "start_date": start_date,
                    "end_date": end_date,
                    "created_at": start_date,
                }
            ],
        )

    def assignments(self, experiment_id: str, rows: list[tuple]) -> None:
        records = [
            Assignment(
                experiment_id=experiment_id,
                user_id=user_id,
                variant=variant,
                assigned_at=assigned_at,
            )
            for user_id, variant, assigned_at in rows
        ]
        self.insert(ASSIGNMENTS_TABLE, [record.model_dump() for record in records])

    def events(self, rows: list[tuple]) -> None:
        records = [
            ConversionEvent(user_id=user_id, event_name=event_name, timestamp=timestamp)
            for user_id, event_name, timestamp in rows
        ]
        self.insert(
            EVENTS_TABLE,
            [
                {
                    **record.model_dump(),
                    # Stored as a JSON object.
                    "properties": json.dumps(record.properties),
                    "session_id": f"session_{record.user_id}",
                }
                for record in records
            ],
        )


@pytest.fixture
def duckdb_con():
    con = ibis.duckdb.connect()
    initialize_schema(con)
    return con


@pytest.fixture
def seeder(duckdb_con):
    return Seeder(duckdb_con)
