"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from splitlab.analyzer import ExperimentAnalyzer
from splitlab.server import main
from splitlab.server.main import app
from splitlab.server.routers.experiments import get_analyzer


class BrokenSource:
    def get_experiment(self, experiment_id):
        raise RuntimeError("connection reset")


@pytest.fixture
def client(fake_source):
    fake_source.add_experiment(
        "exp_1", {"control": (1000, 100), "variant_a": (1000, 150)}
    )
    fake_source.add_experiment("exp_solo", {"control": (1000, 100)})
    app.dependency_overrides[get_analyzer] = lambda: ExperimentAnalyzer(fake_source)
    # Not used as a context manager, so the lifespan (and its database) never runs.
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_results(client):
    response = client.get("/experiments/exp_1/results")

    assert response.status_code == 200
    body = response.json()
    assert body["experiment_id"] == "exp_1"
    assert [v["variant"] for v in body["variants"]] == ["control", "variant_a"]
    assert body["aggregate"]["total_users"] == 2000


def test_significance(client):
    response = client.get("/experiments/exp_1/significance")

    assert response.status_code == 200
    body = response.json()
    assert body["is_significant"] is True
    assert body["degrees_of_freedom"] == 1
    assert body["best_variant"]["name"] == "variant_a"


def test_comparison(client):
    response = client.get("/experiments/exp_1/comparison")

    assert response.status_code == 200
    assert response.json()["comparisons"][0]["relative_lift"] == 50.0


def test_timeseries_default_granularity(client):
    response = client.get("/experiments/exp_1/timeseries")

    assert response.status_code == 200
    assert response.json()["granularity"] == "day"


def test_timeseries_rejects_unknown_granularity(client):
    response = client.get(
        "/experiments/exp_1/timeseries", params={"granularity": "quarter"}
    )
    assert response.status_code == 422


def test_recommendation_as_of(client):
    response = client.get(
        "/experiments/exp_1/recommendation", params={"as_of": "2024-01-05T00:00:00"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["action"] == "implement_winner"
    assert body["days_running"] == 4


def test_unknown_experiment_is_404(client):
    response = client.get("/experiments/exp_missing/results")

    assert response.status_code == 404
    assert "exp_missing" in response.json()["detail"]


def test_single_variant_comparison_is_400(client):
    response = client.get("/experiments/exp_solo/comparison")
    assert response.status_code == 400


def test_data_source_failure_is_502(client):
    app.dependency_overrides[get_analyzer] = lambda: ExperimentAnalyzer(
        BrokenSource()
    )

    response = client.get("/experiments/exp_1/significance")

    assert response.status_code == 502
    assert "calculate_significance" in response.json()["detail"]


class SpyConnection:
    def __init__(self):
        self.disconnected = False

    def disconnect(self):
        self.disconnected = True


@pytest.fixture
def startup_calls(monkeypatch):
    """Replace the startup database work with recorders."""
    calls = {"connections": [], "initialized": []}

    def connect():
        conn = SpyConnection()
        calls["connections"].append(conn)
        return conn

    def initialize(conn):
        calls["initialized"].append(conn)
        return ["experiments"]

    monkeypatch.setattr(main, "get_db_connection_from_env", connect)
    monkeypatch.setattr(main, "initialize_schema", initialize)
    monkeypatch.delenv("SPLITLAB_INIT_SCHEMA", raising=False)
    return calls


def test_startup_creates_schema_and_closes_connection(startup_calls, monkeypatch):
    monkeypatch.delenv("SPLITLAB_DB_READ_ONLY", raising=False)

    with TestClient(app) as client:
        assert client.get("/healthz").status_code == 200

    (conn,) = startup_calls["connections"]
    assert startup_calls["initialized"] == [conn]
    assert conn.disconnected


def test_startup_skips_schema_on_read_only_database(startup_calls, monkeypatch):
    monkeypatch.setenv("SPLITLAB_DB_READ_ONLY", "true")

    with TestClient(app) as client:
        assert client.get("/healthz").status_code == 200

    assert startup_calls["connections"] == []
    assert startup_calls["initialized"] == []
