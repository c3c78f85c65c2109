"""CLI commands for analyzing experiments."""

import json
from datetime import datetime
from typing import Callable, Optional

import click
import httpx

from splitlab.cli.cli_types import Timestamp
from splitlab.cli.client import APIClient
from splitlab.schemas import Granularity

experiment_id_option = click.option(
    "--experiment-id", required=True, help="The ID of the experiment to analyze."
)


def _echo_response(request: Callable[[], httpx.Response]) -> None:
    """Run an API request and print its JSON body, or the error, to the terminal."""
    try:
        response = request()
        click.echo(json.dumps(response.json(), indent=2))
    except httpx.HTTPStatusError as e:
        try:
            error_details = e.response.json()
            click.echo(json.dumps(error_details, indent=2), err=True)
        except json.JSONDecodeError:
            error_message = {
                "error": "Failed to decode server error response",
                "status_code": e.response.status_code,
                "response_text": e.response.text,
            }
            click.echo(json.dumps(error_message, indent=2), err=True)
        raise SystemExit(1)
    except httpx.RequestError as e:
        error_message = {"error": "Failed to connect to API", "details": str(e)}
        click.echo(json.dumps(error_message, indent=2), err=True)
        raise SystemExit(1)


@click.group("experiments")
def experiments_cli():
    """Inspect A/B test results, significance and recommendations."""
    pass


@experiments_cli.command("results")
@experiment_id_option
def results(experiment_id: str):
    """Show conversion metrics for every variant."""
    client = APIClient()
    _echo_response(lambda: client.get_results(experiment_id))


@experiments_cli.command("significance")
@experiment_id_option
def significance(experiment_id: str):
    """Run the chi-square significance test."""
    client = APIClient()
    _echo_response(lambda: client.get_significance(experiment_id))


@experiments_cli.command("compare")
@experiment_id_option
def compare(experiment_id: str):
    """Compare every variant to the best-performing one."""
    client = APIClient()
    _echo_response(lambda: client.get_comparison(experiment_id))


@experiments_cli.command("timeseries")
@experiment_id_option
@click.option(
    "--granularity",
    type=click.Choice([g.value for g in Granularity], case_sensitive=False),
    default=Granularity.DAY.value,
    show_default=True,
    help="Size of the time buckets.",
)
def timeseries(experiment_id: str, granularity: str):
    """Show per-period and cumulative conversion rates."""
    client = APIClient()
    _echo_response(lambda: client.get_time_series(experiment_id, granularity.lower()))


@experiments_cli.command("recommend")
@experiment_id_option
@click.option(
    "--as-of",
    type=Timestamp(),
    help="Evaluate as of this time ('now', Unix, YYYY-MM-DDTHH:MM:SS, YYYY-MM-DD, or YYYYMMDD).",
)
def recommend(experiment_id: str, as_of: Optional[datetime]):
    """Recommend whether to ship a winner or keep the experiment running."""
    client = APIClient()
    as_of_iso = as_of.isoformat() if as_of else None
    _echo_response(lambda: client.get_recommendation(experiment_id, as_of_iso))
