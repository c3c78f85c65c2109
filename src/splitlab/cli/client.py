"""CLI API client for interacting with the splitlab server."""

import os
from typing import Optional

import httpx

# The base URL can be configured via an environment variable
API_BASE_URL = os.getenv("SPLITLAB_API_URL", "http://127.0.0.1:8000")


class APIClient:
    """A client for making requests to the splitlab API."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url
        self.client = httpx.Client(base_url=self.base_url, transport=transport)

    def _get(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        response = self.client.get(url, params=params)
        response.raise_for_status()
        return response

    def get_results(self, experiment_id: str) -> httpx.Response:
        """Fetches per-variant metrics for an experiment."""
        return self._get(f"/experiments/{experiment_id}/results")

    def get_significance(self, experiment_id: str) -> httpx.Response:
        """Fetches the chi-square significance test for an experiment."""
        return self._get(f"/experiments/{experiment_id}/significance")

    def get_comparison(self, experiment_id: str) -> httpx.Response:
        """Fetches the head-to-head variant comparison."""
        return self._get(f"/experiments/{experiment_id}/comparison")

    def get_time_series(
        self, experiment_id: str, granularity: str = "day"
    ) -> httpx.Response:
        """Fetches conversion time series at the given granularity."""
        return self._get(
            f"/experiments/{experiment_id}/timeseries",
            params={"granularity": granularity},
        )

    def get_recommendation(
        self, experiment_id: str, as_of: Optional[str] = None
    ) -> httpx.Response:
        """Fetches the recommended next action for an experiment."""
        params = {}
        if as_of:
            params["as_of"] = as_of
        return self._get(f"/experiments/{experiment_id}/recommendation", params=params)
