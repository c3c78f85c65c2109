"""Error kinds raised by the experiment statistics engine."""

from typing import Optional


class SplitlabError(Exception):
    """Base class for all engine errors."""


class NotFoundError(SplitlabError):
    """The requested experiment does not exist in the data source."""

    def __init__(self, experiment_id: str):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment '{experiment_id}' not found.")


class InvalidInputError(SplitlabError):
    """The experiment configuration or request cannot be analyzed."""


class DataSourceError(SplitlabError):
    """The storage collaborator failed while serving an engine operation."""

    def __init__(
        self, operation: str, experiment_id: Optional[str], reason: str = ""
    ):
        self.operation = operation
        self.experiment_id = experiment_id
        message = f"Data source failed during '{operation}'"
        if experiment_id is not None:
            message += f" for experiment '{experiment_id}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
