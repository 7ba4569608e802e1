"""Exception hierarchy for mdload."""

from mdload.exceptions.base import ConfigurationError, MdloadError, MetricsEndpointError
from mdload.exceptions.store import (
    ObjectExistsError,
    PipelineStepError,
    StoreConnectionError,
    StoreError,
    StoreOperationError,
)

__all__ = [
    "MdloadError",
    "MetricsEndpointError",
    "ConfigurationError",
    "StoreError",
    "ObjectExistsError",
    "StoreConnectionError",
    "StoreOperationError",
    "PipelineStepError",
]
