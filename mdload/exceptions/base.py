"""Base exception classes for mdload.

Every exception carries a machine-readable ``code``, a human-readable
``message`` and an optional ``details`` dict so log lines can include the
structured context without string parsing.
"""

from __future__ import annotations

from typing import Any


class MdloadError(Exception):
    """Base exception for all mdload errors."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"


class ConfigurationError(MdloadError):
    """Raised when the configuration file is missing, malformed or out of range.

    Root cause: the JSON file could not be read, or a field violated its type
    or range constraint.
    Remediation: fix the field named in ``details["field"]`` and restart.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="CONFIGURATION_ERROR", message=message, details=details)


class MetricsEndpointError(MdloadError):
    """Raised when the metrics endpoint cannot start serving.

    Root cause: ``artediPort`` is already bound or not permitted.
    Remediation: pick a free port and restart. This error is fatal to the process.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="METRICS_ENDPOINT", message=message, details=details)
