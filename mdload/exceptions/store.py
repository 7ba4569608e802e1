"""Store and pipeline exceptions for mdload.

The metadata-store client classifies every failed write into one of the
``StoreError`` subclasses below. The core only needs to tell three kinds
apart: conflicts (expected for shared directories), fatal connection loss
(ends the process) and everything else (fails one operation).
"""

from __future__ import annotations

from typing import Any

from mdload.exceptions.base import MdloadError


class StoreError(MdloadError):
    """A store write failed for a reason other than the kinds below."""

    default_code = "STORE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=self.default_code, message=message, details=details)


class ObjectExistsError(StoreError):
    """The target key already exists (create-only write lost a race)."""

    default_code = "OBJECT_EXISTS"


class StoreConnectionError(StoreError):
    """The store client lost or never established its connection.

    Root cause: the metadata service is unreachable.
    Remediation: check ``metadataService.srvDomain`` and the service health.
    This error is fatal to the process.
    """

    default_code = "STORE_CONNECTION"


class StoreOperationError(MdloadError):
    """A single store call failed; carries the call kind and key."""

    def __init__(self, kind: str, path: str, cause: BaseException):
        self.kind = kind
        self.path = path
        self.cause = cause
        super().__init__(
            code="STORE_OPERATION_FAILED",
            message=f"{kind} {path} failed: {cause}",
            details={"kind": kind, "path": path, "cause": type(cause).__name__},
        )


class PipelineStepError(MdloadError):
    """A pipeline step failed; remaining steps were skipped."""

    def __init__(self, step_index: int, kind: str, path: str, cause: BaseException):
        self.step_index = step_index
        self.kind = kind
        self.path = path
        self.cause = cause
        super().__init__(
            code="PIPELINE_STEP_FAILED",
            message=f"step {step_index} ({kind} {path}) failed",
            details={"step": step_index, "kind": kind, "path": path},
        )
