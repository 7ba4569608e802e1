from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class StepKind(str, Enum):
    """Store call performed by one pipeline step."""

    CREATE_DIRECTORY = "createDirectory"
    CREATE_OBJECT = "createObject"


@dataclass(frozen=True)
class OperationPaths:
    """Keys written by one operation, in pipeline order."""

    large_key: str
    small_key1: str
    small_key2: str
    leaf_key: str


@dataclass(frozen=True)
class PipelineStep:
    kind: StepKind
    path: str


@dataclass
class Operation:
    """One in-flight logical operation.

    Owned by a single governor slot from creation until it leaves the pending
    set; steps run strictly in sequence so nothing here is shared.
    """

    identifier: str
    paths: OperationPaths
    started_at: float = field(default_factory=time.time)
    started_monotonic: float = field(default_factory=time.monotonic)
    step: int = 0
    elapsed_seconds: float | None = None

    def mark_done(self) -> float:
        if self.elapsed_seconds is None:
            self.elapsed_seconds = max(0.0, time.monotonic() - self.started_monotonic)
        return self.elapsed_seconds


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one pipeline run.

    ``step_index`` and ``cause`` are set only on failure; ``step_index`` is
    zero-based into the pipeline's step list.
    """

    ok: bool
    step_index: int | None = None
    step: PipelineStep | None = None
    cause: BaseException | None = None

    @classmethod
    def success(cls) -> "PipelineResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, step_index: int, step: PipelineStep, cause: BaseException) -> "PipelineResult":
        return cls(ok=False, step_index=step_index, step=step, cause=cause)


@dataclass(frozen=True)
class MetricsSnapshot:
    started: int
    done: int
    failed: int
    operation_observations: int
    store_call_observations: int
