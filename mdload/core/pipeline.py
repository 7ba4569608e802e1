from __future__ import annotations

from mdload.core.models import Operation, OperationPaths, PipelineResult, PipelineStep, StepKind
from mdload.core.store import StoreAdapter
from mdload.exceptions import PipelineStepError, StoreOperationError


def build_steps(paths: OperationPaths) -> list[PipelineStep]:
    """The four writes of one operation; each depends on the previous one."""
    return [
        PipelineStep(StepKind.CREATE_DIRECTORY, paths.large_key),
        PipelineStep(StepKind.CREATE_DIRECTORY, paths.small_key1),
        PipelineStep(StepKind.CREATE_DIRECTORY, paths.small_key2),
        PipelineStep(StepKind.CREATE_OBJECT, paths.leaf_key),
    ]


async def run_step(step: PipelineStep, request_id: str, adapter: StoreAdapter) -> None:
    if step.kind is StepKind.CREATE_DIRECTORY:
        await adapter.create_directory(request_id, step.path)
    else:
        await adapter.create_object(request_id, step.path)


async def run_pipeline(operation: Operation, adapter: StoreAdapter) -> PipelineResult:
    """Run the operation's steps in order, stopping at the first failure.

    ``operation.step`` is advanced after each successful step, so on failure
    it equals the index of the step that failed. Fatal store errors are not
    caught here.
    """

    steps = build_steps(operation.paths)
    for index, step in enumerate(steps):
        try:
            await run_step(step, operation.identifier, adapter)
        except StoreOperationError as exc:
            cause = PipelineStepError(index, step.kind.value, step.path, exc)
            return PipelineResult.failure(index, step, cause)
        operation.step = index + 1
    return PipelineResult.success()
