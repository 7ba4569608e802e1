from __future__ import annotations

import asyncio

from mdload.core.metrics import MetricsRecorder
from mdload.core.models import Operation, PipelineResult
from mdload.core.paths import PathGenerator
from mdload.core.pipeline import run_pipeline
from mdload.core.store import StoreAdapter
from mdload.exceptions import StoreConnectionError
from mdload.logger import Logger, session_logger


class Governor:
    """Keeps exactly ``concurrency`` operations in flight.

    Each slot runs one operation, records its outcome and starts the
    replacement with no suspension point in between, so outside of that
    synchronous hand-over ``started - done == len(pending) == concurrency``.
    There is no queue: demand is created only when a slot frees.

    Without a ``stop_event`` ``run`` never returns on its own. When the event
    is set, slots let their current operation finish and do not replace it.
    """

    def __init__(
        self,
        concurrency: int,
        adapter: StoreAdapter,
        metrics: MetricsRecorder,
        generator: PathGenerator,
        *,
        logger: Logger | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self.pending: dict[str, Operation] = {}
        self._adapter = adapter
        self._metrics = metrics
        self._generator = generator
        self._logger = logger or session_logger

    @property
    def started(self) -> int:
        return self._metrics.started

    @property
    def done(self) -> int:
        return self._metrics.done

    @property
    def failed(self) -> int:
        return self._metrics.failed

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        self._logger.info(
            "load.start",
            event="load.start",
            concurrency=self.concurrency,
            shard_prefix=self._generator.prefix,
            dry_run=self._adapter.dry_run,
        )

        # All initial operations exist before the first suspension point.
        initial = [self._launch() for _ in range(self.concurrency)]
        tasks = [
            asyncio.create_task(self._run_slot(slot_id, operation, stop_event))
            for slot_id, operation in enumerate(initial)
        ]

        try:
            await asyncio.gather(*tasks)
        except StoreConnectionError as exc:
            self._logger.error(
                "load.store_fatal",
                event="load.store_fatal",
                error_type=type(exc).__name__,
                error=str(exc),
                in_flight=len(self.pending),
                recovery="Check metadataService.srvDomain and that the metadata service is up",
            )
            raise
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        self._logger.info(
            "load.stopped",
            event="load.stopped",
            started=self.started,
            done=self.done,
            failed=self.failed,
        )

    def _launch(self) -> Operation:
        identifier, paths = self._generator.next()
        operation = Operation(identifier=identifier, paths=paths)
        self.pending[identifier] = operation
        self._metrics.record_started()
        return operation

    async def _run_slot(
        self,
        slot_id: int,
        operation: Operation,
        stop_event: asyncio.Event | None,
    ) -> None:
        while True:
            result = await run_pipeline(operation, self._adapter)
            self._complete(slot_id, operation, result)
            if stop_event is not None and stop_event.is_set():
                return
            operation = self._launch()

    def _complete(self, slot_id: int, operation: Operation, result: PipelineResult) -> None:
        elapsed = operation.mark_done()
        self._metrics.record_done(elapsed, failed=not result.ok)
        del self.pending[operation.identifier]

        if result.ok:
            self._logger.debug(
                "load.op_done",
                event="load.op_done",
                slot=slot_id,
                request_id=operation.identifier,
                duration_ms=int(elapsed * 1000),
            )
            return

        step = result.step
        self._logger.error(
            "load.op_failed",
            event="load.op_failed",
            slot=slot_id,
            request_id=operation.identifier,
            step=result.step_index,
            kind=step.kind.value if step else None,
            path=step.path if step else None,
            duration_ms=int(elapsed * 1000),
            error=str(result.cause),
        )
