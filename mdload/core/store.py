from __future__ import annotations

import asyncio
import posixpath
import time
from typing import Any

from mdload.core.client import MetadataClient
from mdload.core.metrics import MetricsRecorder
from mdload.core.models import StepKind
from mdload.exceptions import ObjectExistsError, StoreConnectionError, StoreOperationError
from mdload.logger import Logger, session_logger

# Fixed values stamped on every record; nothing reads the data back.
OWNER_SENTINEL = "930896af-bf8c-48d4-885c-6573a94b1853"
OBJECT_ID_SENTINEL = "d5e9c3b2-3c0b-4c55-a0d6-7d2f0b4c8a11"
CONTENT_LENGTH_SENTINEL = 0
CONTENT_MD5_SENTINEL = "1B2M2Y8AsgTpgAmY7PhCfg=="
CONTENT_TYPE_SENTINEL = "application/octet-stream"
SHARK_PLACEHOLDER = {"datacenter": "dc0", "manta_storage_id": "1.stor.example.com"}

DRY_RUN_DELAY_SECONDS = 0.01


def _now_ms() -> int:
    return int(time.time() * 1000)


def directory_record(request_id: str, path: str) -> dict[str, Any]:
    return {
        "dirname": posixpath.dirname(path),
        "key": path,
        "mtime": _now_ms(),
        "owner": OWNER_SENTINEL,
        "requestId": request_id,
        "roles": [],
        "type": "directory",
        "etag": None,
    }


def object_record(request_id: str, path: str) -> dict[str, Any]:
    record = directory_record(request_id, path)
    record.update(
        {
            "contentLength": CONTENT_LENGTH_SENTINEL,
            "contentMD5": CONTENT_MD5_SENTINEL,
            "contentType": CONTENT_TYPE_SENTINEL,
            "objectId": OBJECT_ID_SENTINEL,
            "sharks": [dict(SHARK_PLACEHOLDER)],
            "type": "object",
        }
    )
    return record


class StoreAdapter:
    """Turns pipeline steps into single metadata-store writes.

    Directory creation treats ``ObjectExistsError`` as success because every
    operation sharing a key prefix races to create the same intermediate
    directories. Object keys are unique per operation, so a conflict there is
    a real failure.
    """

    def __init__(
        self,
        client: MetadataClient | None,
        metrics: MetricsRecorder,
        *,
        dry_run: bool = False,
        dry_run_delay: float = DRY_RUN_DELAY_SECONDS,
        logger: Logger | None = None,
    ) -> None:
        if client is None and not dry_run:
            raise ValueError("a store client is required unless dry_run is set")
        self._client = client
        self._metrics = metrics
        self._logger = logger or session_logger
        self.dry_run = dry_run
        self.dry_run_delay = dry_run_delay

    async def create_directory(self, request_id: str, path: str) -> None:
        try:
            await self._put(StepKind.CREATE_DIRECTORY, directory_record(request_id, path))
        except ObjectExistsError:
            self._logger.debug(
                "store.directory_exists",
                event="store.directory_exists",
                request_id=request_id,
                path=path,
            )

    async def create_object(self, request_id: str, path: str) -> None:
        await self._put(StepKind.CREATE_OBJECT, object_record(request_id, path))

    async def _put(self, kind: StepKind, record: dict[str, Any]) -> None:
        if self.dry_run:
            await asyncio.sleep(self.dry_run_delay)
            return

        assert self._client is not None
        start = time.monotonic()
        try:
            await self._client.put_object(record)
        except StoreConnectionError:
            raise
        except Exception as exc:
            if isinstance(exc, ObjectExistsError) and kind is StepKind.CREATE_DIRECTORY:
                raise
            raise StoreOperationError(kind.value, record["key"], exc) from exc
        finally:
            self._metrics.observe_store_call(kind, time.monotonic() - start)
