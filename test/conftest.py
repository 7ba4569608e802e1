"""Pytest configuration and fixtures

Provides in-memory metadata-store fakes so the adapter, pipeline and
governor can be exercised without a live store.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdload.config import LoadConfig, MetadataServiceConfig
from mdload.core.metrics import MetricsRecorder
from mdload.exceptions import ObjectExistsError

FailRule = Callable[[dict[str, Any]], "BaseException | None"]


class FakeStoreClient:
    """Records every write; optionally sleeps and fails selected records."""

    def __init__(self, *, latency: float = 0.0, fail: FailRule | None = None) -> None:
        self.latency = latency
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.connected = False
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def connect(self) -> None:
        self.connected = True

    async def put_object(self, record: dict[str, Any]) -> None:
        self.calls.append(record)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self.fail is not None:
                exc = self.fail(record)
                if exc is not None:
                    raise exc
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True

    def keys(self) -> list[str]:
        return [record["key"] for record in self.calls]


class CreateOnlyStoreClient(FakeStoreClient):
    """Rejects a write whose key was already written, like an etag-null put."""

    def __init__(self, *, latency: float = 0.0) -> None:
        super().__init__(latency=latency)
        self.existing: set[str] = set()

    async def put_object(self, record: dict[str, Any]) -> None:
        await super().put_object(record)
        key = record["key"]
        if key in self.existing:
            raise ObjectExistsError(f"{key} already exists", details={"key": key})
        self.existing.add(key)


@pytest.fixture
def recorder() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def fake_store() -> FakeStoreClient:
    return FakeStoreClient()


@pytest.fixture
def load_config() -> LoadConfig:
    return LoadConfig(
        metadata_service=MetadataServiceConfig(srv_domain="moray.test", cueball_options={}),
        concurrency=3,
        large_directory="/L/q",
        small_directory_root="/S",
        metrics_port=8881,
    )
