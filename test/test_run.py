"""Tests for the process entry point."""

from __future__ import annotations

import asyncio
import json

import pytest

from conftest import FakeStoreClient
from mdload import run as run_module
from mdload.exceptions import MetricsEndpointError, StoreConnectionError


class _NoopMetricsServer:
    def __init__(self, recorder, **kwargs) -> None:
        self.recorder = recorder
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture(autouse=True)
def _no_network_server(monkeypatch):
    monkeypatch.setattr(run_module, "MetricsServer", _NoopMetricsServer)


class _UnreachableClient(FakeStoreClient):
    async def connect(self) -> None:
        raise StoreConnectionError("unreachable", details={"url": "http://moray.test:2020"})


def _write_config(tmp_path, **overrides) -> str:
    data = {
        "metadataService": {"srvDomain": "moray.test", "cueballOptions": {}},
        "concurrency": 2,
        "largeDirectory": "/L/q",
        "smallDirectoryRoot": "/S",
        "artediPort": 8881,
    }
    data.update(overrides)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_missing_config_exits_2(tmp_path):
    assert run_module.main([str(tmp_path / "absent.json")]) == 2


def test_invalid_shard_prefix_exits_2(tmp_path):
    path = _write_config(tmp_path, largeDirectory="/L/too-long")
    assert run_module.main([path]) == 2


def test_unreachable_store_exits_1(tmp_path, monkeypatch):
    monkeypatch.setattr(run_module, "HttpMetadataClient", lambda *a, **kw: _UnreachableClient())
    path = _write_config(tmp_path)

    assert run_module.main([path]) == 1


class _BoundPortMetricsServer(_NoopMetricsServer):
    async def start(self) -> None:
        raise MetricsEndpointError("cannot serve metrics", details={"port": 8881})


def test_metrics_port_in_use_exits_1(tmp_path, monkeypatch):
    monkeypatch.setattr(run_module, "MetricsServer", _BoundPortMetricsServer)
    path = _write_config(tmp_path)

    assert run_module.main(["--dry-run", path]) == 1


@pytest.mark.asyncio
async def test_run_load_closes_client_when_metrics_server_fails(load_config, monkeypatch):
    monkeypatch.setattr(run_module, "MetricsServer", _BoundPortMetricsServer)
    store = FakeStoreClient()

    with pytest.raises(MetricsEndpointError):
        await run_module.run_load(load_config, client=store)

    assert store.connected
    assert store.closed
    assert store.calls == []


def test_parser_accepts_dry_run_flag():
    args = run_module._build_parser().parse_args(["config.json", "--dry-run"])
    assert args.config == "config.json"
    assert args.dry_run is True

    args = run_module._build_parser().parse_args(["-n", "config.json"])
    assert args.dry_run is True


@pytest.mark.asyncio
async def test_run_load_connects_before_starting(load_config):
    store = FakeStoreClient(latency=0.001)
    stop_event = asyncio.Event()

    async def _stop_soon() -> None:
        while not store.calls:
            await asyncio.sleep(0.001)
        stop_event.set()

    stopper = asyncio.create_task(_stop_soon())
    metrics = await asyncio.wait_for(
        run_module.run_load(load_config, client=store, stop_event=stop_event),
        timeout=2.0,
    )
    await stopper

    assert store.connected
    assert store.closed
    snapshot = metrics.snapshot()
    assert snapshot.started == snapshot.done
    assert snapshot.store_call_observations == len(store.calls)


@pytest.mark.asyncio
async def test_run_load_dry_run_skips_connect(load_config):
    store = FakeStoreClient()
    stop_event = asyncio.Event()
    stop_event.set()

    metrics = await run_load_with_timeout(load_config, store, stop_event, dry_run=True)

    assert not store.connected
    assert store.calls == []
    # With the stop event already set each slot runs exactly one operation.
    assert metrics.snapshot().done == load_config.concurrency
    assert metrics.snapshot().store_call_observations == 0


@pytest.mark.asyncio
async def test_run_load_propagates_connect_failure(load_config):
    store = _UnreachableClient()

    with pytest.raises(StoreConnectionError):
        await run_module.run_load(load_config, client=store)

    assert store.closed
    assert store.calls == []


async def run_load_with_timeout(config, store, stop_event, *, dry_run):
    return await asyncio.wait_for(
        run_module.run_load(config, client=store, stop_event=stop_event, dry_run=dry_run),
        timeout=2.0,
    )


def test_flatten_report():
    flat = run_module._flatten({"a": {"b": 1, "c": {"d": 2}}, "e": 3})
    assert flat == {"a.b": 1, "a.c.d": 2, "e": 3}
