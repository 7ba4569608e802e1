from __future__ import annotations

import argparse
import asyncio
import signal

from mdload.config import LoadConfig, load_config
from mdload.core.client import HttpMetadataClient, MetadataClient
from mdload.core.engine import Governor
from mdload.core.metrics import MetricsRecorder
from mdload.core.paths import PathGenerator
from mdload.core.store import StoreAdapter
from mdload.exceptions import ConfigurationError, MetricsEndpointError, StoreConnectionError
from mdload.logger import Logger
from mdload.logger import session_logger as logger
from mdload.web_server.metrics_server import MetricsServer

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdload",
        description="Sustain constant create load against a hierarchical metadata store",
    )
    parser.add_argument(
        "config",
        type=str,
        help="Path to the JSON configuration file",
    )
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Do not contact the metadata store; each call sleeps briefly instead",
    )
    return parser


async def run_load(
    config: LoadConfig,
    *,
    dry_run: bool = False,
    client: MetadataClient | None = None,
    stop_event: asyncio.Event | None = None,
    log: Logger | None = None,
) -> MetricsRecorder:
    """Connect, start the metrics endpoint and run the governor.

    Returns the recorder once ``stop_event`` is set and in-flight operations
    have finished. Raises ``StoreConnectionError`` on a fatal store failure and
    ``MetricsEndpointError`` if the metrics port cannot be bound.
    """

    log = log or logger
    metrics = MetricsRecorder()

    if client is None and not dry_run:
        client = HttpMetadataClient(config.metadata_service, logger=log)

    try:
        if client is not None and not dry_run:
            await client.connect()

        adapter = StoreAdapter(client, metrics, dry_run=dry_run, logger=log)
        generator = PathGenerator(config.large_directory, config.small_directory_root)
        governor = Governor(config.concurrency, adapter, metrics, generator, logger=log)

        server = MetricsServer(metrics, port=config.metrics_port, logger=log)
        await server.start()
        try:
            await governor.run(stop_event=stop_event)
        finally:
            await server.stop()
    finally:
        if client is not None:
            await client.aclose()

    return metrics


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        logger.error(
            "load.invalid_config",
            event="load.invalid_config",
            path=args.config,
            error=exc.message,
            details=exc.details,
        )
        return EXIT_CONFIG

    logger.info(
        "load.config_loaded",
        event="load.config_loaded",
        path=args.config,
        srv_domain=config.metadata_service.srv_domain,
        concurrency=config.concurrency,
        large_directory=config.large_directory,
        small_directory_root=config.small_directory_root,
        metrics_port=config.metrics_port,
        dry_run=args.dry_run,
    )

    async def _run() -> MetricsRecorder:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
            logger.warning("load.signal", event="load.signal", signum=signum)
            loop.call_soon_threadsafe(stop_event.set)

        with _SignalHandlers(_handle_signal):
            return await run_load(config, dry_run=args.dry_run, stop_event=stop_event)

    try:
        metrics = asyncio.run(_run())
    except (StoreConnectionError, MetricsEndpointError) as exc:
        logger.error(
            "load.fatal",
            event="load.fatal",
            code=exc.code,
            error=exc.message,
            details=exc.details,
        )
        return EXIT_FATAL

    logger.info("load.summary", event="load.summary", **_flatten(metrics.build_report()))
    return EXIT_OK


def _flatten(report: dict, prefix: str = "") -> dict:
    flat: dict = {}
    for key, value in report.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


class _SignalHandlers:
    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (OSError, ValueError):
                # Not the main thread, or the platform lacks the signal.
                pass
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)  # type: ignore[arg-type]
        return False


if __name__ == "__main__":
    raise SystemExit(main())
