"""Pull-based metrics endpoint.

``GET /metrics`` renders the recorder in the Prometheus text format. Unknown
paths get 404 and other methods (HEAD included) 405; both ask the client to
close the connection. A render failure returns 500.
"""

from __future__ import annotations

import asyncio
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from mdload.core.metrics import EXPOSITION_CONTENT_TYPE, MetricsRecorder
from mdload.exceptions import MetricsEndpointError
from mdload.logger import Logger, session_logger

_STARTUP_POLL_SECONDS = 0.01


class MetricsServer:
    """Serves a ``MetricsRecorder`` over HTTP inside the running event loop."""

    def __init__(
        self,
        recorder: MetricsRecorder,
        *,
        host: str = "0.0.0.0",
        port: int = 8881,
        logger: Logger | None = None,
    ) -> None:
        self.recorder = recorder
        self.host = host
        self.port = port
        self._logger = logger or session_logger
        self.app = self._create_app()
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    def _create_app(self) -> Any:
        routes = [
            Route("/metrics", endpoint=self.metrics, methods=["GET"]),
        ]
        app = Starlette(
            debug=False,
            routes=routes,
            exception_handlers={HTTPException: self._http_error},
        )
        # "/metrics/" is an unknown path, not a redirect.
        app.router.redirect_slashes = False
        return app

    async def metrics(self, request: Request) -> Response:
        # Starlette routes HEAD to GET endpoints implicitly.
        if request.method != "GET":
            raise HTTPException(status_code=405)
        try:
            body = self.recorder.render()
        except Exception as exc:
            self._logger.error(
                "metrics.render_failed",
                event="metrics.render_failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return PlainTextResponse("failed to render metrics\n", status_code=500)
        return Response(body, status_code=200, media_type=EXPOSITION_CONTENT_TYPE)

    async def _http_error(self, request: Request, exc: Exception) -> Response:
        status_code = getattr(exc, "status_code", 500)
        headers = {"Connection": "close"}
        if status_code == 405:
            headers["Allow"] = "GET"
        return PlainTextResponse(
            f"{getattr(exc, 'detail', '')}\n",
            status_code=status_code,
            headers=headers,
        )

    async def start(self) -> None:
        """Start serving; returns once the socket is bound.

        Raises ``MetricsEndpointError`` if uvicorn cannot bind the port.
        """

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        server = uvicorn.Server(config)
        self._server = server
        self._task = asyncio.create_task(self._serve(server))

        while not server.started:
            if self._task.done():
                task, self._task, self._server = self._task, None, None
                await task
                raise MetricsEndpointError(
                    "metrics endpoint exited before it started serving",
                    details={"host": self.host, "port": self.port},
                )
            await asyncio.sleep(_STARTUP_POLL_SECONDS)

        self._logger.info(
            "metrics.server_started",
            event="metrics.server_started",
            host=self.host,
            port=self.port,
            url=f"http://{self.host}:{self.port}/metrics",
        )

    async def _serve(self, server: uvicorn.Server) -> None:
        # uvicorn calls sys.exit(1) when startup fails, e.g. on a bound port.
        try:
            await server.serve()
        except SystemExit as exc:
            self._logger.error(
                "metrics.server_failed",
                event="metrics.server_failed",
                host=self.host,
                port=self.port,
                exit_code=exc.code,
                recovery="Choose a free artediPort",
            )
            raise MetricsEndpointError(
                f"cannot serve metrics on {self.host}:{self.port}",
                details={"host": self.host, "port": self.port},
            ) from exc

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await self._task
            self._task = None
        self._server = None
        self._logger.info(
            "metrics.server_stopped",
            event="metrics.server_stopped",
            port=self.port,
        )

    def get_app(self) -> Any:
        """Return the ASGI application."""
        return self.app
