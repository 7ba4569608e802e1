"""Metadata-store client boundary.

The core depends only on ``MetadataClient``. ``connect()`` returning is the
"ready" signal; ``StoreConnectionError`` raised from either method is fatal.
``HttpMetadataClient`` is a thin JSON-over-HTTP implementation; connection
pooling and transport policy live here, never in the core.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from mdload.config import MetadataServiceConfig
from mdload.exceptions import ObjectExistsError, StoreConnectionError, StoreError
from mdload.logger import Logger, session_logger

DEFAULT_PORT = 2020
DEFAULT_POOL_SIZE = 16
DEFAULT_CONNECT_TIMEOUT_MS = 4000
DEFAULT_BUCKET = "manta"

_CONFLICT_STATUS_CODES = frozenset({409, 412})


class MetadataClient(Protocol):
    async def connect(self) -> None: ...

    async def put_object(self, record: dict[str, Any]) -> None: ...

    async def aclose(self) -> None: ...


class HttpMetadataClient:
    """Writes metadata records with ``POST /putObject``.

    Recognised ``cueballOptions`` keys: ``defaultPort``, ``maximum`` (pool
    size) and ``connectTimeout`` (milliseconds). Other keys are ignored.
    """

    def __init__(
        self,
        config: MetadataServiceConfig,
        *,
        bucket: str = DEFAULT_BUCKET,
        logger: Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        options = config.cueball_options
        port = int(options.get("defaultPort", DEFAULT_PORT))
        pool_size = int(options.get("maximum", DEFAULT_POOL_SIZE))
        connect_timeout = float(options.get("connectTimeout", DEFAULT_CONNECT_TIMEOUT_MS)) / 1000.0

        self._bucket = bucket
        self._logger = logger or session_logger
        self.base_url = f"http://{config.srv_domain}:{port}"

        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            # Reads are unbounded; the core defines no per-operation timeout.
            timeout=httpx.Timeout(None, connect=connect_timeout),
            limits=httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size),
            headers={"User-Agent": "mdload/0.1", "Accept": "application/json"},
            transport=transport,
        )

    async def connect(self) -> None:
        try:
            response = await self._http.get("/ping")
        except httpx.HTTPError as exc:
            raise StoreConnectionError(
                f"metadata service unreachable: {exc}",
                details={"url": self.base_url, "error_type": _classify_exception(exc)},
            ) from exc

        if response.status_code >= 400:
            raise StoreConnectionError(
                f"metadata service ping failed with status {response.status_code}",
                details={"url": self.base_url, "status_code": response.status_code},
            )

        self._logger.info(
            "store.connected",
            event="store.connected",
            url=self.base_url,
        )

    async def put_object(self, record: dict[str, Any]) -> None:
        body = {
            "bucket": self._bucket,
            "key": record["key"],
            "value": record,
            "options": {"req_id": record.get("requestId"), "etag": record.get("etag")},
        }
        try:
            response = await self._http.post("/putObject", json=body)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise StoreConnectionError(
                f"lost connection to metadata service: {exc}",
                details={"url": self.base_url, "error_type": _classify_exception(exc)},
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(
                f"putObject transport error: {exc}",
                details={"key": record["key"], "error_type": _classify_exception(exc)},
            ) from exc

        if response.status_code < 300:
            return

        details = {
            "key": record["key"],
            "status_code": response.status_code,
            "body": response.text[:200],
        }
        if response.status_code in _CONFLICT_STATUS_CODES:
            raise ObjectExistsError(f"{record['key']} already exists", details=details)
        raise StoreError(f"putObject failed with status {response.status_code}", details=details)

    async def aclose(self) -> None:
        await self._http.aclose()


def _classify_exception(exc: Exception) -> str:
    """Map a transport-level exception to a canonical error_type."""
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "network_connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "network_protocol"
    if isinstance(exc, httpx.HTTPError):
        return "network_error"
    return type(exc).__name__
