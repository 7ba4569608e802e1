"""Typed load-generator configuration.

Expected JSON shape::

    {
      "metadataService": {
        "srvDomain": "1.moray.example.com",
        "cueballOptions": {"defaultPort": 2020, "maximum": 16}
      },
      "concurrency": 32,
      "largeDirectory": "/poseidon/stor/loadgen/q",
      "smallDirectoryRoot": "/poseidon/stor/loadgen/small",
      "artediPort": 8881
    }

The basename of ``largeDirectory`` is the shard prefix forced onto every
generated identifier, so it must be exactly one character.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mdload.core.paths import shard_prefix_for
from mdload.exceptions import ConfigurationError

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 128
SHARD_PREFIX_LENGTH = 1


@dataclass(frozen=True)
class MetadataServiceConfig:
    srv_domain: str
    cueball_options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LoadConfig:
    metadata_service: MetadataServiceConfig
    concurrency: int
    large_directory: str
    small_directory_root: str
    metrics_port: int

    @classmethod
    def from_dict(cls, data: Any) -> "LoadConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("configuration must be a JSON object")

        service = data.get("metadataService")
        if not isinstance(service, dict):
            raise ConfigurationError(
                "metadataService must be an object",
                details={"field": "metadataService"},
            )

        srv_domain = service.get("srvDomain")
        if not isinstance(srv_domain, str) or not srv_domain:
            raise ConfigurationError(
                "metadataService.srvDomain must be a non-empty string",
                details={"field": "metadataService.srvDomain", "provided": srv_domain},
            )

        cueball_options = service.get("cueballOptions")
        if not isinstance(cueball_options, dict):
            raise ConfigurationError(
                "metadataService.cueballOptions must be an object",
                details={"field": "metadataService.cueballOptions"},
            )

        concurrency = _require_int(data, "concurrency", MIN_CONCURRENCY, MAX_CONCURRENCY)
        metrics_port = _require_int(data, "artediPort", 1, 65535)

        large_directory = _require_str(data, "largeDirectory")
        small_directory_root = _require_str(data, "smallDirectoryRoot")

        prefix = shard_prefix_for(large_directory)
        if len(prefix) != SHARD_PREFIX_LENGTH:
            raise ConfigurationError(
                f"basename of largeDirectory must be exactly {SHARD_PREFIX_LENGTH} character",
                details={"field": "largeDirectory", "provided": large_directory, "basename": prefix},
            )

        return cls(
            metadata_service=MetadataServiceConfig(
                srv_domain=srv_domain,
                cueball_options=dict(cueball_options),
            ),
            concurrency=concurrency,
            large_directory=large_directory,
            small_directory_root=small_directory_root,
            metrics_port=metrics_port,
        )


def load_config(path: str | Path) -> LoadConfig:
    """Read and validate a JSON configuration file."""

    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"cannot read configuration file: {exc.strerror or exc}",
            details={"path": str(config_path)},
        ) from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"configuration file is not valid JSON: {exc.msg}",
            details={"path": str(config_path), "line": exc.lineno, "column": exc.colno},
        ) from exc

    return LoadConfig.from_dict(data)


def _require_int(data: dict[str, Any], name: str, minimum: int, maximum: int) -> int:
    value = data.get(name)
    # bool is an int subclass; reject it explicitly.
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigurationError(
            f"{name} must be an integer",
            details={"field": name, "provided": value},
        )
    if value < minimum or value > maximum:
        raise ConfigurationError(
            f"{name} must be between {minimum} and {maximum}",
            details={"field": name, "provided": value},
        )
    return value


def _require_str(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(
            f"{name} must be a non-empty string",
            details={"field": name, "provided": value},
        )
    return value
