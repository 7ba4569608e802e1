"""Tests for configuration loading and validation."""

from __future__ import annotations

import copy
import json

import pytest

from mdload.config import LoadConfig, load_config
from mdload.core.paths import shard_prefix_for
from mdload.exceptions import ConfigurationError

VALID = {
    "metadataService": {
        "srvDomain": "1.moray.example.com",
        "cueballOptions": {"defaultPort": 2020},
    },
    "concurrency": 16,
    "largeDirectory": "/poseidon/stor/load/q",
    "smallDirectoryRoot": "/poseidon/stor/load/small",
    "artediPort": 8881,
}


def _with(path: str, value):
    data = copy.deepcopy(VALID)
    target = data
    keys = path.split(".")
    for key in keys[:-1]:
        target = target[key]
    if value is _MISSING:
        del target[keys[-1]]
    else:
        target[keys[-1]] = value
    return data


_MISSING = object()


def test_valid_config():
    config = LoadConfig.from_dict(VALID)

    assert config.metadata_service.srv_domain == "1.moray.example.com"
    assert config.metadata_service.cueball_options == {"defaultPort": 2020}
    assert config.concurrency == 16
    assert config.metrics_port == 8881
    assert shard_prefix_for(config.large_directory) == "q"


@pytest.mark.parametrize(
    "path,value,field",
    [
        ("metadataService", _MISSING, "metadataService"),
        ("metadataService.srvDomain", "", "metadataService.srvDomain"),
        ("metadataService.srvDomain", 42, "metadataService.srvDomain"),
        ("metadataService.cueballOptions", [], "metadataService.cueballOptions"),
        ("concurrency", 0, "concurrency"),
        ("concurrency", 129, "concurrency"),
        ("concurrency", "8", "concurrency"),
        ("concurrency", True, "concurrency"),
        ("artediPort", 0, "artediPort"),
        ("artediPort", 65536, "artediPort"),
        ("largeDirectory", "/poseidon/stor/load/qq", "largeDirectory"),
        ("largeDirectory", "/poseidon/stor/load/", "largeDirectory"),
        ("largeDirectory", _MISSING, "largeDirectory"),
        ("smallDirectoryRoot", None, "smallDirectoryRoot"),
    ],
)
def test_invalid_fields_rejected(path, value, field):
    with pytest.raises(ConfigurationError) as info:
        LoadConfig.from_dict(_with(path, value))

    assert info.value.details["field"] == field
    assert info.value.code == "CONFIGURATION_ERROR"


def test_boundaries_accepted():
    LoadConfig.from_dict(_with("concurrency", 1))
    LoadConfig.from_dict(_with("concurrency", 128))
    LoadConfig.from_dict(_with("artediPort", 65535))


def test_non_object_rejected():
    with pytest.raises(ConfigurationError):
        LoadConfig.from_dict([1, 2, 3])


def test_load_config_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(VALID), encoding="utf-8")

    assert load_config(path).concurrency == 16


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as info:
        load_config(tmp_path / "absent.json")

    assert "absent.json" in info.value.details["path"]


def test_load_config_malformed_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError) as info:
        load_config(path)

    assert info.value.details["line"] == 1
