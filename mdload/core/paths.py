"""Identifier and key derivation.

All identifiers share a forced leading shard prefix, and the small-directory
keys are built from the first 2 and 16 identifier characters. Many concurrent
operations therefore race to create the same intermediate directories, which
is the hot-shard contention this tool exists to reproduce.
"""

from __future__ import annotations

import posixpath
import uuid
from typing import Callable

from mdload.core.models import OperationPaths

_FIRST_LEVEL_CHARS = 2
_SECOND_LEVEL_CHARS = 16


def shard_prefix_for(large_directory: str) -> str:
    return posixpath.basename(large_directory)


def generate_identifier(
    prefix: str,
    *,
    uuid_factory: Callable[[], uuid.UUID | str] = uuid.uuid4,
) -> str:
    """Return a fresh UUID string with its leading characters replaced by ``prefix``."""

    raw = str(uuid_factory())
    if len(prefix) > len(raw):
        raise ValueError("shard prefix is longer than the identifier")
    return prefix + raw[len(prefix):]


def derive_paths(identifier: str, *, large_root: str, small_root: str) -> OperationPaths:
    first = identifier[:_FIRST_LEVEL_CHARS]
    second = identifier[:_SECOND_LEVEL_CHARS]
    small_key1 = posixpath.join(small_root, first)
    small_key2 = posixpath.join(small_key1, second)
    return OperationPaths(
        large_key=posixpath.join(large_root, identifier),
        small_key1=small_key1,
        small_key2=small_key2,
        leaf_key=posixpath.join(small_key2, identifier),
    )


class PathGenerator:
    """Produces ``(identifier, paths)`` pairs pinned to one shard prefix."""

    def __init__(
        self,
        large_root: str,
        small_root: str,
        *,
        uuid_factory: Callable[[], uuid.UUID | str] = uuid.uuid4,
    ) -> None:
        self.large_root = large_root
        self.small_root = small_root
        self.prefix = shard_prefix_for(large_root)
        self._uuid_factory = uuid_factory

    def next(self) -> tuple[str, OperationPaths]:
        identifier = generate_identifier(self.prefix, uuid_factory=self._uuid_factory)
        return identifier, derive_paths(
            identifier,
            large_root=self.large_root,
            small_root=self.small_root,
        )
