"""Synthetic metadata-store load generator.

Keeps a constant number of multi-step create operations in flight against a
hierarchical metadata store to reproduce hot-shard directory contention.
"""

from __future__ import annotations

__all__ = []
