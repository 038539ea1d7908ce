"""In-process document store backed by a nested dict."""

from __future__ import annotations

import logging
from typing import Any

from triplab.store import tree
from triplab.store.base import DocumentStore

logger = logging.getLogger(__name__)


class MemoryDocumentStore(DocumentStore):
    """Single-process store. Every session sharing the instance sees the same tree."""

    def __init__(self, initial: dict | None = None) -> None:
        super().__init__()
        self._root: dict | None = tree.prune(initial) if initial else None

    async def _read(self, segments: list[str]) -> Any:
        return tree.get_at(self._root, segments)

    async def _write(self, segments: list[str], value: Any) -> None:
        self._root = tree.set_at(self._root, segments, value)

    async def _write_children(self, segments: list[str], children: dict[str, Any]) -> None:
        self._root = tree.update_at(self._root, segments, children)

    def dump(self) -> dict:
        """Deep copy of the whole tree (debugging and tests)."""
        return tree.get_at(self._root, []) or {}
