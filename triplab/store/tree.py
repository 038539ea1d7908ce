"""Pure helpers over the nested-dict document tree.

Values follow the store's pruning rule: ``None``, empty dicts and empty
lists are never kept; writing one deletes the node, and parents left empty
by a deletion are removed as well.
"""

from __future__ import annotations

import copy
from typing import Any


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list)) and len(value) == 0)


def prune(value: Any) -> Any:
    """Return a deep copy of ``value`` with empty containers removed."""
    if isinstance(value, dict):
        result = {}
        for key, child in value.items():
            child = prune(child)
            if not is_empty(child):
                result[str(key)] = child
        return result or None
    if isinstance(value, list):
        return [prune(item) for item in value] or None
    if isinstance(value, tuple):
        return prune(list(value))
    return value


def get_at(root: dict | None, segments: list[str]) -> Any:
    """Deep copy of the value at ``segments`` or ``None``."""
    node: Any = root
    for segment in segments:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return copy.deepcopy(node)


def set_at(root: dict | None, segments: list[str], value: Any) -> dict | None:
    """Set ``value`` at ``segments`` and return the (possibly new) root.

    An empty ``segments`` list replaces the root itself.
    """
    value = prune(value)
    if not segments:
        return value if isinstance(value, dict) else None
    root = root if isinstance(root, dict) else {}
    node = root
    parents: list[tuple[dict, str]] = []
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        parents.append((node, segment))
        node = child
    leaf = segments[-1]
    if is_empty(value):
        node.pop(leaf, None)
        for parent, key in reversed(parents):
            if parent[key]:
                break
            del parent[key]
    else:
        node[leaf] = value
    return root or None


def update_at(root: dict | None, segments: list[str], children: dict[str, Any]) -> dict | None:
    """Apply several child writes relative to ``segments``."""
    for key, value in children.items():
        root = set_at(root, segments + [s for s in str(key).split("/") if s], value)
    return root
