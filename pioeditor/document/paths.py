# pioeditor/document/paths.py
"""Addressable path helpers.

A path such as ``<uuid>.KBV_PR_MIO_ULB_Patient.name[0].given`` is split into
tokens (``[uuid, "KBV_PR_MIO_ULB_Patient", "name", 0, "given"]``) and walked
over nested dicts and lists:

- writing creates dicts for field names and lists for ``[n]`` indices, padding
  lists with ``None``;
- a dict met where an index is expected stands for a one-element list (this is
  how the XML codec reads non-repeated tags) and is wrapped on write;
- a list met where a field name is expected is entered at its first item.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Union

HEADER_MARKERS = ("@id@", "@profile@", "@status@", "@div@")
VALUE_MARKER = "__value"
URL_MARKER = "__url"

Token = Union[str, int]

_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# ---------------------------------------------------------------------------
# Path strings
# ---------------------------------------------------------------------------


def tokenize(path: str) -> list[Token]:
    """Split a dotted path into field names and integer indices."""
    tokens: list[Token] = []
    if not path:
        return tokens
    for segment in path.split("."):
        match = _SEGMENT_RE.match(segment)
        if match is None:
            # Unbalanced brackets; keep the segment as a plain key.
            tokens.append(segment)
            continue
        name, indices = match.groups()
        if name:
            tokens.append(name)
        tokens.extend(int(i) for i in _INDEX_RE.findall(indices))
    return tokens


def is_header_path(path: str) -> bool:
    """True for ``<uuid>.<type>.@marker@`` style paths."""
    segments = path.split(".")
    return len(segments) > 2 and segments[2] in HEADER_MARKERS


def with_marker(path: str) -> str:
    """Append the terminal marker a primitive at ``path`` is stored under."""
    if is_header_path(path):
        return path
    last = path.split(".")[-1]
    if "extension" in last:
        return f"{path}.{URL_MARKER}"
    return f"{path}.{VALUE_MARKER}"


def without_marker(path: str) -> str:
    """``a.b.__value`` -> ``a.b``; other paths are returned unchanged."""
    head, _, last = path.rpartition(".")
    if head and last.startswith("__"):
        return head
    return path


def strip_marker_elements(path: str) -> str:
    """Drop every ``__``-prefixed element (``__value``, ``__url``, ``__xmlns``)."""
    return ".".join(e for e in path.split(".") if not e.startswith("__"))


# ---------------------------------------------------------------------------
# Nested access
# ---------------------------------------------------------------------------


def has_leaves(node: Any) -> bool:
    """True when ``node`` holds at least one non-container value."""
    if node is None:
        return False
    if isinstance(node, dict):
        return any(has_leaves(v) for v in node.values())
    if isinstance(node, list):
        return any(has_leaves(v) for v in node)
    return True


def _trail(data: Any, tokens: list[Token]) -> Optional[list[tuple[Any, Token]]]:
    """Return the (container, key) pairs visited while reading ``tokens``."""
    trail: list[tuple[Any, Token]] = []
    node = data
    for token in tokens:
        if isinstance(token, str) and isinstance(node, list):
            if not node or not isinstance(node[0], dict):
                return None
            trail.append((node, 0))
            node = node[0]
        if isinstance(token, int) and isinstance(node, dict):
            if token != 0:
                return None
            continue
        if isinstance(node, dict):
            if token not in node:
                return None
        elif isinstance(node, list):
            if token >= len(node) or node[token] is None:
                return None
        else:
            return None
        trail.append((node, token))
        node = node[token]
    return trail


def get_in(data: Any, tokens: list[Token]) -> Any:
    """Read the node at ``tokens``; returns :data:`MISSING` when absent."""
    if not tokens:
        return data
    trail = _trail(data, tokens)
    if not trail:
        return MISSING
    container, key = trail[-1]
    return container[key]


def _pad(items: list, index: int) -> None:
    while len(items) <= index:
        items.append(None)


def _child(parent: Any, key: Token, next_token: Token) -> Any:
    """Return the container stored at ``parent[key]``, creating or reshaping it."""
    if isinstance(parent, list):
        _pad(parent, key)  # type: ignore[arg-type]
    child = parent[key]
    if isinstance(next_token, int):
        if isinstance(child, dict):
            child = [child]
        elif not isinstance(child, list):
            child = []
        parent[key] = child
        return child
    if isinstance(child, list):
        if not child or not isinstance(child[0], dict):
            if child:
                child[0] = {}
            else:
                child.append({})
        return child[0]
    if not isinstance(child, dict):
        child = {}
        parent[key] = child
    return child


def set_in(data: dict, tokens: list[Token], value: Any) -> None:
    """Write ``value`` at ``tokens``, creating intermediate containers."""
    if not tokens:
        raise ValueError("Cannot set a value at an empty path")
    node: Any = data
    for i, token in enumerate(tokens[:-1]):
        if isinstance(node, dict) and token not in node:
            node[token] = None
        node = _child(node, token, tokens[i + 1])
    last = tokens[-1]
    if isinstance(node, list):
        _pad(node, last)  # type: ignore[arg-type]
    node[last] = value


def delete_in(data: Any, tokens: list[Token], keep: int = 0) -> bool:
    """Remove the node at ``tokens`` and prune containers it leaves empty.

    The first ``keep`` levels of the path are never pruned.  Returns False if
    nothing was found at ``tokens``.
    """
    trail = _trail(data, tokens) if tokens else None
    if not trail:
        return False
    container, key = trail[-1]
    del container[key]
    for container, key in reversed(trail[keep:-1]):
        if has_leaves(container[key]):
            break
        del container[key]
    return True
