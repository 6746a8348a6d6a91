# pioeditor/document/subtree.py
"""Detached, editable copies of one branch of the content store."""

from __future__ import annotations

from typing import Any, Optional

from ..primitives import Primitive
from .content import primitive_at
from .paths import MISSING, get_in, set_in, tokenize, with_marker

_ROOT = "root"


class SubTree:
    """A branch of a document, addressed by its absolute path.

    Edits only touch the copy; :meth:`PioDocument.save_subtrees` writes the
    branch back and validates every path that was written through
    :meth:`set_value`.

    Parameters
    ----------
    absolute_path : str
        Path of the branch root, e.g. ``<uuid>.KBV_PR_MIO_ULB_Patient.name[0]``.
    data : Any, optional
        The branch content.  Omit it for a branch that does not exist yet.
    """

    def __init__(self, absolute_path: str, data: Any = MISSING) -> None:
        self.absolute_path = absolute_path
        self.added_paths: list[str] = []
        self._holder: dict[str, Any] = {}
        if data is not MISSING and data is not None:
            self._holder[_ROOT] = data
        self._base_depth = len(tokenize(absolute_path))

    @property
    def uuid(self) -> str:
        return self.absolute_path.split(".")[0]

    @property
    def data(self) -> Any:
        """The branch content, or None when nothing is stored."""
        return self._holder.get(_ROOT)

    @property
    def is_empty(self) -> bool:
        return _ROOT not in self._holder

    def _absolute(self, relative_path: str) -> str:
        return f"{self.absolute_path}.{relative_path}" if relative_path else self.absolute_path

    def _relative_tokens(self, marked_path: str) -> list:
        return [_ROOT] + tokenize(marked_path)[self._base_depth:]

    def set_value(self, relative_path: str, value: Optional[Primitive]) -> "SubTree":
        """Write ``value`` below the branch root; ``""`` addresses the root itself.

        A ``None`` value is ignored.
        """
        if value is None:
            return self
        absolute = self._absolute(relative_path)
        set_in(self._holder, self._relative_tokens(with_marker(absolute)), value)
        self.added_paths.append(absolute)
        return self

    def get_value(self, relative_path: str = "") -> Primitive:
        absolute = self._absolute(relative_path)
        node = get_in(self._holder, self._relative_tokens(absolute))
        return primitive_at(node, absolute)

    def get_value_as_string(self, relative_path: str = "") -> Optional[str]:
        """Formatted value at ``relative_path``, or None if the path is absent."""
        absolute = self._absolute(relative_path)
        node = get_in(self._holder, self._relative_tokens(absolute))
        if node is MISSING or node is None:
            return None
        return primitive_at(node, absolute).format()

    def __repr__(self) -> str:
        return f"SubTree({self.absolute_path!r}, added={len(self.added_paths)})"
