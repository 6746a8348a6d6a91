# pioeditor/document/validator.py
"""Schema validation of addressable paths."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from ..primitives import is_valid_uuid
from ..schemas.table import SchemaTable, get_schema_table, strip_indices
from .paths import HEADER_MARKERS

logger = logging.getLogger(__name__)


class PathValidator:
    """Checks paths against the full schema table and remembers the invalid ones.

    Array indices (``name[1]``) are ignored on the runtime side and qualifier
    suffixes (``identifier:pid``) on the table side, so both
    ``<uuid>.KBV_PR_MIO_ULB_Patient.name[0].family`` and ``...name[3].family``
    resolve to the table path ``KBV_PR_MIO_ULB_Patient.name:name.family``.
    """

    def __init__(self, table: Optional[SchemaTable] = None) -> None:
        self._table = table
        self._invalid: list[str] = []

    @property
    def table(self) -> SchemaTable:
        if self._table is None:
            self._table = get_schema_table()
        return self._table

    @property
    def invalid_paths(self) -> list[str]:
        return list(self._invalid)

    def is_valid(self, path: str) -> bool:
        segments = path.split(".")
        if len(segments) < 2 or not is_valid_uuid(segments[0]):
            return False
        schema = self.table.get(segments[1])
        if schema is None:
            return False
        if len(segments) == 3 and segments[2] in HEADER_MARKERS:
            return True
        return schema.has_path(strip_indices(".".join(segments[1:])))

    def validate(self, paths: Union[str, Iterable[str]]) -> list[str]:
        """Validate one path or several; returns the invalid ones.

        Invalid paths are also added to :attr:`invalid_paths`, once each and in
        the order they were first seen.
        """
        if isinstance(paths, str):
            paths = [paths]
        invalid = [p for p in paths if not self.is_valid(p)]
        for path in invalid:
            if path not in self._invalid:
                logger.debug("Invalid path recorded: %s", path)
                self._invalid.append(path)
        return invalid

    def clear(self) -> None:
        self._invalid = []
