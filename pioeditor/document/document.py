# pioeditor/document/document.py
"""PioDocument -- one PIO held in memory.

    >>> doc = PioDocument.from_file("ueberleitungsbogen.xml")
    >>> doc.get_value(f"{uuid}.KBV_PR_MIO_ULB_Patient.gender").get()
    'female'
    >>> xml = doc.to_xml()
"""

from __future__ import annotations

import copy
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from ..primitives import Primitive
from ..schemas.table import (
    SchemaTable,
    get_reduced_table,
    get_schema_table,
    get_section_table,
)
from .content import ContentStore
from .header import HeaderStore
from .models import ImportIssue
from .paths import MISSING
from .subtree import SubTree
from .validator import PathValidator

logger = logging.getLogger(__name__)


class PioDocument:
    """Content store, header store and import records of one PIO.

    Parameters
    ----------
    schema_table, reduced_table : SchemaTable, optional
        Tables to use instead of the configured ones.
    section_table : dict, optional
        Section name -> collected resource types.
    """

    def __init__(
        self,
        schema_table: Optional[SchemaTable] = None,
        reduced_table: Optional[SchemaTable] = None,
        section_table: Optional[dict[str, list[str]]] = None,
    ) -> None:
        self._schema_table = schema_table
        self._reduced_table = reduced_table
        self._section_table = section_table
        self.validator = PathValidator(schema_table)
        self.content = ContentStore(self.validator)
        self.header = HeaderStore()
        self.read_errors: list[ImportIssue] = []
        self.exclusions: dict[str, dict[str, dict[str, Any]]] = {}
        self.exclusion_count = 0

    # ── Tables ─────────────────────────────────────────────────────

    @property
    def schema_table(self) -> SchemaTable:
        if self._schema_table is None:
            self._schema_table = get_schema_table()
        return self._schema_table

    @property
    def reduced_table(self) -> SchemaTable:
        if self._reduced_table is None:
            self._reduced_table = get_reduced_table()
        return self._reduced_table

    @property
    def section_table(self) -> dict[str, list[str]]:
        if self._section_table is None:
            self._section_table = get_section_table()
        return self._section_table

    # ── Import / export ────────────────────────────────────────────

    @classmethod
    def open(cls, xml_text: str, source: str = "<string>", **tables: Any) -> "PioDocument":
        """Import a PIO from XML text.

        Raises
        ------
        PioReadError
            If the XML is malformed or holds no Bundle or no resources.
        """
        from ..transform.reader import read_xml

        document = cls(**tables)
        read_xml(document, xml_text, source=source)
        return document

    @classmethod
    def from_file(cls, path: Union[str, Path], **tables: Any) -> "PioDocument":
        path = Path(path)
        return cls.open(path.read_text(encoding="utf-8"), source=str(path), **tables)

    def to_xml(self) -> str:
        """Export the document as FHIR XML; raises ``PioExportError`` on failure."""
        from ..transform.writer import write_xml

        return write_xml(self)

    # ── Path access ────────────────────────────────────────────────

    def set_value(self, path: str, value: Primitive) -> "PioDocument":
        self.content.set_value(path, value)
        return self

    def get_value(self, path: str) -> Primitive:
        return self.content.get_value(path)

    def delete_value(self, path: str) -> None:
        self.content.delete_value(path)

    @property
    def invalid_paths(self) -> list[str]:
        return self.validator.invalid_paths

    # ── Resources ──────────────────────────────────────────────────

    def all_uuids(self) -> dict[str, str]:
        return self.content.all_uuids()

    def uuids_of_type(self, resource_type: str) -> list[str]:
        return self.content.uuids_of_type(resource_type)

    def delete_resources_of_type(self, resource_type: str) -> int:
        return self.content.delete_resources_of_type(resource_type)

    def prune_empty_resources(self) -> int:
        return self.content.prune_empty_resources()

    # ── Subtrees ───────────────────────────────────────────────────

    def get_subtrees(self, paths: Iterable[str]) -> list[SubTree]:
        """One detached copy per path, in the order given."""
        subtrees = []
        for path in paths:
            node = self.content.get_node(path)
            subtrees.append(SubTree(path, MISSING if node is MISSING else copy.deepcopy(node)))
        return subtrees

    def save_subtrees(self, subtrees: Iterable[SubTree]) -> None:
        subtrees = list(subtrees)
        for subtree in subtrees:
            self.validator.validate(subtree.added_paths)
            if not subtree.is_empty:
                self.content.set_node(subtree.absolute_path, subtree.data)
        pruned = self.prune_empty_resources()
        logger.debug("%d subtrees saved", len(subtrees))
        if pruned:
            logger.debug("%d empty resources deleted after subtree integration", pruned)

    def delete_subtrees(self, subtrees: Iterable[SubTree]) -> None:
        """Delete the whole resource each subtree belongs to."""
        for subtree in subtrees:
            self.content.delete_resource(subtree.uuid)

    # ── Import records ─────────────────────────────────────────────

    def add_exclusion(self, uuid: str, path: str, data: Any) -> None:
        """Record a path that was read but is not part of PIO Small."""
        resource_name = path.split(".")[0]
        self.exclusions.setdefault(resource_name, {}).setdefault(uuid, {})[path] = data
        self.exclusion_count += 1

    # ── Misc ───────────────────────────────────────────────────────

    def clear(self) -> None:
        """Forget all content, header data and import records."""
        self.content.clear()
        self.header.clear()
        self.header.clear_given_devices()
        self.validator.clear()
        self.read_errors = []
        self.exclusions = {}
        self.exclusion_count = 0

    def summary(self) -> dict[str, Any]:
        """Counts describing the document, for display."""
        types = Counter(self.all_uuids().values())
        return {
            "resources": sum(types.values()),
            "resource_types": dict(sorted(types.items())),
            "authors": len(self.header.author_uuids()),
            "given_devices": sum(len(v) for v in self.header.all_given_devices().values()),
            "read_errors": len(self.read_errors),
            "exclusions": self.exclusion_count,
            "invalid_paths": len(self.invalid_paths),
        }
