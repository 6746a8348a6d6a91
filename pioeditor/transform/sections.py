# pioeditor/transform/sections.py
"""Composition sections.

Section titles and codings are declared in the reduced table as fixed-value
paths of ``KBV_PR_MIO_ULB_Composition`` (``section:<name>.title``,
``section:<name>.code.coding.code``, ...).  Which resources a section lists
comes from the section table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from ..primitives import UUID_PREFIX
from ..schemas.table import SchemaTable
from .constants import GIVEN_THINGS_SECTION

if TYPE_CHECKING:
    from ..document.document import PioDocument

COMPOSITION_RESOURCE_NAME = "KBV_PR_MIO_ULB_Composition"


@dataclass(frozen=True)
class SectionTemplate:
    name: str
    title: Optional[str]
    system: Optional[str]
    version: Optional[str]
    code: Optional[str]
    display: Optional[str]

    def coding(self) -> dict[str, Any]:
        return {
            "coding": {
                "system": {"__value": self.system},
                "version": {"__value": self.version},
                "code": {"__value": self.code},
                "display": {"__value": self.display},
            }
        }


def section_templates(reduced_table: SchemaTable) -> list[SectionTemplate]:
    """Section templates in declaration order."""
    composition = reduced_table.get(COMPOSITION_RESOURCE_NAME)
    if composition is None:
        return []
    fields: dict[str, dict[str, Optional[str]]] = {}
    for schema_path in composition.paths:
        relative = schema_path.path.split(".", 1)[1]
        head, _, rest = relative.partition(".")
        if not head.startswith("section:"):
            continue
        fields.setdefault(head.split(":", 1)[1], {})[rest] = schema_path.fixed_value
    return [
        SectionTemplate(
            name=name,
            title=values.get("title"),
            system=values.get("code.coding.system"),
            version=values.get("code.coding.version"),
            code=values.get("code.coding.code"),
            display=values.get("code.coding.display"),
        )
        for name, values in fields.items()
    ]


def _reference(uuid: str) -> dict[str, Any]:
    value = uuid if UUID_PREFIX in uuid else UUID_PREFIX + uuid
    return {"reference": {"__value": value}}


def section_uuids(document: "PioDocument", name: str) -> list[str]:
    resource_types = document.section_table.get(name, [])
    if name == GIVEN_THINGS_SECTION:
        return [u for t in resource_types for u in document.header.given_devices(t)]
    return [u for t in resource_types for u in document.content.uuids_of_type(t)]


def build_sections(document: "PioDocument") -> list[dict[str, Any]]:
    """Composition ``section`` elements; sections without entries are left out."""
    sections = []
    for template in section_templates(document.reduced_table):
        uuids = section_uuids(document, template.name)
        if not uuids:
            continue
        sections.append(
            {
                "title": {"__value": template.title},
                "code": template.coding(),
                "entry": [_reference(u) for u in uuids],
            }
        )
    return sections
