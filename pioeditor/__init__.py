"""
PIO Editor - Pflegeinformationsobjekt (PIO) document model

Reads KBV "Überleitungsbogen" FHIR XML bundles into an editable, path-keyed
document and writes them back, regenerating the Composition and the summary
resources on every export.

Main Components:
    - pioeditor.document: PioDocument, content and header stores, subtrees
    - pioeditor.transform: FHIR XML import and export
    - pioeditor.primitives: typed FHIR primitive values
    - pioeditor.schemas: full, reduced (PIO Small) and section tables
"""

from .document import PioDocument, PioError, PioExportError, PioReadError, SubTree
from .primitives import Primitive, PrimitiveKind, parse_primitive

__version__ = "1.0.0"

__all__ = [
    "PioDocument",
    "PioError",
    "PioExportError",
    "PioReadError",
    "Primitive",
    "PrimitiveKind",
    "SubTree",
    "parse_primitive",
]
