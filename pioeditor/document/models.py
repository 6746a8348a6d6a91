# pioeditor/document/models.py
"""Exceptions and record models shared by the document and transform layers."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PioError(Exception):
    """Base class for all PIO editor errors."""


class PioReadError(PioError):
    """Raised when an XML document cannot be imported at all."""


class PioExportError(PioError):
    """Raised when a document cannot be exported to XML."""


class PathLookupError(PioError):
    """Raised when a path cannot be resolved in the content store."""


class PathNotFoundError(PathLookupError):
    """The addressed path does not exist."""


class NotPrimitiveError(PathLookupError):
    """The addressed path exists but does not hold a primitive value."""


class HeaderLookupError(PioError):
    """Raised when a document header field cannot be resolved."""


class AuthorNotFoundError(HeaderLookupError):
    """The author to delete is not in the author list."""


class ReceivingInstitutionNotSetError(HeaderLookupError):
    """No receiving institution is stated."""


# ---------------------------------------------------------------------------
# Import records
# ---------------------------------------------------------------------------


class PathKind(str, Enum):
    """Classification of a leaf path found while importing a resource."""

    HEADER = "header"
    PRIMITIVE = "primitive"
    UNKNOWN = "unknown"


class PioPathObject(BaseModel):
    """One leaf path of an imported resource together with its classification."""

    setting_path: str = Field(description="Path with indices and terminal marker")
    searching_path: str = Field(description="Path used for schema table lookups")
    kind: PathKind = PathKind.UNKNOWN
    type_name: Optional[str] = None
    in_reduced: bool = False

    @property
    def is_header(self) -> bool:
        return self.kind is PathKind.HEADER


class ImportIssue(BaseModel):
    """A path that could not be imported."""

    path: str
    message: str
    data: Any = None
    path_object: Optional[PioPathObject] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for display and JSON output."""
        return {
            "path": self.path,
            "message": self.message,
            "data": self.data,
        }
