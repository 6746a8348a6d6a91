"""In-memory PIO document: path-keyed content, header data, subtrees."""

from .content import ContentStore
from .document import PioDocument
from .header import GivenCategory, HeaderData, HeaderStore
from .models import (
    AuthorNotFoundError,
    HeaderLookupError,
    ImportIssue,
    NotPrimitiveError,
    PathKind,
    PathLookupError,
    PathNotFoundError,
    PioError,
    PioExportError,
    PioPathObject,
    PioReadError,
    ReceivingInstitutionNotSetError,
)
from .subtree import SubTree
from .validator import PathValidator

__all__ = [
    "AuthorNotFoundError",
    "ContentStore",
    "GivenCategory",
    "HeaderData",
    "HeaderLookupError",
    "HeaderStore",
    "ImportIssue",
    "NotPrimitiveError",
    "PathKind",
    "PathLookupError",
    "PathNotFoundError",
    "PathValidator",
    "PioDocument",
    "PioError",
    "PioExportError",
    "PioPathObject",
    "PioReadError",
    "ReceivingInstitutionNotSetError",
    "SubTree",
]
