# pioeditor/document/content.py
"""Content store: resource data addressed by UUID and field path.

Layout of :attr:`ContentStore.data`::

    {
        "e029b2b8-5dc6-4feb-990a-7471fb9b54e3": {
            "KBV_PR_MIO_ULB_Patient": {
                "@profile@": StringValue("https://fhir.kbv.de/..."),
                "extension": [
                    {
                        "__url": UriValue("https://fhir.kbv.de/..."),
                        "valueString": {"__value": StringValue("römisch-katholisch")},
                    }
                ],
                "name": [{"family": {"__value": StringValue("Schneider")}}],
            }
        }
    }

Primitives live under ``__value``, extension URLs under ``__url`` and the
resource header under the ``@id@``/``@profile@``/``@status@``/``@div@``
markers.  The ``__`` prefix turns into an XML attribute on export.
"""

from __future__ import annotations

from typing import Any, Optional

from ..primitives import Primitive, is_valid_uuid
from .models import NotPrimitiveError, PathNotFoundError
from .paths import (
    MISSING,
    URL_MARKER,
    VALUE_MARKER,
    delete_in,
    get_in,
    has_leaves,
    is_header_path,
    set_in,
    tokenize,
    with_marker,
)
from .validator import PathValidator


def primitive_at(node: Any, path: str) -> Primitive:
    """Unwrap the primitive held by ``node``, the node found at ``path``."""
    if node is MISSING or node is None:
        raise PathNotFoundError(f"Path does not exist: {path}")
    if is_header_path(path):
        value = node
    elif "extension" in path.split(".")[-1]:
        value = node.get(URL_MARKER) if isinstance(node, dict) else None
    else:
        value = node.get(VALUE_MARKER) if isinstance(node, dict) else None
    if not isinstance(value, Primitive):
        raise NotPrimitiveError(f"Path does not point to a primitive value: {path}")
    return value


class ContentStore:
    """Nested ``uuid -> resource type -> fields`` mapping with path access."""

    def __init__(self, validator: Optional[PathValidator] = None) -> None:
        self.data: dict[str, dict[str, Any]] = {}
        self.validator = validator or PathValidator()

    # -- writes ---------------------------------------------------------------

    def set_value(self, path: str, value: Primitive) -> "ContentStore":
        """Store ``value`` at ``path`` and record whether the path is schema-valid.

        The write happens regardless of the validation outcome; invalid paths
        only block export.
        """
        set_in(self.data, tokenize(with_marker(path)), value)
        self.validator.validate(path)
        return self

    def set_node(self, path: str, node: Any) -> None:
        """Replace the whole branch at ``path`` (no marker, no validation)."""
        set_in(self.data, tokenize(path), node)

    def delete_value(self, path: str) -> None:
        """Remove the node at ``path`` and prune containers left empty.

        A resource left without any leaf value is removed as well.
        """
        tokens = tokenize(path)
        if not delete_in(self.data, tokens, keep=2):
            raise PathNotFoundError(f"Path does not exist: {path}")
        uuid = tokens[0]
        resource_type = self.resource_type_of(uuid)
        if resource_type is None or not has_leaves(self.data[uuid][resource_type]):
            self.data.pop(uuid, None)

    def delete_resource(self, uuid: str) -> bool:
        return self.data.pop(uuid, None) is not None

    def clear(self) -> None:
        self.data = {}

    # -- reads ----------------------------------------------------------------

    def get_node(self, path: str) -> Any:
        """Return the raw node at ``path`` or :data:`~pioeditor.document.paths.MISSING`."""
        return get_in(self.data, tokenize(path))

    def get_value(self, path: str) -> Primitive:
        return primitive_at(self.get_node(path), path)

    def has_path(self, path: str) -> bool:
        return self.get_node(path) is not MISSING

    # -- enumeration ------------------------------------------------------------

    def uuids(self) -> list[str]:
        """All resource UUIDs in insertion order; non-UUID keys are ignored."""
        return [key for key in self.data if is_valid_uuid(key)]

    def resource_type_of(self, uuid: str) -> Optional[str]:
        resource = self.data.get(uuid)
        if not isinstance(resource, dict) or not resource:
            return None
        return next(iter(resource))

    def uuids_of_type(self, resource_type: str) -> list[str]:
        return [u for u in self.uuids() if self.resource_type_of(u) == resource_type]

    def all_uuids(self) -> dict[str, str]:
        result: dict[str, str] = {}
        for uuid in self.uuids():
            resource_type = self.resource_type_of(uuid)
            if resource_type is not None:
                result[uuid] = resource_type
        return result

    # -- maintenance ----------------------------------------------------------

    def delete_resources_of_type(self, resource_type: str) -> int:
        doomed = self.uuids_of_type(resource_type)
        for uuid in doomed:
            del self.data[uuid]
        return len(doomed)

    def prune_empty_resources(self) -> int:
        """Delete resources without any leaf value; returns how many were deleted."""
        doomed = []
        for uuid, resource in self.data.items():
            resource_type = next(iter(resource), None) if isinstance(resource, dict) else None
            if resource_type is None or not has_leaves(resource[resource_type]):
                doomed.append(uuid)
        for uuid in doomed:
            del self.data[uuid]
        return len(doomed)
