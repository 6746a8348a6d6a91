# pioeditor/transform/reader.py
"""Import transform: FHIR XML -> document content and header.

Only two conditions abort an import: a document without resource entries
and a document without a Bundle.  Everything else that cannot be mapped is
recorded on the document (``read_errors``, ``exclusions``) and the import
carries on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator, Optional

from ..document.header import GivenCategory, HeaderStore
from ..document.models import ImportIssue, PathKind, PioPathObject, PioReadError
from ..document.paths import MISSING, get_in, strip_marker_elements, tokenize
from ..primitives import (
    UUID_PREFIX,
    DateTimeValue,
    PrimitiveKind,
    PrimitiveParseError,
    StringValue,
    UuidValue,
    parse_primitive,
)
from ..schemas.table import ResourceSchema, strip_indices
from ..utils.logging import log_import_summary, log_truncated
from .constants import GIVEN_THINGS_SECTION_CODE, HEADER_ELEMENTS
from .xmltree import MARKUP_KEY, XMLNS_KEY, find_key, parse_xml

if TYPE_CHECKING:
    from ..document.document import PioDocument

logger = logging.getLogger(__name__)

MSG_NOT_IN_TABLE = "Path could not be found in look-up table (path does not match the PIO profile)"
MSG_NOT_PARSEABLE = "Could not parse string-value to primitive data type"
MSG_HEADER_UNSUPPORTED = "Header element is not stored by the document model"
MSG_HEADER_INVALID = "Could not parse bundle or composition header value"

_GIVEN_CATEGORIES = {c.value for c in GivenCategory}


# ---------------------------------------------------------------------------
# Small accessors over the parsed tree
# ---------------------------------------------------------------------------


def _first(node: Any) -> Any:
    if isinstance(node, list):
        return node[0] if node else None
    return node


def _as_list(node: Any) -> list:
    if node is None or node == "":
        return []
    return node if isinstance(node, list) else [node]


def _value_at(node: Any, *keys: str) -> Optional[str]:
    """``__value`` of the element reached by ``keys``, entering lists at item 0."""
    for key in keys:
        node = _first(node)
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    node = _first(node)
    if isinstance(node, dict):
        value = node.get("__value")
        return value if isinstance(value, str) else None
    return None


def profile_name(profile_url: str) -> str:
    """``https://.../KBV_PR_MIO_ULB_Patient|1.0.0`` -> ``KBV_PR_MIO_ULB_Patient``."""
    return profile_url.split("/")[-1].split("|")[0]


def _entry_identity(entry: Any) -> Optional[tuple[str, str, str, dict]]:
    """Return (uuid, fhir name, profile name, resource body) of a bundle entry."""
    if not isinstance(entry, dict):
        return None
    resource = entry.get("resource")
    if not isinstance(resource, dict) or not resource:
        return None
    fhir_name = next(iter(resource))
    body = resource[fhir_name]
    full_url = _value_at(entry, "fullUrl")
    profile = _value_at(body, "meta", "profile")
    if not full_url or not profile or not isinstance(body, dict):
        return None
    return full_url.split(":")[-1], fhir_name, profile_name(profile), body


# ---------------------------------------------------------------------------
# Header extraction
# ---------------------------------------------------------------------------


def _set_header(document: "PioDocument", label: str, raw: Optional[str], setter, kind) -> None:
    # UuidValue drops the urn:uuid: prefix itself.
    if raw is None:
        return
    try:
        value = kind.parse(raw)
    except PrimitiveParseError:
        document.read_errors.append(ImportIssue(path=label, message=MSG_HEADER_INVALID, data=raw))
        return
    setter(value)


def extract_bundle_information(bundle: dict, document: "PioDocument") -> None:
    header = document.header
    _set_header(document, "Bundle.id", _value_at(bundle, "id"), header.set_bundle_uuid, UuidValue)
    _set_header(
        document,
        "Bundle.identifier.value",
        _value_at(bundle, "identifier", "value"),
        header.set_bundle_identifier_uuid,
        UuidValue,
    )
    _set_header(
        document, "Bundle.timestamp", _value_at(bundle, "timestamp"),
        header.set_bundle_timestamp, DateTimeValue,
    )


def extract_composition_information(composition: dict, document: "PioDocument") -> None:
    header = document.header
    _set_header(
        document, "Composition.id", _value_at(composition, "id"),
        header.set_composition_uuid, UuidValue,
    )
    _set_header(
        document,
        "Composition.extension.valueReference.reference",
        _value_at(composition, "extension", "valueReference", "reference"),
        header.set_receiving_institution,
        UuidValue,
    )
    _set_header(
        document, "Composition.date", _value_at(composition, "date"),
        header.set_composition_date, DateTimeValue,
    )
    for author in _as_list(composition.get("author")):
        _set_header(
            document, "Composition.author.reference", _value_at(author, "reference"),
            header.add_author, UuidValue,
        )
    _set_header(
        document,
        "Composition.subject.reference",
        _value_at(composition, "subject", "reference"),
        header.set_patient,
        UuidValue,
    )


def extract_given_things(composition: dict, header: HeaderStore, tree: dict) -> None:
    """Register entries of the given-things section as given devices."""
    section = next(
        (
            s for s in _as_list(composition.get("section"))
            if _value_at(s, "code", "coding", "code") == GIVEN_THINGS_SECTION_CODE
        ),
        None,
    )
    if section is None:
        return
    given_uuids = {
        reference.split(":")[-1]
        for reference in (_value_at(e, "reference") for e in _as_list(section.get("entry")))
        if reference
    }
    if not given_uuids:
        return

    bundle = tree.get("Bundle")
    entries = bundle.get("entry") if isinstance(bundle, dict) else None
    for entry in _as_list(entries):
        identity = _entry_identity(entry)
        if identity is None:
            continue
        uuid, _, name, _ = identity
        if name in _GIVEN_CATEGORIES and uuid in given_uuids:
            header.add_given_device(uuid, name)


# ---------------------------------------------------------------------------
# Leaf paths
# ---------------------------------------------------------------------------


def iter_leaf_paths(node: Any, path: str) -> Iterator[str]:
    """Yield every leaf path below ``node``; a narrative ``div`` is one leaf."""
    if not isinstance(node, dict):
        yield path
        return
    for key, value in node.items():
        child = f"{path}.{key}"
        if key == "div" and isinstance(value, dict) and XMLNS_KEY in value:
            yield child
        elif isinstance(value, list):
            for index, item in enumerate(value):
                yield from iter_leaf_paths(item, f"{child}[{index}]")
        else:
            yield from iter_leaf_paths(value, child)


def classify_path(
    setting_path: str,
    schema: ResourceSchema,
    reduced: Optional[ResourceSchema],
) -> PioPathObject:
    """Classify one leaf path against the full and the reduced table."""
    searching_path = strip_indices(setting_path).rpartition(".")[0]
    segments = searching_path.split(".")
    if len(segments) > 1 and segments[1] in HEADER_ELEMENTS:
        kind, type_name = PathKind.HEADER, PrimitiveKind.STRING.value
    else:
        type_name = schema.type_of(searching_path)
        kind = PathKind.PRIMITIVE if type_name else PathKind.UNKNOWN
    in_reduced = reduced is not None and reduced.has_path(searching_path)
    if setting_path.split(".")[-1] == "div":
        searching_path = setting_path
    return PioPathObject(
        setting_path=setting_path,
        searching_path=searching_path,
        kind=kind,
        type_name=type_name,
        in_reduced=in_reduced,
    )


# ---------------------------------------------------------------------------
# Writing classified paths
# ---------------------------------------------------------------------------


def _write_header(document: "PioDocument", obj: PioPathObject, raw: Any, uuid: str, name: str) -> None:
    if obj.setting_path.split(".")[-1] not in ("div", "__value"):
        return
    if isinstance(raw, dict):
        raw = raw.get(MARKUP_KEY, "")
    marker = f"@{obj.searching_path.split('.')[-1]}@"
    path = f"{uuid}.{name}.{marker}"
    if not document.content.validator.is_valid(path):
        document.read_errors.append(
            ImportIssue(path=obj.setting_path, message=MSG_HEADER_UNSUPPORTED, data=raw, path_object=obj)
        )
        return
    document.content.set_value(path, StringValue(str(raw)))


def _write_primitive(document: "PioDocument", obj: PioPathObject, raw: Any, uuid: str) -> None:
    value = raw if isinstance(raw, str) else str(raw)
    try:
        kind = PrimitiveKind.from_type_name(obj.type_name or "")
        if kind is PrimitiveKind.STRING and UUID_PREFIX in value:
            value = value.replace(UUID_PREFIX, "", 1)
        primitive = parse_primitive(kind, value)
    except PrimitiveParseError:
        logger.debug("Unparseable %s value at %s: %r", obj.type_name, obj.setting_path, value)
        document.read_errors.append(
            ImportIssue(path=obj.setting_path, message=MSG_NOT_PARSEABLE, data=value, path_object=obj)
        )
        return
    document.content.set_value(f"{uuid}.{obj.setting_path.rpartition('.')[0]}", primitive)


def write_resource(
    document: "PioDocument",
    path_objects: list[PioPathObject],
    body: dict,
    name: str,
    uuid: str,
) -> None:
    """Store the classified leaf paths of one resource on ``document``."""
    for obj in path_objects:
        raw = get_in(body, tokenize(obj.setting_path)[1:])
        if raw is MISSING:
            raw = None

        if obj.kind is PathKind.UNKNOWN:
            logger.debug("Path not in schema table: %s", obj.setting_path)
            document.read_errors.append(
                ImportIssue(path=obj.setting_path, message=MSG_NOT_IN_TABLE, data=raw, path_object=obj)
            )
        elif not obj.is_header and not obj.in_reduced:
            logger.debug("Path excluded from PIO Small: %s", obj.setting_path)
            document.add_exclusion(uuid, strip_marker_elements(obj.setting_path), raw)
        elif obj.setting_path.endswith(XMLNS_KEY):
            continue
        elif obj.is_header:
            _write_header(document, obj, raw, uuid, name)
        else:
            _write_primitive(document, obj, raw, uuid)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def read_xml(document: "PioDocument", xml_text: str, source: str = "<string>") -> None:
    """Import ``xml_text`` into an empty ``document``.

    Raises
    ------
    PioReadError
        If the XML is malformed, holds no entries or holds no Bundle.
    """
    log_truncated(logger, f"Raw XML of {source}", xml_text)
    tree = parse_xml(xml_text)

    entries = find_key(tree, "entry")
    composition = find_key(tree, "Composition")
    bundle = find_key(tree, "Bundle")
    if not entries:
        raise PioReadError("No FHIR resources found")
    if not bundle:
        raise PioReadError("No Bundle found")

    resource_entries = [
        e for e in _as_list(entries)
        if not (isinstance(e, dict) and isinstance(e.get("resource"), dict)
                and next(iter(e["resource"]), None) == "Composition")
    ]

    if isinstance(bundle, dict):
        extract_bundle_information(bundle, document)
    if isinstance(composition, dict):
        extract_composition_information(composition, document)
        extract_given_things(composition, document.header, tree)

    table = document.schema_table
    reduced_table = document.reduced_table
    for entry in resource_entries:
        identity = _entry_identity(entry)
        if identity is None:
            logger.warning("Skipping bundle entry without fullUrl or meta.profile")
            continue
        uuid, fhir_name, name, body = identity
        schema = table.get(name)
        if schema is None:
            logger.warning('Resource "%s" not part of the PIO profile', name)
            continue
        path_objects = [
            classify_path(p, schema, reduced_table.get(name))
            for p in iter_leaf_paths(body, name)
        ]
        write_resource(document, path_objects, body, name, uuid)

    log_import_summary(
        logger,
        source=source,
        resources=len(document.content.uuids()),
        read_errors=len(document.read_errors),
        exclusions=document.exclusion_count,
    )
