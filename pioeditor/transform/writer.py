# pioeditor/transform/writer.py
"""Export transform: document content and header -> FHIR XML Bundle."""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..document.models import PioExportError
from ..document.paths import HEADER_MARKERS
from ..primitives import UUID_PREFIX, DateTimeValue, Primitive, UuidValue
from ..utils.logging import log_export_summary, log_truncated
from .constants import (
    BUNDLE_IDENTIFIER_SYSTEM,
    BUNDLE_PROFILE,
    BUNDLE_TYPE,
    COMPOSITION_NARRATIVE,
    COMPOSITION_PROFILE,
    COMPOSITION_RECEIVING_INSTITUTION_URL,
    COMPOSITION_STATUS,
    COMPOSITION_TEXT_STATUS,
    COMPOSITION_TITLE,
    COMPOSITION_TYPE,
    FHIR_NS,
    PATIENT_RESOURCE_NAME,
    XHTML_NS,
)
from .derived import generate_context_resources
from .sections import build_sections
from .xmltree import MARKUP_KEY, XMLNS_KEY, build_xml

if TYPE_CHECKING:
    from ..document.document import PioDocument

logger = logging.getLogger(__name__)


def _now() -> datetime:
    """Current local time at second precision, with its UTC offset."""
    return datetime.now().astimezone().replace(microsecond=0)


def _narrative(status: str, markup: str) -> dict[str, Any]:
    return {
        "status": {"__value": status},
        "div": {XMLNS_KEY: XHTML_NS, MARKUP_KEY: markup},
    }


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def stringify(node: Any) -> Any:
    """Copy of ``node`` with every primitive replaced by its wire string."""
    if isinstance(node, Primitive):
        return node.format()
    if isinstance(node, dict):
        return {key: stringify(value) for key, value in node.items()}
    if isinstance(node, list):
        return [stringify(item) for item in node]
    return node


def build_resource_entry(document: "PioDocument", uuid: str) -> dict[str, Any]:
    """Bundle entry of one stored resource, header first."""
    name = document.content.resource_type_of(uuid)
    schema = document.schema_table.get(name) if name else None
    if schema is None:
        raise PioExportError(f"Resource {uuid} has unknown resource type {name!r}")
    fhir_name = schema.fhir_resource_type

    body = copy.deepcopy(document.content.data[uuid][name])
    markers = {marker: body.pop(marker, None) for marker in HEADER_MARKERS}
    profile = markers["@profile@"].format() if markers["@profile@"] else schema.profile
    status = markers["@status@"].format() if markers["@status@"] else schema.status
    div = markers["@div@"].format() if markers["@div@"] else f"<h1>{fhir_name}</h1>"

    resource = {
        "id": {"__value": uuid},
        "meta": {"profile": {"__value": profile}},
        "text": _narrative(status, div),
    }
    resource.update(stringify(body))
    return {
        "fullUrl": {"__value": UUID_PREFIX + uuid},
        "resource": {fhir_name: resource},
    }


def transform_entries(document: "PioDocument") -> list[dict[str, Any]]:
    """Entries of all stored resources in store order.

    Raises
    ------
    PioExportError
        If any path written to the document is not schema-valid.
    """
    invalid = document.invalid_paths
    if invalid:
        raise PioExportError("Xml generation failed. Invalid paths detected: \n" + "\n".join(invalid))
    return [build_resource_entry(document, uuid) for uuid in document.content.uuids()]


# ---------------------------------------------------------------------------
# Bundle & Composition
# ---------------------------------------------------------------------------


def build_composition(document: "PioDocument") -> dict[str, Any]:
    header = document.header
    composition_uuid = header.composition_uuid
    extension = None
    if header.has_receiving_institution:
        extension = {
            "__url": COMPOSITION_RECEIVING_INSTITUTION_URL,
            "valueReference": {
                "reference": {"__value": UUID_PREFIX + header.receiving_institution},
            },
        }
    composition = {
        "id": {"__value": composition_uuid.get()},
        "meta": {"profile": {"__value": COMPOSITION_PROFILE}},
        "text": _narrative(COMPOSITION_TEXT_STATUS, COMPOSITION_NARRATIVE),
        "extension": extension,
        "status": {"__value": COMPOSITION_STATUS},
        "type": copy.deepcopy(COMPOSITION_TYPE),
        "subject": {"reference": {"__value": header.patient.format()}},
        "date": {"__value": header.composition_date.format()},
        "author": [{"reference": {"__value": a.format()}} for a in header.data.authors],
        "title": {"__value": COMPOSITION_TITLE},
        "section": build_sections(document),
    }
    return {
        "fullUrl": {"__value": composition_uuid.format()},
        "resource": {"Composition": composition},
    }


def build_bundle(document: "PioDocument") -> dict[str, Any]:
    header = document.header
    return {
        "Bundle": {
            XMLNS_KEY: FHIR_NS,
            "id": {"__value": header.bundle_uuid.get()},
            "meta": {"profile": {"__value": BUNDLE_PROFILE}},
            "identifier": {
                "system": {"__value": BUNDLE_IDENTIFIER_SYSTEM},
                "value": {"__value": header.bundle_identifier_uuid.format()},
            },
            "type": {"__value": BUNDLE_TYPE},
            "timestamp": {"__value": header.bundle_timestamp.format()},
            "entry": [build_composition(document), *transform_entries(document)],
        }
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def check_preconditions(document: "PioDocument") -> str:
    """Validate authors and patient; returns the patient UUID."""
    if not document.header.author_uuids():
        raise PioExportError("No author is stated but this information is mandatory")
    patients = document.content.uuids_of_type(PATIENT_RESOURCE_NAME)
    if not patients:
        raise PioExportError("No patient resource found but this resource is mandatory")
    if len(patients) > 1:
        raise PioExportError("More than one patient resource found. Just one is allowed")
    return patients[0]


def write_xml(document: "PioDocument") -> str:
    """Export ``document`` as a FHIR XML Bundle.

    Summary resources are regenerated and missing Bundle/Composition
    identifiers are generated; both changes stay on the document.

    Raises
    ------
    PioExportError
        On missing authors, a missing or duplicated patient, or invalid paths.
    """
    logger.info("Starting PIO export")
    document.content.prune_empty_resources()
    patient_uuid = check_preconditions(document)

    header = document.header
    header.set_patient(UuidValue(patient_uuid))
    if header.bundle_uuid is None:
        header.set_bundle_uuid(UuidValue(UuidValue.generate()))
    if header.bundle_identifier_uuid is None:
        header.set_bundle_identifier_uuid(UuidValue(UuidValue.generate()))
    if header.composition_uuid is None:
        header.set_composition_uuid(UuidValue(UuidValue.generate()))

    timestamp = DateTimeValue(_now())
    header.set_composition_date(timestamp)
    header.set_bundle_timestamp(timestamp)

    derived = generate_context_resources(document)
    document.content.prune_empty_resources()

    xml_text = build_xml(build_bundle(document))
    log_truncated(logger, "Exported XML", xml_text)
    log_export_summary(
        logger,
        resources=len(document.content.uuids()),
        derived=len(derived),
        characters=len(xml_text),
    )
    return xml_text
