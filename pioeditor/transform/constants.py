# pioeditor/transform/constants.py
"""Fixed values of the Bundle and Composition wrappers."""

from __future__ import annotations

PATIENT_RESOURCE_NAME = "KBV_PR_MIO_ULB_Patient"

FHIR_NS = "http://hl7.org/fhir"
XHTML_NS = "http://www.w3.org/1999/xhtml"

BUNDLE_PROFILE = "https://fhir.kbv.de/StructureDefinition/KBV_PR_MIO_ULB_Bundle|1.0.0"
BUNDLE_IDENTIFIER_SYSTEM = "urn:ietf:rfc:3986"
BUNDLE_TYPE = "document"

COMPOSITION_PROFILE = "https://fhir.kbv.de/StructureDefinition/KBV_PR_MIO_ULB_Composition|1.0.0"
COMPOSITION_TEXT_STATUS = "extensions"
COMPOSITION_NARRATIVE = "<h1>Composition</h1>"
COMPOSITION_RECEIVING_INSTITUTION_URL = (
    "https://fhir.kbv.de/StructureDefinition/KBV_EX_MIO_ULB_Reference_Receiving_Institution"
)
COMPOSITION_STATUS = "final"
COMPOSITION_TITLE = "Überleitungsbogen"

SNOMED_SYSTEM = "http://snomed.info/sct"
SNOMED_VERSION = "http://snomed.info/sct/900000000000207008/version/20220331"

COMPOSITION_TYPE = {
    "coding": {
        "system": {"__value": SNOMED_SYSTEM},
        "version": {"__value": SNOMED_VERSION},
        "code": {"__value": "721919000"},
        "display": {"__value": "Nurse discharge summary (record artifact)"},
    }
}

# Code of the composition section listing things handed over to the patient.
GIVEN_THINGS_SECTION_CODE = "363787002:704326004=(404684003:47429007=49062001,363713009=52101004)"
GIVEN_THINGS_SECTION = "mitgegebeneDokumenteArzneimittelHilfsmittelGegenstaende"

# Resource elements that make up the resource header.
HEADER_ELEMENTS = ("id", "meta", "text")
