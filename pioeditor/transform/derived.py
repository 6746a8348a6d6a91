# pioeditor/transform/derived.py
"""Summary resources derived from the document content on every export.

Each summary states whether resources of a related category exist
("allergies: present") and links to them.  They are deleted and written
anew by :func:`generate_context_resources`, so the user never edits them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..document.subtree import SubTree
from ..primitives import CodeValue, StringValue, UriValue, UuidValue
from .constants import PATIENT_RESOURCE_NAME, SNOMED_SYSTEM, SNOMED_VERSION

if TYPE_CHECKING:
    from ..document.document import PioDocument

logger = logging.getLogger(__name__)

HAS_MEMBER_EXTENSION_URL = "https://fhir.kbv.de/StructureDefinition/KBV_EX_MIO_ULB_Reference_Has_Member"


@dataclass(frozen=True)
class Coding:
    system: str
    version: str
    code: str
    display: str


def snomed(code: str, display: str) -> Coding:
    return Coding(SNOMED_SYSTEM, SNOMED_VERSION, code, display)


class LinkStyle(str, Enum):
    """How a summary resource references its sources."""

    FIRST_HAS_MEMBER = "hasMember.reference"  # first source only
    HAS_MEMBER = "hasMember[i].reference"
    RESULT = "result[i].reference"
    EXTENSION = "extension[i].valueReference.reference"


@dataclass(frozen=True)
class SummarySpec:
    resource_name: str
    sources: tuple[str, ...]
    code: Coding
    link: LinkStyle
    absent: Optional[Coding] = None
    present: Optional[Coding] = None
    only_with_sources: bool = False
    keep_if_value: Optional[str] = None


# ---------------------------------------------------------------------------
# Summary roster (generation order matters: it fixes the UUID order)
# ---------------------------------------------------------------------------

DISABILITY_DEGREE_UNKNOWN = "404684003:363713009=373068000,47429007=(21134002:363713009=272520006)"

SUMMARY_SPECS: tuple[SummarySpec, ...] = (
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Degree_Of_Disability_Available",
        sources=("KBV_PR_MIO_ULB_Observation_Degree_Of_Disability",),
        code=snomed(
            "363787002:704326004=(404684003:363713009=260411009,47429007=(21134002:363713009=272520006))",
            "Observable entity (observable entity) : Precondition (attribute) = ( Clinical finding (finding) : "
            "Has interpretation (attribute) = Presence findings (qualifier value) , Associated with (attribute) = "
            "( Disability (finding) : Has interpretation (attribute) = Degree findings (qualifier value) ) )",
        ),
        link=LinkStyle.FIRST_HAS_MEMBER,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Disability_Degree_Presence_Status",
            "1.0.0",
            "404684003:363713009=2667000,47429007=(21134002:363713009=272520006)",
            "Clinical finding (finding) : Has interpretation (attribute) = Absent (qualifier value) , "
            "Associated with (attribute) = ( Disability (finding) : Has interpretation (attribute) = "
            "Degree findings (qualifier value) )",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Disability_Degree_Presence_Status",
            "1.0.0",
            "404684003:363713009=52101004,47429007=(21134002:363713009=272520006)",
            "Clinical finding (finding) : Has interpretation (attribute) = Present (qualifier value) , "
            "Associated with (attribute) = ( Disability (finding) : Has interpretation (attribute) = "
            "Degree findings (qualifier value) )",
        ),
        keep_if_value=DISABILITY_DEGREE_UNKNOWN,
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Presence_Allergies",
        sources=("KBV_PR_MIO_ULB_AllergyIntolerance",),
        code=snomed(
            "363787002:704326004=420134006",
            "Observable entity (observable entity) : Precondition (attribute) = "
            "Propensity to adverse reaction (finding)",
        ),
        link=LinkStyle.EXTENSION,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Allergies",
            "1.0.0",
            "420134006:363713009=2667000",
            "Propensity to adverse reaction (finding) : Has interpretation (attribute) = Absent (qualifier value)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Allergies",
            "1.0.0",
            "420134006:363713009=52101004",
            "Propensity to adverse reaction (finding) : Has interpretation (attribute) = Present (qualifier value)",
        ),
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Presence_Functional_Assessment",
        sources=(
            "KBV_PR_MIO_ULB_Observation_Total_Barthel_Index",
            "KBV_PR_MIO_ULB_ClinicalImpression_Individual_Functions_Barthel",
            "KBV_PR_MIO_ULB_Observation_Assessment_Free",
        ),
        code=snomed(
            "363787002:704326004=105719004",
            "Observable entity (observable entity) : Precondition (attribute) = "
            "Body disability AND/OR failure state (finding)",
        ),
        link=LinkStyle.EXTENSION,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Allergies",
            "1.0.0",
            "373572006:246090004=105719004",
            "Clinical finding absent (situation) : Associated finding (attribute) = "
            "Body disability AND/OR failure state (finding)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Allergies",
            "1.0.0",
            "373573001:246090004=105719004",
            "Clinical finding present (situation) : Associated finding (attribute) = "
            "Body disability AND/OR failure state (finding)",
        ),
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Presence_Problems",
        sources=(
            "KBV_PR_MIO_ULB_Condition_Medical_Problem_Diagnosis",
            "KBV_PR_MIO_ULB_Condition_Care_Problem",
        ),
        code=snomed(
            "363787002:704326004=(404684003:47429007=55607006)",
            "Observable entity (observable entity) : Precondition (attribute) = ( Clinical finding (finding) : "
            "Associated with (attribute) = Problem (finding) )",
        ),
        link=LinkStyle.EXTENSION,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Problem_Presence",
            "1.0.0",
            "373572006:246090004=55607006",
            "Clinical finding absent (situation) : Associated finding (attribute) = Problem (finding)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Problem_Presence",
            "1.0.0",
            "373573001:246090004=55607006",
            "Clinical finding present (situation) : Associated finding (attribute) = Problem (finding)",
        ),
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Presence_Risks",
        sources=("KBV_PR_MIO_ULB_Observation_Risk",),
        code=snomed("102485007", "Personal risk factor (observable entity)"),
        link=LinkStyle.HAS_MEMBER,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Risk_Presence",
            "1.0.0",
            "373572006:246090004=281694009",
            "Clinical finding absent (situation) : Associated finding (attribute) = Finding of at risk (finding)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Risk_Presence",
            "1.0.0",
            "373573001:246090004=281694009",
            "Clinical finding present (situation) : Associated finding (attribute) = Finding of at risk (finding)",
        ),
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Presence_Information_Nutrition",
        sources=(
            "KBV_PR_MIO_ULB_Observation_Food_Type",
            "KBV_PR_MIO_ULB_Observation_Food_Administration_Form",
            "KBV_PR_MIO_ULB_Observation_Nutrition",
        ),
        code=snomed(
            "364393001:704321009=384760004",
            "Nutritional observable (observable entity) : Characterizes (attribute) = "
            "Feeding and dietary regime (regime/therapy)",
        ),
        link=LinkStyle.HAS_MEMBER,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Nutritional_Information",
            "1.0.0",
            "373572006:246090004=300893006",
            "Clinical finding absent (situation) : Associated finding (attribute) = Nutritional finding (finding)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Nutritional_Information",
            "1.0.0",
            "373573001:246090004=300893006",
            "Clinical finding present (situation) : Associated finding (attribute) = Nutritional finding (finding)",
        ),
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_DiagnosticReport_Vital_Signs_and_Body_Measures",
        sources=(
            "KBV_PR_MIO_ULB_Observation_Blood_Pressure",
            "KBV_PR_MIO_ULB_Observation_Body_Weight",
            "KBV_PR_MIO_ULB_Observation_Body_Height",
            "KBV_PR_MIO_ULB_Observation_Heart_Rate",
            "KBV_PR_MIO_ULB_Observation_Peripheral_Oxygen_Saturation",
            "KBV_PR_MIO_ULB_Observation_Respiratory_Rate",
            "KBV_PR_MIO_ULB_Observation_Body_Temperature",
            "KBV_PR_MIO_ULB_Observation_Glucose_Concentration",
            "KBV_PR_MIO_ULB_Observation_Assessment_Free",
        ),
        code=snomed("1184593002", "Vital sign document section (record artifact)"),
        link=LinkStyle.RESULT,
        only_with_sources=True,
    ),
    SummarySpec(
        resource_name="KBV_PR_MIO_ULB_Observation_Personal_Statements",
        sources=("KBV_PR_MIO_ULB_Consent_Statement",),
        code=snomed(
            "363787002:704325000=371538006",
            "Observable entity (observable entity): Relative to (attribute) = "
            "Advance directive report (record artifact)",
        ),
        link=LinkStyle.EXTENSION,
        absent=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Advance_Directive_Status",
            "1.0.0",
            "310301000:363713009=2667000",
            "Advance healthcare directive status (finding) : Has interpretation (attribute) = "
            "Absent (qualifier value)",
        ),
        present=Coding(
            "https://fhir.kbv.de/ValueSet/KBV_VS_MIO_ULB_Advance_Directive_Status",
            "1.0.0",
            "310301000:363713009=52101004",
            "Advance healthcare directive status (finding) : Has interpretation (attribute) = "
            "Present (qualifier value)",
        ),
    ),
)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def write_coding(subtree: SubTree, path: str, coding: Optional[Coding]) -> None:
    if coding is None:
        return
    subtree.set_value(f"{path}.system", UriValue(coding.system))
    subtree.set_value(f"{path}.version", StringValue(coding.version))
    subtree.set_value(f"{path}.code", CodeValue(coding.code))
    subtree.set_value(f"{path}.display", StringValue(coding.display))


def _write_links(subtree: SubTree, link: LinkStyle, uuids: list[str]) -> None:
    if link is LinkStyle.FIRST_HAS_MEMBER:
        if uuids:
            subtree.set_value("hasMember.reference", UuidValue(uuids[0]))
        return
    for index, uuid in enumerate(uuids):
        if link is LinkStyle.EXTENSION:
            subtree.set_value(f"extension[{index}]", UriValue(HAS_MEMBER_EXTENSION_URL))
            subtree.set_value(f"extension[{index}].valueReference.reference", UuidValue(uuid))
        elif link is LinkStyle.HAS_MEMBER:
            subtree.set_value(f"hasMember[{index}].reference", UuidValue(uuid))
        else:
            subtree.set_value(f"result[{index}].reference", UuidValue(uuid))


def _keeps_existing(document: "PioDocument", spec: SummarySpec) -> bool:
    if spec.keep_if_value is None:
        return False
    existing = document.content.uuids_of_type(spec.resource_name)
    if not existing:
        return False
    path = f"{existing[0]}.{spec.resource_name}.valueCodeableConcept.coding.code"
    return document.get_subtrees([path])[0].get_value_as_string() == spec.keep_if_value


def generate_summary(document: "PioDocument", spec: SummarySpec, patient_uuid: str) -> Optional[str]:
    """Regenerate one summary resource; returns its UUID or None if none was written."""
    if _keeps_existing(document, spec):
        logger.debug("Keeping %s with value %s", spec.resource_name, spec.keep_if_value)
        return None

    uuids = [u for source in spec.sources for u in document.content.uuids_of_type(source)]
    document.content.delete_resources_of_type(spec.resource_name)
    if spec.only_with_sources and not uuids:
        return None

    subtree = SubTree(f"{UuidValue.generate()}.{spec.resource_name}")
    subtree.set_value("status", CodeValue("final"))
    write_coding(subtree, "code.coding", spec.code)
    subtree.set_value("subject.reference", UuidValue(patient_uuid))
    write_coding(subtree, "valueCodeableConcept.coding", spec.present if uuids else spec.absent)
    _write_links(subtree, spec.link, uuids)
    document.save_subtrees([subtree])

    logger.debug("Generated %s %s with %d linked resources", spec.resource_name, subtree.uuid, len(uuids))
    return subtree.uuid


def generate_context_resources(document: "PioDocument") -> list[str]:
    """Regenerate every summary resource of ``document``.

    Requires exactly one patient resource.  Returns the UUIDs written.
    """
    patient_uuid = document.content.uuids_of_type(PATIENT_RESOURCE_NAME)[0]
    generated = []
    for spec in SUMMARY_SPECS:
        uuid = generate_summary(document, spec, patient_uuid)
        if uuid is not None:
            generated.append(uuid)
    return generated
