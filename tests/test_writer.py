# tests/test_writer.py
"""Tests for exporting a PioDocument as a FHIR XML Bundle."""

import pytest

from conftest import (
    ALLERGY,
    BUNDLE,
    COMPOSITION,
    DEVICE_AID,
    ORGANIZATION,
    PATIENT,
    PRACTITIONER,
    build_bundle_xml,
)

GENERATED = [f"00000000-0000-4000-8000-{n:012d}" for n in range(1, 20)]


def _parse(xml_text):
    from pioeditor.transform.xmltree import parse_xml

    return parse_xml(xml_text)["Bundle"]


def _composition(bundle):
    return bundle["entry"][0]["resource"]["Composition"]


class TestExport:
    """Test exporting a document as a Bundle."""

    def test_bundle_header(self, bundle_xml, fixed_clock):
        """The Bundle carries id, type, timestamp and profile."""
        from pioeditor.document import PioDocument

        xml_text = PioDocument.open(bundle_xml).to_xml()
        assert xml_text.startswith('<Bundle xmlns="http://hl7.org/fhir">')
        bundle = _parse(xml_text)
        assert bundle["id"] == {"__value": BUNDLE}
        assert bundle["type"] == {"__value": "document"}
        assert bundle["timestamp"] == {"__value": "2024-05-01T12:00:00Z"}
        assert bundle["meta"]["profile"]["__value"].endswith("KBV_PR_MIO_ULB_Bundle|1.0.0")

    def test_entries_in_store_order(self, bundle_xml, fixed_clock):
        """Composition first, then resources in store order, then summaries."""
        from pioeditor.document import PioDocument

        bundle = _parse(PioDocument.open(bundle_xml).to_xml())
        urls = [e["fullUrl"]["__value"] for e in bundle["entry"]]
        assert urls == [f"urn:uuid:{u}" for u in (
            COMPOSITION, PATIENT, PRACTITIONER, ORGANIZATION, ALLERGY, DEVICE_AID, *GENERATED[:7]
        )]

    def test_composition(self, bundle_xml, fixed_clock):
        """The Composition references patient, author and receiving institution."""
        from pioeditor.document import PioDocument

        composition = _composition(_parse(PioDocument.open(bundle_xml).to_xml()))
        assert composition["id"] == {"__value": COMPOSITION}
        assert composition["subject"]["reference"] == {"__value": f"urn:uuid:{PATIENT}"}
        assert composition["author"]["reference"] == {"__value": f"urn:uuid:{PRACTITIONER}"}
        assert composition["date"] == {"__value": "2024-05-01T12:00:00Z"}
        assert composition["title"] == {"__value": "Überleitungsbogen"}
        (extension,) = composition["extension"]
        assert extension["valueReference"]["reference"] == {"__value": f"urn:uuid:{ORGANIZATION}"}
        assert composition["type"]["coding"]["code"] == {"__value": "721919000"}

    def test_sections(self, bundle_xml, fixed_clock):
        """Sections follow template order and reference their resources."""
        from pioeditor.document import PioDocument

        composition = _composition(_parse(PioDocument.open(bundle_xml).to_xml()))
        sections = composition["section"]
        assert [s["title"]["__value"] for s in sections] == [
            "Grad der Behinderung",
            "Persönliche Erklärungen",
            "Probleme",
            "Risiken",
            "Ernährung",
            "Funktionsbeurteilungen",
            "Allergien/Unverträglichkeiten",
            "Mitgegebene Dokumente, Arzneimittel, Hilfsmittel, Gegenstände",
        ]
        allergies = sections[6]["entry"]
        assert [e["reference"]["__value"] for e in allergies] == [
            f"urn:uuid:{GENERATED[1]}",
            f"urn:uuid:{ALLERGY}",
        ]
        assert sections[-1]["entry"]["reference"] == {"__value": f"urn:uuid:{DEVICE_AID}"}

    def test_resource_header_is_written_first(self, bundle_xml, fixed_clock):
        """Each resource starts with id, meta and text."""
        from pioeditor.document import PioDocument

        bundle = _parse(PioDocument.open(bundle_xml).to_xml())
        patient = bundle["entry"][1]["resource"]["Patient"]
        assert list(patient)[:3] == ["id", "meta", "text"]
        assert patient["text"]["div"]["#markup"] == "<h1>Patient</h1>"
        assert patient["gender"] == {"__value": "female"}
        assert "maritalStatus" not in patient
        assert "deceasedBoolean" not in patient

    def test_generated_resource_uses_table_defaults(self, bundle_xml, fixed_clock):
        """Generated resources take profile and narrative from the table."""
        from pioeditor.document import PioDocument

        bundle = _parse(PioDocument.open(bundle_xml).to_xml())
        observation = bundle["entry"][7]["resource"]["Observation"]
        assert observation["meta"]["profile"]["__value"] == (
            "https://fhir.kbv.de/StructureDefinition/KBV_PR_MIO_ULB_Observation_Presence_Allergies|1.0.0"
        )
        assert observation["text"]["status"] == {"__value": "extensions"}
        assert observation["text"]["div"]["#markup"] == "<h1>Observation</h1>"
        assert observation["subject"]["reference"] == {"__value": f"urn:uuid:{PATIENT}"}

    def test_round_trip(self, bundle_xml, fixed_clock):
        """Re-importing an export reproduces content and header."""
        from pioeditor.document import PioDocument

        original = PioDocument.open(bundle_xml)
        reread = PioDocument.open(original.to_xml())

        assert reread.content.data[PATIENT] == original.content.data[PATIENT]
        assert reread.read_errors == []
        assert reread.exclusions == {}
        assert reread.all_uuids() == original.all_uuids()
        assert reread.header.author_uuids() == [PRACTITIONER]
        assert reread.header.receiving_institution == ORGANIZATION
        assert reread.header.given_devices("KBV_PR_MIO_ULB_Device_Aid") == [DEVICE_AID]

    def test_repeated_export_does_not_duplicate_summaries(self, bundle_xml):
        """Exporting twice keeps one instance of each summary."""
        from pioeditor.document import PioDocument

        doc = PioDocument.open(bundle_xml)
        doc.to_xml()
        count = len(doc.all_uuids())
        doc.to_xml()
        assert len(doc.all_uuids()) == count == 12
        assert len(doc.uuids_of_type("KBV_PR_MIO_ULB_Observation_Presence_Allergies")) == 1

    def test_missing_identifiers_are_generated(self, fixed_clock):
        """Missing Bundle and Composition identifiers are generated."""
        from pioeditor.document import PioDocument
        from pioeditor.primitives import CodeValue, UuidValue

        doc = PioDocument().set_value(f"{PATIENT}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("male"))
        doc.header.add_author(UuidValue(PRACTITIONER))
        bundle = _parse(doc.to_xml())

        assert doc.header.bundle_uuid.get() == GENERATED[0]
        assert bundle["identifier"][0]["value"] == {"__value": f"urn:uuid:{GENERATED[1]}"}
        assert bundle["entry"][0]["fullUrl"] == {"__value": f"urn:uuid:{GENERATED[2]}"}
        assert "extension" not in _composition(bundle)
        patient = bundle["entry"][1]["resource"]["Patient"]
        assert patient["meta"]["profile"]["__value"].endswith("KBV_PR_MIO_ULB_Patient|1.0.0")
        assert patient["text"]["div"]["#markup"] == "<h1>Patient</h1>"

    def test_allergy_summary_follows_content(self, bundle_xml):
        """The allergy summary flips to absent when allergies are removed."""
        from pioeditor.document import PioDocument

        summary = "KBV_PR_MIO_ULB_Observation_Presence_Allergies"
        doc = PioDocument.open(bundle_xml)
        doc.to_xml()
        (uuid,) = doc.uuids_of_type(summary)
        assert doc.get_value(f"{uuid}.{summary}.valueCodeableConcept.coding.code").get() == (
            "420134006:363713009=52101004"
        )

        doc.delete_resources_of_type("KBV_PR_MIO_ULB_AllergyIntolerance")
        doc.to_xml()
        (uuid,) = doc.uuids_of_type(summary)
        assert doc.get_value(f"{uuid}.{summary}.valueCodeableConcept.coding.code").get() == (
            "420134006:363713009=2667000"
        )
        assert not doc.content.has_path(f"{uuid}.{summary}.extension")

    def test_deleting_last_field_drops_resource(self, bundle_xml):
        """A resource emptied by path deletes is gone before any export."""
        from pioeditor.document import PioDocument
        from pioeditor.primitives import StringValue

        other = "0f1e2d3c-4b5a-4968-8776-655443322110"
        doc = PioDocument.open(bundle_xml)
        doc.set_value(f"{other}.KBV_PR_MIO_ULB_Organization.name[0]", StringValue("Sonnenhof"))
        doc.delete_value(f"{other}.KBV_PR_MIO_ULB_Organization.name[0]")
        assert other not in doc.all_uuids()
        assert doc.uuids_of_type("KBV_PR_MIO_ULB_Organization") == [ORGANIZATION]
        assert other not in doc.to_xml()

    def test_empty_resources_are_pruned(self, bundle_xml):
        """Export drops resources that hold no leaf value."""
        from pioeditor.document import PioDocument

        other = "0f1e2d3c-4b5a-4968-8776-655443322110"
        doc = PioDocument.open(bundle_xml)
        doc.content.set_node(f"{other}.KBV_PR_MIO_ULB_Organization", {"name": [{}]})
        assert other in doc.all_uuids()
        doc.to_xml()
        assert other not in doc.all_uuids()
        assert ORGANIZATION in doc.all_uuids()

    def test_export_summary_is_logged(self, bundle_xml, tmp_path):
        """Export writes a summary block to the session log."""
        from pioeditor.document import PioDocument
        from pioeditor.utils.logging import setup_logging

        log_file = setup_logging(level="INFO", log_dir=tmp_path / "logs")
        PioDocument.open(bundle_xml).to_xml()
        text = log_file.read_text(encoding="utf-8")
        assert "PIO EXPORT FINISHED" in text
        assert "Derived resources: 7" in text


class TestExportFailures:
    """Test the fatal export conditions."""

    def test_no_author(self):
        """Export without author raises."""
        from pioeditor.document import PioDocument, PioExportError

        doc = PioDocument.open(build_bundle_xml(with_author=False))
        with pytest.raises(PioExportError, match="No author is stated"):
            doc.to_xml()

    def test_no_patient(self, bundle_xml):
        """Export without patient raises."""
        from pioeditor.document import PioDocument, PioExportError

        doc = PioDocument.open(bundle_xml)
        doc.delete_resources_of_type("KBV_PR_MIO_ULB_Patient")
        with pytest.raises(PioExportError, match="No patient resource found"):
            doc.to_xml()

    def test_author_is_checked_before_patient(self):
        """The author check comes before the patient check."""
        from pioeditor.document import PioDocument, PioExportError

        with pytest.raises(PioExportError, match="No author is stated"):
            PioDocument().to_xml()

    def test_two_patients(self, bundle_xml):
        """Export with two patients raises."""
        from pioeditor.document import PioDocument, PioExportError
        from pioeditor.primitives import CodeValue

        doc = PioDocument.open(bundle_xml)
        other = "0f1e2d3c-4b5a-4968-8776-655443322110"
        doc.set_value(f"{other}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("male"))
        with pytest.raises(PioExportError, match="More than one patient resource found"):
            doc.to_xml()

    def test_invalid_paths_block_export(self, bundle_xml):
        """Recorded invalid paths block export and are listed."""
        from pioeditor.document import PioDocument, PioExportError
        from pioeditor.primitives import BooleanValue

        doc = PioDocument.open(bundle_xml)
        bad = f"{PATIENT}.KBV_PR_MIO_ULB_Patient.disabled"
        doc.set_value(bad, BooleanValue(True))
        with pytest.raises(PioExportError, match="Invalid paths detected") as excinfo:
            doc.to_xml()
        assert bad in str(excinfo.value)


class TestDocument:
    """Test document-level bookkeeping."""

    def test_summary(self, bundle_xml):
        """summary() reports the counts shown by the CLI."""
        from pioeditor.document import PioDocument

        summary = PioDocument.open(bundle_xml).summary()
        assert summary == {
            "resources": 5,
            "resource_types": {
                "KBV_PR_MIO_ULB_AllergyIntolerance": 1,
                "KBV_PR_MIO_ULB_Device_Aid": 1,
                "KBV_PR_MIO_ULB_Organization": 1,
                "KBV_PR_MIO_ULB_Patient": 1,
                "KBV_PR_MIO_ULB_Practitioner": 1,
            },
            "authors": 1,
            "given_devices": 1,
            "read_errors": 2,
            "exclusions": 2,
            "invalid_paths": 0,
        }

    def test_clear(self, bundle_xml):
        """clear() empties content, header, errors and exclusions."""
        from pioeditor.document import PioDocument

        doc = PioDocument.open(bundle_xml)
        doc.clear()
        assert doc.all_uuids() == {}
        assert doc.read_errors == []
        assert doc.exclusions == {}
        assert doc.exclusion_count == 0
        assert doc.header.author_uuids() == []
        assert doc.header.given_devices("KBV_PR_MIO_ULB_Device_Aid") == []

    def test_add_exclusion(self):
        """add_exclusion nests by resource and UUID and counts."""
        from pioeditor.document import PioDocument

        doc = PioDocument()
        doc.add_exclusion(PATIENT, "KBV_PR_MIO_ULB_Patient.maritalStatus.coding.code", "W")
        doc.add_exclusion(PATIENT, "KBV_PR_MIO_ULB_Patient.maritalStatus.coding.system", "urn:x")
        assert doc.exclusions["KBV_PR_MIO_ULB_Patient"][PATIENT] == {
            "KBV_PR_MIO_ULB_Patient.maritalStatus.coding.code": "W",
            "KBV_PR_MIO_ULB_Patient.maritalStatus.coding.system": "urn:x",
        }
        assert doc.exclusion_count == 2
