# tests/conftest.py
"""Shared fixtures: a small but complete Überleitungsbogen bundle."""

import logging
from datetime import datetime
from itertools import count

import pytest

PATIENT = "6a1a3c34-2f0b-4b8a-9c1d-1f2e3d4c5b6a"
PRACTITIONER = "9d2c1e7a-5b4f-4d3e-8a2b-7c6d5e4f3a2b"
ORGANIZATION = "3e4f5a6b-7c8d-4e9f-a0b1-c2d3e4f5a6b7"
ALLERGY = "c1d2e3f4-a5b6-4c7d-8e9f-0a1b2c3d4e5f"
DEVICE_AID = "7f6e5d4c-3b2a-4190-8f7e-6d5c4b3a2910"
BUNDLE = "1b2c3d4e-5f6a-4b7c-8d9e-0f1a2b3c4d5e"
BUNDLE_IDENTIFIER = "2c3d4e5f-6a7b-4c8d-9e0f-1a2b3c4d5e6f"
COMPOSITION = "4d5e6f7a-8b9c-4d0e-8f1a-2b3c4d5e6f7a"

SD = "https://fhir.kbv.de/StructureDefinition"
XHTML = "http://www.w3.org/1999/xhtml"
GIVEN_THINGS_CODE = "363787002:704326004=(404684003:47429007=49062001,363713009=52101004)"


def _resource(uuid: str, fhir_name: str, profile: str, body: str) -> str:
    return f"""
  <entry>
    <fullUrl value="urn:uuid:{uuid}"/>
    <resource>
      <{fhir_name}>
        <id value="{uuid}"/>
        <meta>
          <profile value="{SD}/{profile}|1.0.0"/>
        </meta>
        <text>
          <status value="extensions"/>
          <div xmlns="{XHTML}"><h1>{fhir_name}</h1></div>
        </text>
        {body}
      </{fhir_name}>
    </resource>
  </entry>"""


COMPOSITION_ENTRY = f"""
  <entry>
    <fullUrl value="urn:uuid:{COMPOSITION}"/>
    <resource>
      <Composition>
        <id value="{COMPOSITION}"/>
        <meta>
          <profile value="{SD}/KBV_PR_MIO_ULB_Composition|1.0.0"/>
        </meta>
        <extension url="{SD}/KBV_EX_MIO_ULB_Receiving_Institution">
          <valueReference>
            <reference value="urn:uuid:{ORGANIZATION}"/>
          </valueReference>
        </extension>
        <status value="final"/>
        <subject>
          <reference value="urn:uuid:{PATIENT}"/>
        </subject>
        <date value="2023-11-02T09:30:00Z"/>
        <author>
          <reference value="urn:uuid:{PRACTITIONER}"/>
        </author>
        <title value="Überleitungsbogen"/>
        <section>
          <title value="Mitgegebene Dokumente, Arzneimittel, Hilfsmittel und Gegenstände"/>
          <code>
            <coding>
              <system value="http://snomed.info/sct"/>
              <code value="{GIVEN_THINGS_CODE}"/>
            </coding>
          </code>
          <entry>
            <reference value="urn:uuid:{DEVICE_AID}"/>
          </entry>
        </section>
      </Composition>
    </resource>
  </entry>"""

PATIENT_BODY = """
        <extension url="http://fhir.de/StructureDefinition/religion">
          <valueString value="römisch-katholisch"/>
        </extension>
        <name>
          <use value="official"/>
          <family value="Schneider"/>
          <given value="Anna"/>
        </name>
        <gender value="female"/>
        <birthDate value="1941-03-12"/>
        <deceasedBoolean value="maybe"/>
        <maritalStatus>
          <coding>
            <system value="http://hl7.org/fhir/ValueSet/marital-status"/>
            <code value="W"/>
          </coding>
        </maritalStatus>
        <active value="true"/>"""


def build_bundle_xml(*, with_author: bool = True) -> str:
    composition = COMPOSITION_ENTRY
    if not with_author:
        composition = composition.replace(
            f'<author>\n          <reference value="urn:uuid:{PRACTITIONER}"/>\n        </author>', ""
        )
    entries = "".join(
        [
            composition,
            _resource(PATIENT, "Patient", "KBV_PR_MIO_ULB_Patient", PATIENT_BODY),
            _resource(
                PRACTITIONER, "Practitioner", "KBV_PR_MIO_ULB_Practitioner",
                '<name><family value="Weber"/><given value="Jonas"/></name>',
            ),
            _resource(
                ORGANIZATION, "Organization", "KBV_PR_MIO_ULB_Organization",
                '<name value="Pflegeheim Sonnenhof"/>',
            ),
            _resource(
                ALLERGY, "AllergyIntolerance", "KBV_PR_MIO_ULB_AllergyIntolerance",
                f'<code><text value="Penicillin"/></code>'
                f'<patient><reference value="urn:uuid:{PATIENT}"/></patient>',
            ),
            _resource(
                DEVICE_AID, "Device", "KBV_PR_MIO_ULB_Device_Aid",
                f'<deviceName><name value="Rollator"/><type value="user-friendly-name"/></deviceName>'
                f'<patient><reference value="urn:uuid:{PATIENT}"/></patient>',
            ),
            _resource(
                "5e6f7a8b-9c0d-4e1f-9a2b-3c4d5e6f7a8b", "Basic", "KBV_PR_MIO_ULB_Not_Modelled",
                '<code><text value="ignored"/></code>',
            ),
        ]
    )
    return f"""<Bundle xmlns="http://hl7.org/fhir">
  <id value="{BUNDLE}"/>
  <meta>
    <profile value="{SD}/KBV_PR_MIO_ULB_Bundle|1.0.0"/>
  </meta>
  <identifier>
    <system value="urn:ietf:rfc:3986"/>
    <value value="urn:uuid:{BUNDLE_IDENTIFIER}"/>
  </identifier>
  <type value="document"/>
  <timestamp value="2023-11-02T09:30:00Z"/>{entries}
</Bundle>
"""


@pytest.fixture
def bundle_xml():
    return build_bundle_xml()


@pytest.fixture
def bundle_file(tmp_path, bundle_xml):
    path = tmp_path / "ueberleitungsbogen.xml"
    path.write_text(bundle_xml, encoding="utf-8")
    return path


@pytest.fixture
def fixed_clock(monkeypatch):
    """Freeze the export timestamp and make generated UUIDs predictable."""
    from pioeditor.primitives import UuidValue

    now = datetime(2024, 5, 1, 12, 0, 0)
    counter = count(1)
    monkeypatch.setattr("pioeditor.transform.writer._now", lambda: now)
    monkeypatch.setattr(
        UuidValue, "generate",
        staticmethod(lambda: f"00000000-0000-4000-8000-{next(counter):012d}"),
    )
    return now


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """Keep logs in tmp_path and start every test with fresh config and tables."""
    from pioeditor.config import get_config
    from pioeditor.schemas.table import clear_table_cache

    monkeypatch.setenv("PIOEDITOR_LOG_DIR", str(tmp_path / "logs"))
    get_config.cache_clear()
    clear_table_cache()
    yield
    get_config.cache_clear()
    clear_table_cache()
    root = logging.getLogger("pioeditor")
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for f in root.filters[:]:
        root.removeFilter(f)
    root.propagate = True
