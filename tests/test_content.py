# tests/test_content.py
"""Tests for the path validator and the content store."""

import pytest

P = "6a1a3c34-2f0b-4b8a-9c1d-1f2e3d4c5b6a"
O = "3e4f5a6b-7c8d-4e9f-a0b1-c2d3e4f5a6b7"


class TestPathValidator:
    """Test path validation against the schema table."""

    def test_indices_are_ignored(self):
        """Array indices do not affect validity."""
        from pioeditor.document.validator import PathValidator

        validator = PathValidator()
        assert validator.is_valid(f"{P}.KBV_PR_MIO_ULB_Patient.name[0].family")
        assert validator.is_valid(f"{P}.KBV_PR_MIO_ULB_Patient.name[3].family")

    def test_qualifiers_in_table_are_ignored(self):
        """Qualified table paths match their unqualified runtime form."""
        from pioeditor.document.validator import PathValidator

        assert PathValidator().is_valid(f"{P}.KBV_PR_MIO_ULB_Patient.identifier[0].value")

    def test_header_markers_are_valid(self):
        """Header markers directly under the resource type are valid."""
        from pioeditor.document.validator import PathValidator

        assert PathValidator().is_valid(f"{P}.KBV_PR_MIO_ULB_Patient.@div@")

    @pytest.mark.parametrize(
        "path",
        [
            "not-a-uuid.KBV_PR_MIO_ULB_Patient.gender",
            f"{P}.KBV_PR_MIO_ULB_Unknown.gender",
            f"{P}.KBV_PR_MIO_ULB_Patient.disabled",
            f"{P}.KBV_PR_MIO_ULB_Patient.@versionId@",
            P,
        ],
    )
    def test_invalid(self, path):
        """Unknown UUIDs, types, fields and markers are invalid."""
        from pioeditor.document.validator import PathValidator

        assert not PathValidator().is_valid(path)

    def test_validate_accumulates_once(self):
        """validate returns every invalid path but records each once."""
        from pioeditor.document.validator import PathValidator

        validator = PathValidator()
        bad = f"{P}.KBV_PR_MIO_ULB_Patient.disabled"
        good = f"{P}.KBV_PR_MIO_ULB_Patient.gender"
        assert validator.validate([bad, good, bad]) == [bad, bad]
        assert validator.validate(bad) == [bad]
        assert validator.invalid_paths == [bad]
        validator.clear()
        assert validator.invalid_paths == []


class TestContentStore:
    """Test value storage and enumeration in the content store."""

    def test_set_and_get(self):
        """A value is stored under __value and read back."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import CodeValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        assert store.get_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender").get() == "female"
        assert store.data[P]["KBV_PR_MIO_ULB_Patient"]["gender"] == {"__value": CodeValue("female")}
        assert store.validator.invalid_paths == []

    def test_invalid_path_is_written_and_recorded(self):
        """An invalid path is written anyway and recorded as invalid."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import BooleanValue

        store = ContentStore()
        path = f"{P}.KBV_PR_MIO_ULB_Patient.disabled"
        store.set_value(path, BooleanValue(True))
        assert store.get_value(path).get() is True
        assert store.validator.invalid_paths == [path]

    def test_extension_url_is_stored_under_url_marker(self):
        """Extension URLs are stored under __url."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import UriValue

        store = ContentStore()
        path = f"{P}.KBV_PR_MIO_ULB_Patient.extension[0]"
        store.set_value(path, UriValue("http://fhir.de/StructureDefinition/religion"))
        assert store.data[P]["KBV_PR_MIO_ULB_Patient"]["extension"] == [
            {"__url": UriValue("http://fhir.de/StructureDefinition/religion")}
        ]
        assert store.get_value(path).get() == "http://fhir.de/StructureDefinition/religion"

    def test_lookup_errors(self):
        """Missing paths and branch nodes raise distinct errors."""
        from pioeditor.document.content import ContentStore
        from pioeditor.document.models import NotPrimitiveError, PathNotFoundError
        from pioeditor.primitives import StringValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.name[0].family", StringValue("Schneider"))
        with pytest.raises(PathNotFoundError):
            store.get_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender")
        with pytest.raises(NotPrimitiveError):
            store.get_value(f"{P}.KBV_PR_MIO_ULB_Patient.name[0]")

    def test_delete_value(self):
        """Deleting a field prunes its empty parents but keeps the resource."""
        from pioeditor.document.content import ContentStore
        from pioeditor.document.models import PathNotFoundError
        from pioeditor.primitives import CodeValue, StringValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.name[0].family", StringValue("Schneider"))
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        store.delete_value(f"{P}.KBV_PR_MIO_ULB_Patient.name[0].family")
        assert store.data == {P: {"KBV_PR_MIO_ULB_Patient": {"gender": {"__value": CodeValue("female")}}}}
        with pytest.raises(PathNotFoundError):
            store.delete_value(f"{P}.KBV_PR_MIO_ULB_Patient.name[0].family")

    def test_delete_last_field_removes_resource(self):
        """A resource whose last leaf is deleted disappears from enumeration."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import CodeValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        store.delete_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender")
        assert store.data == {}
        assert store.all_uuids() == {}
        assert store.uuids_of_type("KBV_PR_MIO_ULB_Patient") == []

    def test_enumeration(self):
        """Enumeration skips keys that are not UUIDs."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import CodeValue, StringValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        store.set_value(f"{O}.KBV_PR_MIO_ULB_Organization.name[0]", StringValue("Sonnenhof"))
        store.data["scratch"] = {"x": {}}
        assert store.uuids() == [P, O]
        assert store.all_uuids() == {
            P: "KBV_PR_MIO_ULB_Patient",
            O: "KBV_PR_MIO_ULB_Organization",
        }
        assert store.uuids_of_type("KBV_PR_MIO_ULB_Organization") == [O]
        assert store.resource_type_of("missing") is None

    def test_delete_resources_of_type(self):
        """All resources of one type are removed together."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import CodeValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        assert store.delete_resources_of_type("KBV_PR_MIO_ULB_Patient") == 1
        assert store.all_uuids() == {}

    def test_prune_empty_resources(self):
        """Resources without leaf values are pruned and counted."""
        from pioeditor.document.content import ContentStore
        from pioeditor.primitives import CodeValue

        store = ContentStore()
        store.set_value(f"{P}.KBV_PR_MIO_ULB_Patient.gender", CodeValue("female"))
        store.set_node(f"{O}.KBV_PR_MIO_ULB_Organization", {"name": [{}]})
        assert O in store.all_uuids()
        assert store.prune_empty_resources() == 1
        assert list(store.all_uuids()) == [P]
