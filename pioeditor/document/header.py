# pioeditor/document/header.py
"""Bundle and composition metadata of one PIO."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..primitives import DateTimeValue, UuidValue
from .models import AuthorNotFoundError, ReceivingInstitutionNotSetError


class GivenCategory(str, Enum):
    """Resource types that can be handed over to the patient."""

    DEVICE_AID = "KBV_PR_MIO_ULB_Device_Aid"
    MEDICATION = "KBV_PR_MIO_ULB_Medication"
    SOURCE_OF_INFORMATION = "KBV_PR_MIO_ULB_Provenance_Source_of_Information"
    DEVICE = "KBV_PR_MIO_ULB_Device"
    OTHER_ITEM = "KBV_PR_MIO_ULB_Device_Other_Item"


CategoryLike = Union[GivenCategory, str]


def _empty_given_devices() -> dict[GivenCategory, list[str]]:
    return {category: [] for category in GivenCategory}


@dataclass
class HeaderData:
    """Bundle and Composition header fields of one document."""

    receiving_institution: Optional[UuidValue] = None
    patient: Optional[UuidValue] = None
    composition_date: Optional[DateTimeValue] = None
    bundle_timestamp: Optional[DateTimeValue] = None
    authors: list[UuidValue] = field(default_factory=list)
    bundle_uuid: Optional[UuidValue] = None
    bundle_identifier_uuid: Optional[UuidValue] = None
    composition_uuid: Optional[UuidValue] = None


class HeaderStore:
    """Header fields of the Bundle and Composition resources.

    Mutators return the store so calls can be chained::

        header.set_patient(UuidValue(p)).add_author(UuidValue(a))
    """

    def __init__(self) -> None:
        self.data = HeaderData()
        self.given: dict[GivenCategory, list[str]] = _empty_given_devices()

    # ── Receiving institution ──────────────────────────────────────

    def set_receiving_institution(self, uuid: UuidValue) -> "HeaderStore":
        self.data.receiving_institution = uuid
        return self

    def clear_receiving_institution(self) -> "HeaderStore":
        self.data.receiving_institution = None
        return self

    @property
    def receiving_institution(self) -> str:
        if self.data.receiving_institution is None:
            raise ReceivingInstitutionNotSetError("No receiving institution stated")
        return self.data.receiving_institution.get()

    @property
    def has_receiving_institution(self) -> bool:
        return self.data.receiving_institution is not None

    # ── Patient, dates, identifiers ────────────────────────────────

    def set_patient(self, uuid: UuidValue) -> "HeaderStore":
        self.data.patient = uuid
        return self

    @property
    def patient(self) -> Optional[UuidValue]:
        return self.data.patient

    def set_composition_date(self, value: DateTimeValue) -> "HeaderStore":
        self.data.composition_date = value
        return self

    @property
    def composition_date(self) -> Optional[DateTimeValue]:
        return self.data.composition_date

    def set_bundle_timestamp(self, value: DateTimeValue) -> "HeaderStore":
        self.data.bundle_timestamp = value
        return self

    @property
    def bundle_timestamp(self) -> Optional[DateTimeValue]:
        return self.data.bundle_timestamp

    def set_bundle_uuid(self, uuid: UuidValue) -> "HeaderStore":
        self.data.bundle_uuid = uuid
        return self

    @property
    def bundle_uuid(self) -> Optional[UuidValue]:
        return self.data.bundle_uuid

    def set_bundle_identifier_uuid(self, uuid: UuidValue) -> "HeaderStore":
        self.data.bundle_identifier_uuid = uuid
        return self

    @property
    def bundle_identifier_uuid(self) -> Optional[UuidValue]:
        return self.data.bundle_identifier_uuid

    def set_composition_uuid(self, uuid: UuidValue) -> "HeaderStore":
        self.data.composition_uuid = uuid
        return self

    @property
    def composition_uuid(self) -> Optional[UuidValue]:
        return self.data.composition_uuid

    # ── Authors ────────────────────────────────────────────────────

    def add_author(self, uuid: UuidValue) -> "HeaderStore":
        self.data.authors.append(uuid)
        return self

    def delete_author(self, uuid: str) -> "HeaderStore":
        if not self.data.authors:
            raise AuthorNotFoundError("No author existing")
        remaining = [a for a in self.data.authors if a.get() != uuid]
        if len(remaining) == len(self.data.authors):
            raise AuthorNotFoundError(f"Author {uuid} does not exist")
        self.data.authors = remaining
        return self

    def author_uuids(self) -> list[str]:
        return [a.get() for a in self.data.authors]

    # ── Given devices ──────────────────────────────────────────────

    def add_given_device(self, uuid: str, category: CategoryLike) -> "HeaderStore":
        uuids = self.given[GivenCategory(category)]
        if uuid not in uuids:
            uuids.append(uuid)
        return self

    def delete_given_device(self, uuid: str, category: CategoryLike) -> "HeaderStore":
        key = GivenCategory(category)
        self.given[key] = [u for u in self.given[key] if u != uuid]
        return self

    def given_devices(self, category: CategoryLike) -> list[str]:
        return list(self.given[GivenCategory(category)])

    def all_given_devices(self) -> dict[str, list[str]]:
        return {category.value: list(uuids) for category, uuids in self.given.items()}

    def clear_given_devices(self) -> None:
        self.given = _empty_given_devices()

    def clear(self) -> None:
        """Reset all header fields.  Given devices are kept."""
        self.data = HeaderData()
