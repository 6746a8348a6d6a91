# pioeditor/primitives.py
"""Primitive value kinds stored at the leaves of a PIO document.

Every leaf in the content store is one of a closed set of primitive kinds.
Each kind knows how to parse its wire string and how to format itself back
to that string; ``parse(format(v)) == v`` holds for every kind.

The schema table names kinds by their table type names (``StringPIO``,
``DateTimePIO``, ...).  Use :func:`parse_primitive` to go from a table type
name plus a raw string to a typed value.
"""

from __future__ import annotations

import base64
import binascii
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar, Union

UUID_PREFIX = "urn:uuid:"

_UUID_RE = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
    r"|00000000-0000-0000-0000-000000000000)$",
    re.IGNORECASE,
)
_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CODE_RE = re.compile(r"^\S+( \S+)*$")


class PrimitiveParseError(ValueError):
    """Raised when a raw string cannot be parsed into a primitive kind."""


def is_valid_uuid(value: str) -> bool:
    """Return True for a syntactically valid RFC 4122 UUID string."""
    return isinstance(value, str) and bool(_UUID_RE.match(value))


class PrimitiveKind(str, Enum):
    """Closed set of primitive kinds, valued by their schema-table type name."""

    STRING = "StringPIO"
    CODE = "CodePIO"
    URI = "UriPIO"
    UUID = "UuidPIO"
    DATE = "DatePIO"
    DATE_TIME = "DateTimePIO"
    BOOLEAN = "BooleanPIO"
    INTEGER = "IntegerPIO"
    UNSIGNED_INTEGER = "UnsignedIntegerPIO"
    POSITIVE_INTEGER = "PositiveIntegerPIO"
    DECIMAL = "DecimalPIO"
    BINARY = "BinaryPIO"

    @classmethod
    def from_type_name(cls, type_name: str) -> "PrimitiveKind":
        """Resolve a schema-table type name, honouring legacy aliases."""
        name = TYPE_ALIASES.get(type_name, type_name)
        try:
            return cls(name)
        except ValueError:
            raise PrimitiveParseError(f"Unknown primitive data type: {type_name}") from None


# Older tables use these names for kinds that share a canonical form.
TYPE_ALIASES: dict[str, str] = {
    "Base64BinaryPIO": "BinaryPIO",
    "UrlPIO": "UriPIO",
}


# ---------------------------------------------------------------------------
# Value classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Primitive:
    """Base class for typed leaf values."""

    value: Any
    kind: ClassVar[PrimitiveKind]

    def __str__(self) -> str:
        return self.format()

    def get(self) -> Any:
        return self.value

    def format(self) -> str:
        return str(self.value)

    @classmethod
    def parse(cls, text: str) -> "Primitive":
        return cls(text)


@dataclass(frozen=True)
class StringValue(Primitive):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.STRING

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise PrimitiveParseError(f"String value expected, got {type(self.value).__name__}")


@dataclass(frozen=True)
class CodeValue(StringValue):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.CODE

    def __post_init__(self) -> None:
        super().__post_init__()
        if not _CODE_RE.match(self.value):
            raise PrimitiveParseError(f"Invalid code: {self.value!r}")


@dataclass(frozen=True)
class UriValue(StringValue):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.URI

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.value or any(ch.isspace() for ch in self.value):
            raise PrimitiveParseError(f"Invalid uri: {self.value!r}")


@dataclass(frozen=True)
class UuidValue(Primitive):
    """A resource reference; formats as ``urn:uuid:<uuid>``."""

    kind: ClassVar[PrimitiveKind] = PrimitiveKind.UUID

    def __post_init__(self) -> None:
        raw = str(self.value)
        if raw.startswith(UUID_PREFIX):
            raw = raw[len(UUID_PREFIX):]
        if not is_valid_uuid(raw):
            raise PrimitiveParseError(f"Invalid uuid: {self.value!r}")
        object.__setattr__(self, "value", raw.lower())

    def format(self) -> str:
        return UUID_PREFIX + self.value

    @staticmethod
    def generate() -> str:
        """Return a fresh random (version 4) UUID string."""
        return str(uuid.uuid4())


@dataclass(frozen=True)
class DateValue(Primitive):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.DATE

    def __post_init__(self) -> None:
        if isinstance(self.value, datetime) or not isinstance(self.value, date):
            raise PrimitiveParseError(f"Date value expected, got {self.value!r}")

    def format(self) -> str:
        return self.value.strftime("%Y-%m-%d")

    @classmethod
    def parse(cls, text: str) -> "DateValue":
        if not _DATE_RE.match(text or ""):
            raise PrimitiveParseError(f"Invalid date: {text!r}")
        try:
            return cls(date.fromisoformat(text))
        except ValueError as exc:
            raise PrimitiveParseError(f"Invalid date: {text!r}") from exc


@dataclass(frozen=True)
class DateTimeValue(Primitive):
    """UTC date-time at second precision, written with a ``Z`` suffix.

    Aware values are converted to UTC; naive values are taken as UTC already.
    """

    kind: ClassVar[PrimitiveKind] = PrimitiveKind.DATE_TIME

    def __post_init__(self) -> None:
        if not isinstance(self.value, datetime):
            raise PrimitiveParseError(f"Datetime value expected, got {self.value!r}")
        value = self.value
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        object.__setattr__(self, "value", value.replace(microsecond=0, tzinfo=None))

    def format(self) -> str:
        return self.value.strftime("%Y-%m-%dT%H:%M:%SZ")

    @classmethod
    def parse(cls, text: str) -> "DateTimeValue":
        raw = (text or "").strip()
        if "T" not in raw:
            raise PrimitiveParseError(f"Invalid datetime: {text!r}")
        if raw.endswith("Z"):
            raw = raw[:-1]
        try:
            return cls(datetime.fromisoformat(raw))
        except ValueError as exc:
            raise PrimitiveParseError(f"Invalid datetime: {text!r}") from exc


@dataclass(frozen=True)
class BooleanValue(Primitive):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.BOOLEAN

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise PrimitiveParseError(f"Boolean value expected, got {self.value!r}")

    def format(self) -> str:
        return "true" if self.value else "false"

    @classmethod
    def parse(cls, text: str) -> "BooleanValue":
        if text == "true":
            return cls(True)
        if text == "false":
            return cls(False)
        raise PrimitiveParseError(f"Invalid boolean: {text!r}")


@dataclass(frozen=True)
class IntegerValue(Primitive):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.INTEGER
    minimum: ClassVar[Union[int, None]] = None

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise PrimitiveParseError(f"Integer value expected, got {self.value!r}")
        if self.minimum is not None and self.value < self.minimum:
            raise PrimitiveParseError(f"{self.kind.value} must be >= {self.minimum}, got {self.value}")

    @classmethod
    def parse(cls, text: str) -> "IntegerValue":
        if not _INTEGER_RE.match(text or ""):
            raise PrimitiveParseError(f"Invalid integer: {text!r}")
        return cls(int(text))


@dataclass(frozen=True)
class UnsignedIntegerValue(IntegerValue):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.UNSIGNED_INTEGER
    minimum: ClassVar[Union[int, None]] = 0


@dataclass(frozen=True)
class PositiveIntegerValue(IntegerValue):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.POSITIVE_INTEGER
    minimum: ClassVar[Union[int, None]] = 1


@dataclass(frozen=True)
class DecimalValue(Primitive):
    kind: ClassVar[PrimitiveKind] = PrimitiveKind.DECIMAL

    def __post_init__(self) -> None:
        value = self.value
        if isinstance(value, bool):
            raise PrimitiveParseError(f"Decimal value expected, got {value!r}")
        if isinstance(value, (int, float)):
            value = Decimal(str(value))
        if not isinstance(value, Decimal) or not value.is_finite():
            raise PrimitiveParseError(f"Decimal value expected, got {self.value!r}")
        object.__setattr__(self, "value", value)

    @classmethod
    def parse(cls, text: str) -> "DecimalValue":
        try:
            return cls(Decimal(text))
        except (InvalidOperation, TypeError) as exc:
            raise PrimitiveParseError(f"Invalid decimal: {text!r}") from exc


@dataclass(frozen=True)
class BinaryValue(Primitive):
    """Base64 encoded content, kept in its encoded form."""

    kind: ClassVar[PrimitiveKind] = PrimitiveKind.BINARY

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise PrimitiveParseError(f"Base64 string expected, got {type(self.value).__name__}")
        try:
            base64.b64decode(self.value, validate=True)
        except binascii.Error as exc:
            raise PrimitiveParseError(f"Invalid base64 content: {exc}") from exc

    @classmethod
    def from_bytes(cls, payload: bytes) -> "BinaryValue":
        return cls(base64.b64encode(payload).decode("ascii"))

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.value)


PRIMITIVE_CLASSES: dict[PrimitiveKind, type[Primitive]] = {
    PrimitiveKind.STRING: StringValue,
    PrimitiveKind.CODE: CodeValue,
    PrimitiveKind.URI: UriValue,
    PrimitiveKind.UUID: UuidValue,
    PrimitiveKind.DATE: DateValue,
    PrimitiveKind.DATE_TIME: DateTimeValue,
    PrimitiveKind.BOOLEAN: BooleanValue,
    PrimitiveKind.INTEGER: IntegerValue,
    PrimitiveKind.UNSIGNED_INTEGER: UnsignedIntegerValue,
    PrimitiveKind.POSITIVE_INTEGER: PositiveIntegerValue,
    PrimitiveKind.DECIMAL: DecimalValue,
    PrimitiveKind.BINARY: BinaryValue,
}


def parse_primitive(kind: Union[PrimitiveKind, str], text: str) -> Primitive:
    """Parse ``text`` into the primitive kind named by ``kind``.

    Raises
    ------
    PrimitiveParseError
        If the kind is unknown or the text is not valid for it.
    """
    if not isinstance(kind, PrimitiveKind):
        kind = PrimitiveKind.from_type_name(kind)
    if not isinstance(text, str):
        raise PrimitiveParseError(f"{kind.value} expects a string, got {type(text).__name__}")
    return PRIMITIVE_CLASSES[kind].parse(text)


def is_primitive(value: Any) -> bool:
    return isinstance(value, Primitive)
