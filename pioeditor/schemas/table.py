"""Resource schema tables: discovery via YAML file loading.

Three tables drive the document model:

- the **full table** (``tables/resources.yaml``): every resource type the
  editor knows, its FHIR resource type, default profile/status and every
  valid field path with its primitive type;
- the **reduced table** (``tables/reduced.yaml``): the "PIO Small" subset of
  paths that survive import, plus the fixed-value composition section
  templates;
- the **section table** (``tables/sections.yaml``): which resource types a
  composition section collects.

Paths in the YAML files are written relative to their resource and may carry
qualifier suffixes (``identifier:pid.value``).  Runtime paths never carry
qualifiers, so each :class:`SchemaPath` stores a normalized form as well.

The bundled tables are loaded once per process; paths configured through
``PIOEDITOR_SCHEMA_TABLE_PATH`` and friends replace them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from ..config import get_config

TABLES_DIR = Path(__file__).parent / "tables"
FULL_TABLE_FILE = TABLES_DIR / "resources.yaml"
REDUCED_TABLE_FILE = TABLES_DIR / "reduced.yaml"
SECTION_TABLE_FILE = TABLES_DIR / "sections.yaml"

_INDEX_RE = re.compile(r"\[\d+\]")


class SchemaTableError(Exception):
    """Raised when a schema table file is missing or malformed."""


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def strip_qualifiers(path: str) -> str:
    """``KBV_PR_MIO_ULB_Patient.identifier:pid.value`` -> ``...identifier.value``."""
    return ".".join(element.split(":")[0] for element in path.split("."))


def strip_indices(path: str) -> str:
    """``name[0].family`` -> ``name.family``."""
    return _INDEX_RE.sub("", path)


# ---------------------------------------------------------------------------
# Table model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchemaPath:
    """One field path of a resource type."""

    path: str
    type_name: Optional[str] = None
    fixed_value: Optional[str] = None

    @property
    def normalized(self) -> str:
        return strip_qualifiers(self.path)


@dataclass
class ResourceSchema:
    """All paths and header defaults of one resource type."""

    name: str
    fhir_resource_type: Optional[str] = None
    profile: Optional[str] = None
    status: Optional[str] = None
    paths: list[SchemaPath] = field(default_factory=list)
    _by_normalized: dict[str, SchemaPath] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_normalized = {}
        for schema_path in self.paths:
            # Several qualified paths share one normalized form; they carry the same type.
            self._by_normalized.setdefault(schema_path.normalized, schema_path)

    def has_path(self, normalized_path: str) -> bool:
        return normalized_path in self._by_normalized

    def type_of(self, normalized_path: str) -> Optional[str]:
        schema_path = self._by_normalized.get(normalized_path)
        return schema_path.type_name if schema_path else None


@dataclass
class SchemaTable:
    """Mapping of resource-type name to :class:`ResourceSchema`."""

    resources: dict[str, ResourceSchema] = field(default_factory=dict)
    source: Optional[Path] = None

    def __contains__(self, name: object) -> bool:
        return name in self.resources

    def __iter__(self) -> Iterator[str]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)

    def get(self, name: str) -> Optional[ResourceSchema]:
        return self.resources.get(name)

    def names(self) -> list[str]:
        return list(self.resources)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise SchemaTableError(f"Cannot read schema table {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SchemaTableError(f"Invalid YAML in schema table {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaTableError(f"Schema table {path} must contain a mapping")
    return data


def _parse_path_entries(resource_name: str, raw_paths: Any, source: Path) -> list[SchemaPath]:
    if raw_paths is None:
        return []
    if not isinstance(raw_paths, dict):
        raise SchemaTableError(f"{source}: 'paths' of {resource_name} must be a mapping")
    paths: list[SchemaPath] = []
    for relative, spec in raw_paths.items():
        full = f"{resource_name}.{relative}"
        if spec is None or isinstance(spec, str):
            paths.append(SchemaPath(full, type_name=spec))
        elif isinstance(spec, dict):
            fixed = spec.get("fixedValue")
            paths.append(
                SchemaPath(
                    full,
                    type_name=spec.get("type"),
                    fixed_value=None if fixed is None else str(fixed),
                )
            )
        else:
            raise SchemaTableError(f"{source}: invalid entry for {full!r}")
    return paths


def load_schema_table(path: Path | str) -> SchemaTable:
    """Load a full resource table.

    Every entry of ``resources`` needs a ``fhir-resource-type`` and a
    ``paths`` mapping of relative path to primitive type name.
    """
    source = Path(path)
    data = _read_yaml(source)
    raw_resources = data.get("resources")
    if not isinstance(raw_resources, dict):
        raise SchemaTableError(f"{source}: top-level 'resources' mapping missing")

    table = SchemaTable(source=source)
    for name, entry in raw_resources.items():
        if not isinstance(entry, dict) or "fhir-resource-type" not in entry:
            raise SchemaTableError(f"{source}: resource {name} lacks 'fhir-resource-type'")
        table.resources[name] = ResourceSchema(
            name=name,
            fhir_resource_type=entry["fhir-resource-type"],
            profile=entry.get("profile"),
            status=entry.get("status"),
            paths=_parse_path_entries(name, entry.get("paths"), source),
        )
    return table


def load_reduced_table(path: Path | str, full_table: SchemaTable) -> SchemaTable:
    """Load the reduced ("PIO Small") table.

    A resource listed with a ``paths`` mapping keeps exactly those paths.
    A resource listed without one keeps every path of the full table except
    the relative paths named under ``exclude``.  Unlisted resources are not
    part of the reduced profile at all.
    """
    source = Path(path)
    data = _read_yaml(source)
    raw_resources = data.get("resources") or {}
    if not isinstance(raw_resources, dict):
        raise SchemaTableError(f"{source}: 'resources' must be a mapping")

    table = SchemaTable(source=source)
    for name, entry in raw_resources.items():
        entry = entry or {}
        full = full_table.get(name)
        if "paths" in entry:
            paths = _parse_path_entries(name, entry["paths"], source)
        elif full is not None:
            excluded = {f"{name}.{rel}" for rel in entry.get("exclude") or []}
            excluded_normalized = {strip_qualifiers(p) for p in excluded}
            paths = [
                p for p in full.paths
                if p.path not in excluded and p.normalized not in excluded_normalized
            ]
        else:
            raise SchemaTableError(
                f"{source}: {name} is not in the full table and declares no paths"
            )
        table.resources[name] = ResourceSchema(
            name=name,
            fhir_resource_type=full.fhir_resource_type if full else None,
            profile=full.profile if full else None,
            status=full.status if full else None,
            paths=paths,
        )
    return table


def load_section_table(path: Path | str) -> dict[str, list[str]]:
    """Load the section name -> collected resource types mapping."""
    source = Path(path)
    data = _read_yaml(source)
    sections = data.get("sections")
    if not isinstance(sections, dict):
        raise SchemaTableError(f"{source}: top-level 'sections' mapping missing")
    result: dict[str, list[str]] = {}
    for name, types in sections.items():
        if not isinstance(types, list):
            raise SchemaTableError(f"{source}: section {name} must list resource types")
        result[str(name)] = [str(t) for t in types]
    return result


# ---------------------------------------------------------------------------
# Cached accessors
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_schema_table() -> SchemaTable:
    """Return the full resource table (configured or bundled)."""
    cfg = get_config()
    return load_schema_table(cfg.schema_table_path or FULL_TABLE_FILE)


@lru_cache(maxsize=1)
def get_reduced_table() -> SchemaTable:
    """Return the reduced ("PIO Small") table."""
    cfg = get_config()
    return load_reduced_table(cfg.reduced_table_path or REDUCED_TABLE_FILE, get_schema_table())


@lru_cache(maxsize=1)
def get_section_table() -> dict[str, list[str]]:
    """Return the composition section lookup."""
    cfg = get_config()
    return load_section_table(cfg.section_table_path or SECTION_TABLE_FILE)


def clear_table_cache() -> None:
    """Forget loaded tables so the next access re-reads configuration."""
    get_schema_table.cache_clear()
    get_reduced_table.cache_clear()
    get_section_table.cache_clear()
