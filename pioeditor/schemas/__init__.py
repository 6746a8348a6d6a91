"""Resource schema tables (full, reduced and composition sections)."""

from .table import (
    ResourceSchema,
    SchemaPath,
    SchemaTable,
    SchemaTableError,
    clear_table_cache,
    get_reduced_table,
    get_schema_table,
    get_section_table,
    load_reduced_table,
    load_schema_table,
    load_section_table,
    strip_indices,
    strip_qualifiers,
)

__all__ = [
    "ResourceSchema",
    "SchemaPath",
    "SchemaTable",
    "SchemaTableError",
    "clear_table_cache",
    "get_reduced_table",
    "get_schema_table",
    "get_section_table",
    "load_reduced_table",
    "load_schema_table",
    "load_section_table",
    "strip_indices",
    "strip_qualifiers",
]
