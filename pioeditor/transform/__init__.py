"""FHIR XML import and export of PIO documents."""

from .reader import read_xml
from .writer import write_xml
from .xmltree import build_xml, parse_xml

__all__ = ["build_xml", "parse_xml", "read_xml", "write_xml"]
