# pioeditor/transform/xmltree.py
"""FHIR XML <-> generic nested structure.

The nested structure mirrors the XML element tree:

- attributes become keys prefixed with ``__`` (``<gender value="female"/>``
  reads as ``{"gender": {"__value": "female"}}``);
- a namespace differing from the parent element's is kept as ``__xmlns``;
- tags listed in ``array_tags`` always read as lists, other tags only when
  they repeat;
- an empty element reads as ``""`` and non-blank text as ``#text``;
- an XHTML ``div`` is kept opaque as ``{"__xmlns": ..., "#markup": "<h1>..</h1>"}``.

Building reverses these rules.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Any, Iterable, Optional
from xml.sax.saxutils import escape

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeET
from defusedxml.ElementTree import ParseError as SafeParseError

from ..config import get_config
from ..document.models import PioReadError
from ..document.paths import has_leaves

from .constants import XHTML_NS

logger = logging.getLogger(__name__)

MARKUP_KEY = "#markup"
TEXT_KEY = "#text"
XMLNS_KEY = "__xmlns"

_ATTR_ENTITIES = {'"': "&quot;"}


def split_tag(tag: str) -> tuple[Optional[str], str]:
    """``{http://hl7.org/fhir}Patient`` -> ``("http://hl7.org/fhir", "Patient")``."""
    if tag.startswith("{"):
        ns, _, name = tag[1:].partition("}")
        return ns, name
    return None, tag


def _local(name: str) -> str:
    return split_tag(name)[1]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _attr_markup(elem: ET.Element) -> str:
    return "".join(
        f' {_local(k)}="{escape(v, _ATTR_ENTITIES)}"' for k, v in elem.attrib.items()
    )


def _outer_markup(elem: ET.Element) -> str:
    name = _local(elem.tag)
    inner = inner_markup(elem)
    if inner:
        markup = f"<{name}{_attr_markup(elem)}>{inner}</{name}>"
    else:
        markup = f"<{name}{_attr_markup(elem)}/>"
    if elem.tail and elem.tail.strip():
        markup += escape(elem.tail.strip())
    return markup


def inner_markup(elem: ET.Element) -> str:
    """Compact markup of an element's content, without namespaces or blank text."""
    parts = []
    if elem.text and elem.text.strip():
        parts.append(escape(elem.text.strip()))
    parts.extend(_outer_markup(child) for child in elem)
    return "".join(parts)


def _convert(elem: ET.Element, parent_ns: Optional[str], array_tags: frozenset[str]) -> Any:
    ns, name = split_tag(elem.tag)
    if name == "div" and ns == XHTML_NS:
        return {XMLNS_KEY: ns, MARKUP_KEY: inner_markup(elem)}

    node: dict[str, Any] = {}
    if ns and ns != parent_ns:
        node[XMLNS_KEY] = ns
    for key, value in elem.attrib.items():
        node["__" + _local(key)] = value
    if elem.text and elem.text.strip():
        node[TEXT_KEY] = elem.text.strip()

    for child in elem:
        child_name = _local(child.tag)
        value = _convert(child, ns, array_tags)
        if child_name in array_tags:
            node.setdefault(child_name, []).append(value)
        elif child_name in node:
            existing = node[child_name]
            if not isinstance(existing, list):
                node[child_name] = existing = [existing]
            existing.append(value)
        else:
            node[child_name] = value

    return node if node else ""


def parse_xml(text: str, array_tags: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """Parse XML text into the nested structure.

    Raises
    ------
    PioReadError
        If the text is not well-formed XML.
    """
    if array_tags is None:
        array_tags = get_config().array_tags
    try:
        root = SafeET.fromstring(text)
    except SafeParseError as exc:
        raise PioReadError(f"Malformed XML: {exc}") from exc
    except DefusedXmlException as exc:
        raise PioReadError(f"Refused XML with DTD or entity declarations: {exc}") from exc
    return {_local(root.tag): _convert(root, None, frozenset(array_tags))}


def find_key(obj: Any, key: str) -> Any:
    """Depth-first search for the first value stored under ``key``."""
    if isinstance(obj, dict):
        if key in obj:
            return obj[key]
        children: Iterable[Any] = obj.values()
    elif isinstance(obj, list):
        children = obj
    else:
        return None
    for child in children:
        found = find_key(child, key)
        if found is not None:
            return found
    return None


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def _fill_markup(elem: ET.Element, markup: str) -> None:
    try:
        fragment = SafeET.fromstring(f"<div>{markup}</div>")
    except SafeParseError:
        logger.warning("Narrative is not well-formed XHTML, writing it as text: %.80s", markup)
        elem.text = markup
        return
    elem.text = fragment.text
    elem.extend(list(fragment))


def _fill(elem: ET.Element, content: Any) -> None:
    if content is None or content == "":
        return
    if not isinstance(content, dict):
        elem.text = str(content)
        return
    for key, value in content.items():
        if value is None:
            continue
        if key == MARKUP_KEY:
            _fill_markup(elem, str(value))
        elif key == TEXT_KEY:
            elem.text = str(value)
        elif key.startswith("__"):
            elem.set(key[2:], str(value))
        else:
            for item in value if isinstance(value, list) else [value]:
                if item is None or (isinstance(item, (dict, list)) and not has_leaves(item)):
                    continue
                _fill(ET.SubElement(elem, key), item)


def build_xml(tree: dict[str, Any], indent: Optional[str] = None) -> str:
    """Serialize a single-rooted nested structure to pretty-printed XML.

    No XML declaration is written.
    """
    if len(tree) != 1:
        raise ValueError("XML tree must have exactly one root element")
    if indent is None:
        indent = get_config().indent
    (name, content), = tree.items()
    root = ET.Element(name)
    _fill(root, content)
    ET.indent(root, space=indent)
    return ET.tostring(root, encoding="unicode")
