"""Element-to-dict and dict-to-Element conversion for SOAP Body content.

The default marshaller lets callers describe request content as a plain dict
and receive response content as a plain dict. This module does the mapping
between those dicts and ``xml.etree.ElementTree`` elements.

Limitation: namespace URIs are dropped when reading (``{urn:x}Price`` becomes
``Price``). When writing, a key may carry Clark notation (``{urn:x}Price``) to
produce a namespaced element; ElementTree picks the prefixes.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any


# ---------------------------------------------------------------------------
# Element → Python dict  (response parsing)
# ---------------------------------------------------------------------------


def element_to_dict(element: ET.Element) -> dict[str, Any]:
    """Convert an element into a JSON-compatible dict keyed by its local name.

    Example::

        <m:GetPriceResponse xmlns:m="urn:shop"><m:Price>1.90</m:Price></m:GetPriceResponse>

    becomes ``{"GetPriceResponse": {"Price": "1.90"}}``.
    """
    return {strip_ns(element.tag): _element_value(element)}


def strip_ns(tag: str) -> str:
    """Remove namespace URI prefix: ``{http://...}Name`` → ``Name``."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_value(element: ET.Element) -> dict[str, Any] | str | None:
    """Recursively convert a single element to a dict, string, or None.

    - Attributes → ``@name`` keys (namespace-qualified attributes are skipped).
    - Children → grouped by local name; repeated names become lists.
    - Text-only leaves → plain string.
    - Empty elements → None.
    - Text next to attributes/children → ``#text`` key.
    """
    result: dict[str, Any] = {}

    for attr_name, attr_value in element.attrib.items():
        if attr_name.startswith("{"):
            continue
        result[f"@{attr_name}"] = attr_value

    children_by_tag: dict[str, list[Any]] = {}
    for child in element:
        if not isinstance(child.tag, str):
            # Comments and processing instructions
            continue
        children_by_tag.setdefault(strip_ns(child.tag), []).append(_element_value(child))

    for tag, values in children_by_tag.items():
        result[tag] = values if len(values) > 1 else values[0]

    text = (element.text or "").strip()
    if text:
        if result:
            result["#text"] = text
        else:
            return text

    if not result:
        return None

    return result


# ---------------------------------------------------------------------------
# Python dict → Element  (request serialization)
# ---------------------------------------------------------------------------


def dict_to_element(data: dict[str, Any]) -> ET.Element:
    """Convert a single-root dict into an element.

    The only top-level key names the root element. Nested dicts become child
    elements, lists become repeated siblings, ``None`` becomes an empty
    element, scalars become text. ``@name`` keys become attributes and a
    ``#text`` key sets the text of an element that also has children or
    attributes.

    Raises:
        ValueError: If *data* does not have exactly one top-level key.
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError(
            f"dict_to_element expects a dict with exactly one top-level key "
            f"(the root element), got {type(data).__name__} with "
            f"{len(data) if isinstance(data, dict) else 'N/A'} keys"
        )

    root_tag, root_value = next(iter(data.items()))
    return _build_element(root_tag, root_value)


def _build_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag)

    if value is None:
        pass
    elif isinstance(value, dict):
        for key, child_value in value.items():
            if key == "#text":
                element.text = _text(child_value)
            elif key.startswith("@"):
                element.set(key[1:], _text(child_value))
            elif isinstance(child_value, list):
                for item in child_value:
                    element.append(_build_element(key, item))
            else:
                element.append(_build_element(key, child_value))
    elif isinstance(value, list):
        # A bare list under a single tag: wrap items as <item> children.
        for item in value:
            element.append(_build_element("item", item))
    else:
        element.text = _text(value)

    return element


def _text(value: Any) -> str:
    # XML Schema spells booleans in lowercase.
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
