"""Tests for Element-to-dict and dict-to-Element conversion.

Tests cover:
- element_to_dict: leaves, nesting, repeated siblings, namespaces,
  attributes, mixed text, empty elements, comments
- dict_to_element: nested dicts, lists as siblings, None, attributes,
  #text, booleans, Clark-notation keys, error cases
"""

import xml.etree.ElementTree as ET

import pytest

from soap_client.xml_body import dict_to_element, element_to_dict, strip_ns


def _to_dict(xml: str) -> dict:
    return element_to_dict(ET.fromstring(xml))


# =============================================================================
# element_to_dict tests
# =============================================================================


class TestElementToDictBasic:
    """Basic element-to-dict conversion."""

    def test_simple_elements(self) -> None:
        result = _to_dict("<Root><Name>hello</Name><Count>42</Count></Root>")
        assert result == {"Root": {"Name": "hello", "Count": "42"}}

    def test_nested_elements(self) -> None:
        result = _to_dict("<Root><Parent><Child>value</Child></Parent></Root>")
        assert result == {"Root": {"Parent": {"Child": "value"}}}

    def test_empty_element_becomes_none(self) -> None:
        assert _to_dict("<Root><Prefix/></Root>") == {"Root": {"Prefix": None}}

    def test_whitespace_only_is_empty(self) -> None:
        assert _to_dict("<Root><Prefix>   </Prefix></Root>") == {"Root": {"Prefix": None}}

    def test_repeated_siblings_become_list(self) -> None:
        result = _to_dict("<Root><Item>a</Item><Item>b</Item><Item>c</Item></Root>")
        assert result == {"Root": {"Item": ["a", "b", "c"]}}

    def test_single_sibling_stays_scalar(self) -> None:
        assert _to_dict("<Root><Item>only</Item></Root>") == {"Root": {"Item": "only"}}

    def test_comments_skipped(self) -> None:
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        element = ET.fromstring("<Root><!-- note --><A>1</A></Root>", parser=parser)
        assert element_to_dict(element) == {"Root": {"A": "1"}}


class TestElementToDictNamespaces:
    """Namespace URIs are dropped from tags and attributes."""

    def test_prefixed_namespace_stripped(self) -> None:
        result = _to_dict(
            '<m:GetPriceResponse xmlns:m="urn:shop"><m:Price>1.90</m:Price></m:GetPriceResponse>'
        )
        assert result == {"GetPriceResponse": {"Price": "1.90"}}

    def test_default_namespace_stripped(self) -> None:
        result = _to_dict('<Root xmlns="urn:x"><Name>val</Name></Root>')
        assert result == {"Root": {"Name": "val"}}

    def test_qualified_attributes_skipped(self) -> None:
        result = _to_dict(
            '<Root xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
            'xsi:type="t" id="7">x</Root>'
        )
        assert result == {"Root": {"@id": "7", "#text": "x"}}

    def test_strip_ns(self) -> None:
        assert strip_ns("{urn:x}Price") == "Price"
        assert strip_ns("Price") == "Price"


class TestElementToDictAttributes:
    def test_attributes_become_at_keys(self) -> None:
        result = _to_dict('<Root><Item id="1" kind="a"/></Root>')
        assert result == {"Root": {"Item": {"@id": "1", "@kind": "a"}}}

    def test_text_next_to_children(self) -> None:
        result = _to_dict("<Root>lead<Child>c</Child></Root>")
        assert result == {"Root": {"Child": "c", "#text": "lead"}}


# =============================================================================
# dict_to_element tests
# =============================================================================


class TestDictToElement:
    def test_simple(self) -> None:
        element = dict_to_element({"GetPrice": {"Item": "apple"}})
        assert ET.tostring(element) == b"<GetPrice><Item>apple</Item></GetPrice>"

    def test_list_becomes_siblings(self) -> None:
        element = dict_to_element({"Order": {"Line": ["a", "b"]}})
        assert ET.tostring(element) == b"<Order><Line>a</Line><Line>b</Line></Order>"

    def test_bare_list_wrapped_in_items(self) -> None:
        element = dict_to_element({"Codes": [1, 2]})
        assert ET.tostring(element) == b"<Codes><item>1</item><item>2</item></Codes>"

    def test_none_becomes_empty_element(self) -> None:
        element = dict_to_element({"Ping": None})
        assert ET.tostring(element) == b"<Ping />"

    def test_attributes_and_text(self) -> None:
        element = dict_to_element({"Amount": {"@currency": "EUR", "#text": 5}})
        assert element.get("currency") == "EUR"
        assert element.text == "5"

    def test_booleans_lowercase(self) -> None:
        element = dict_to_element({"Flags": {"On": True, "Off": False}})
        assert element.find("On").text == "true"
        assert element.find("Off").text == "false"

    def test_clark_notation_key(self) -> None:
        element = dict_to_element({"{urn:shop}GetPrice": {"{urn:shop}Item": "apple"}})
        assert element.tag == "{urn:shop}GetPrice"
        assert _to_dict(ET.tostring(element).decode()) == {"GetPrice": {"Item": "apple"}}

    def test_nested_round_trip(self) -> None:
        data = {"Root": {"A": {"B": "1", "C": ["x", "y"]}, "D": None}}
        assert element_to_dict(dict_to_element(data)) == data

    @pytest.mark.parametrize("data", [{}, {"A": 1, "B": 2}, ["A"], "A"])
    def test_requires_single_root(self, data) -> None:
        with pytest.raises(ValueError, match="exactly one top-level key"):
            dict_to_element(data)
