"""XML marshalling for SOAP envelopes.

``XMLMarshaller`` is the capability the client depends on; any object with
matching ``marshal``/``unmarshal`` methods can be injected to swap the XML
engine. ``ElementTreeMarshaller`` is the default, built on the standard
library ElementTree and the dict conversion in ``soap_client.xml_body``.

Both directions work in the SOAP 1.1 namespace only. Translation to and from
SOAP 1.2 happens outside the marshaller (see ``soap_client.namespaces``).
"""

from __future__ import annotations

import copy
import dataclasses
import xml.etree.ElementTree as ET
from collections.abc import MutableMapping
from typing import Any, Protocol

from pydantic import BaseModel

from soap_client.models import DummyContent, Envelope, Fault
from soap_client.namespaces import NAMESPACE_SOAP11
from soap_client.xml_body import dict_to_element, element_to_dict, strip_ns

ENVELOPE_PREFIX = "soap"

_ENVELOPE_TAG = f"{{{NAMESPACE_SOAP11}}}Envelope"
_HEADER_TAG = f"{{{NAMESPACE_SOAP11}}}Header"
_BODY_TAG = f"{{{NAMESPACE_SOAP11}}}Body"
_FAULT_TAG = f"{{{NAMESPACE_SOAP11}}}Fault"


class XMLMarshaller(Protocol):
    """Serializes an Envelope to XML bytes and parses XML bytes into one."""

    def marshal(self, envelope: Envelope) -> bytes:
        ...

    def unmarshal(self, data: bytes, envelope: Envelope) -> None:
        """Parse *data* and fill ``envelope`` (header, body content, fault) in place."""
        ...


class ElementTreeMarshaller:
    """Default marshaller based on ``xml.etree.ElementTree``.

    Request content may be:
        - a dict with a single root key (see ``xml_body.dict_to_element``)
        - an ``ET.Element``
        - a raw XML fragment as ``str`` or ``bytes``
        - ``None`` for an empty Body

    Response targets may be:
        - a mutable mapping, updated with the dict form of the first
          non-Fault element in the Body
        - a pydantic model, whose fields are set from that element's children
          after validation (so ``"1.90"`` becomes ``1.9`` for a float field)
        - a dataclass instance, whose fields are set from the children as-is
        - ``DummyContent``, which is ignored

    Children are matched to fields by local element name; unmatched children
    are ignored and unmatched fields keep their values.
    """

    def __init__(self, indent: str = "\t") -> None:
        self._indent = indent

    def marshal(self, envelope: Envelope) -> bytes:
        """Serialize *envelope* with the SOAP 1.1 namespace bound to ``soap:``.

        The envelope namespace is always written as the exact literal
        ``NAMESPACE_SOAP11`` so the byte-level 1.1 → 1.2 rewrite finds it.

        Raises:
            ValueError: If dict content does not have a single root key.
            TypeError: If the content type is not supported.
            ET.ParseError: If raw XML content is not well-formed.
        """
        root = ET.Element(
            f"{ENVELOPE_PREFIX}:Envelope",
            {f"xmlns:{ENVELOPE_PREFIX}": NAMESPACE_SOAP11},
        )

        if envelope.header is not None:
            header = ET.SubElement(root, f"{ENVELOPE_PREFIX}:Header")
            for key, value in envelope.header.items():
                header.append(dict_to_element({key: value}))

        body = ET.SubElement(root, f"{ENVELOPE_PREFIX}:Body")
        content = _content_to_element(envelope.body.content)
        if content is not None:
            body.append(content)

        if self._indent:
            ET.indent(root, space=self._indent)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    def unmarshal(self, data: bytes, envelope: Envelope) -> None:
        """Parse a SOAP 1.1 envelope into *envelope*.

        Raises:
            ET.ParseError: If *data* is not well-formed XML.
            ValueError: If the root is not a SOAP 1.1 Envelope or has no Body.
            TypeError: If the body content target is not supported.
        """
        root = ET.fromstring(data)
        if root.tag != _ENVELOPE_TAG:
            raise ValueError(
                f"expected element type <Envelope> in namespace {NAMESPACE_SOAP11} "
                f"but have <{root.tag}>"
            )

        header = root.find(_HEADER_TAG)
        if header is not None:
            envelope.header = {}
            for child in header:
                envelope.header.update(element_to_dict(child))

        body = root.find(_BODY_TAG)
        if body is None:
            raise ValueError("SOAP Body not found in envelope")

        content_filled = False
        for child in body:
            if child.tag == _FAULT_TAG:
                envelope.body.fault = parse_fault(child)
            elif not content_filled:
                _fill_target(envelope.body.content, child)
                content_filled = True


def parse_fault(element: ET.Element) -> Fault:
    """Build a Fault from a SOAP 1.1 or (namespace-translated) SOAP 1.2 element."""
    fault = Fault()

    for child in element:
        name = strip_ns(child.tag)
        if name == "faultcode":
            fault.code = _text(child)
        elif name == "Code":
            fault.code = _text(_find_local(child, "Value"))
        elif name == "faultstring":
            fault.string = _text(child)
        elif name == "Reason":
            fault.string = _text(_find_local(child, "Text"))
        elif name in ("faultactor", "Node") or (name == "Role" and fault.actor is None):
            fault.actor = _text(child)
        elif name in ("detail", "Detail"):
            fault.detail = _detail(child)

    return fault


def _content_to_element(content: Any) -> ET.Element | None:
    if content is None:
        return None
    if isinstance(content, ET.Element):
        # Indenting mutates the tree; leave the caller's element alone.
        return copy.deepcopy(content)
    if isinstance(content, dict):
        return dict_to_element(content)
    if isinstance(content, (str, bytes)):
        return ET.fromstring(content)
    raise TypeError(f"Unsupported SOAP body content type: {type(content).__name__}")


def _fill_target(target: Any, element: ET.Element) -> None:
    if target is None or isinstance(target, DummyContent):
        return
    if isinstance(target, MutableMapping):
        target.update(element_to_dict(element))
        return
    if isinstance(target, BaseModel):
        _fill_model(target, _child_values(element))
        return
    if dataclasses.is_dataclass(target) and not isinstance(target, type):
        values = _child_values(element)
        for field in dataclasses.fields(target):
            if field.name in values:
                setattr(target, field.name, values[field.name])
        return
    raise TypeError(f"Unsupported SOAP response target type: {type(target).__name__}")


def _child_values(element: ET.Element) -> dict[str, Any]:
    """Children of *element* keyed by local name, in ``element_to_dict`` form."""
    value = element_to_dict(element)[strip_ns(element.tag)]
    return value if isinstance(value, dict) else {}


def _fill_model(target: BaseModel, values: dict[str, Any]) -> None:
    model_cls = type(target)
    data = target.model_dump()
    data.update({k: v for k, v in values.items() if k in model_cls.model_fields})
    # Validate the merged values as a whole, then copy them onto the caller's
    # instance; the caller keeps its reference.
    validated = model_cls.model_validate(data)
    for name in model_cls.model_fields:
        setattr(target, name, getattr(validated, name))


def _find_local(element: ET.Element, local_name: str) -> ET.Element | None:
    for child in element:
        if isinstance(child.tag, str) and strip_ns(child.tag) == local_name:
            return child
    return None


def _text(element: ET.Element | None) -> str:
    if element is None:
        return ""
    return (element.text or "").strip()


def _detail(element: ET.Element) -> dict[str, Any]:
    detail: dict[str, Any] = {}
    for child in element:
        if isinstance(child.tag, str):
            detail.update(element_to_dict(child))
    if not detail and _text(element):
        detail["#text"] = _text(element)
    return detail
