"""Human-readable rendering of SOAP Fault XML.

Used for the message of ``SoapFault`` errors. The output is meant for people
and logs; nothing parses it back.
"""

from __future__ import annotations

from xml.parsers import expat
from xml.sax.saxutils import escape

INDENT = "\t"

# Depth of the Fault element inside Envelope/Body. Formatting a whole response
# with this start level drops the Envelope, Body and Fault wrappers.
FAULT_START_LEVEL = 3

# Quotes and line-structure characters are escaped as well, so multi-line
# text stays on the line of its element.
_ESCAPE_ENTITIES = {
    '"': "&#34;",
    "'": "&#39;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}


def _local_name(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def format_fault_xml(xml_bytes: bytes, start_level: int) -> str:
    """Render *xml_bytes* as indented, namespace-free XML text.

    Elements nested at depth ``start_level`` or less (the outermost element has
    depth 1) are left out, so the SOAP scaffolding around the fault fields
    disappears. Tags lose their prefixes and attributes. Leaf elements stay on
    one line (``<faultcode>soap:Server</faultcode>``), elements with children
    get one line per tag, indented by one tab per level below the first
    emitted level.

    Example::

        >>> format_fault_xml(
        ...     b"<soap:Fault><faultcode>A</faultcode><faultstring>B</faultstring></soap:Fault>",
        ...     1,
        ... )
        '<faultcode>A</faultcode>\\n<faultstring>B</faultstring>'

    Malformed XML is not an error: output stops where the tokenizer gives up.
    """
    out: list[str] = []
    depth = 0
    last = ""  # "start", "data" or "end": the previous emitted token

    def indent() -> str:
        return INDENT * max(depth - start_level - 1, 0)

    def start_element(name: str, attrs: dict[str, str]) -> None:
        nonlocal depth, last
        depth += 1
        if depth <= start_level:
            return
        if last in ("start", "end"):
            out.append("\n")
        out.append(f"{indent()}<{_local_name(name)}>")
        last = "start"

    def character_data(data: str) -> None:
        nonlocal last
        if depth <= start_level or not data.strip():
            return
        out.append(escape(data, _ESCAPE_ENTITIES))
        last = "data"

    def end_element(name: str) -> None:
        nonlocal depth, last
        if depth > start_level:
            if last == "end":
                out.append(f"\n{indent()}")
            out.append(f"</{_local_name(name)}>")
            last = "end"
        depth -= 1

    parser = expat.ParserCreate()
    parser.buffer_text = True
    parser.StartElementHandler = start_element
    parser.CharacterDataHandler = character_data
    parser.EndElementHandler = end_element

    try:
        parser.Parse(xml_bytes, True)
    except expat.ExpatError:
        # Best effort: keep whatever was rendered before the error.
        pass

    return "".join(out).strip()
