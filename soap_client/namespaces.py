"""SOAP protocol constants and envelope namespace translation.

Envelopes are always authored and parsed in the SOAP 1.1 namespace. Talking to
a SOAP 1.2 endpoint is a matter of rewriting the namespace URI on the way out
and back on the way in.

Limitation: the rewrite is a plain byte substitution, not an XML rewrite. It is
only correct because the envelope template always spells the namespace with the
exact literal below. A payload that carries the literal inside unrelated text or
attribute values gets rewritten too. See DESIGN.md "Namespace Translation".
"""

from __future__ import annotations

from soap_client import __version__

NAMESPACE_SOAP11 = "http://schemas.xmlsoap.org/soap/envelope/"
NAMESPACE_SOAP12 = "http://www.w3.org/2003/05/soap-envelope"

CONTENT_TYPE_SOAP11 = "text/xml; charset=utf-8"
CONTENT_TYPE_SOAP12 = "application/soap+xml; charset=utf-8"

DEFAULT_USER_AGENT = f"soap-client/{__version__}"

SOAP_PREFIX_TAG_UC = b"<SOAP"
SOAP_PREFIX_TAG_LC = b"<soap"

_NS11 = NAMESPACE_SOAP11.encode("ascii")
_NS12 = NAMESPACE_SOAP12.encode("ascii")


def to_version12(data: bytes) -> bytes:
    """Rewrite every SOAP 1.1 envelope namespace literal to SOAP 1.2."""
    return data.replace(_NS11, _NS12)


def to_version11(data: bytes) -> bytes:
    """Rewrite every SOAP 1.2 envelope namespace literal to SOAP 1.1."""
    return data.replace(_NS12, _NS11)


def has_soap_prefix(data: bytes) -> bool:
    """True if *data* starts with a ``<soap``/``<SOAP`` tag."""
    return data.startswith(SOAP_PREFIX_TAG_LC) or data.startswith(SOAP_PREFIX_TAG_UC)


def contains_soap_tag(data: bytes) -> bool:
    """True if a ``<soap``/``<SOAP`` tag appears anywhere in *data*."""
    return SOAP_PREFIX_TAG_LC in data or SOAP_PREFIX_TAG_UC in data
