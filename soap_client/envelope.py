"""Envelope codec: wraps request and response values in Envelope/Body.

The codec always works in the SOAP 1.1 envelope shape. Rewriting for SOAP 1.2
is applied by the caller before decode and after encode.
"""

from __future__ import annotations

from typing import Any

from soap_client.errors import MarshalError, SoapError, UnmarshalError
from soap_client.marshaller import XMLMarshaller
from soap_client.models import Body, DummyContent, Envelope


def encode(request: Any, marshaller: XMLMarshaller) -> bytes:
    """Wrap *request* in an Envelope/Body and marshal it.

    Raises:
        MarshalError: If the marshaller fails for any reason. Marshallers may
            also raise a ``SoapError`` subclass themselves; it passes through.
    """
    envelope = Envelope(body=Body(content=request))
    try:
        return marshaller.marshal(envelope)
    except SoapError:
        raise
    except Exception as e:
        raise MarshalError(f"Could not marshal SOAP request: {e}") from e


def decode(data: bytes, response: Any, marshaller: XMLMarshaller) -> Envelope:
    """Unmarshal *data* into *response* wrapped in an Envelope/Body.

    A ``None`` response is replaced by ``DummyContent`` so that a Fault can
    still be decoded when no content was expected.

    Returns:
        The decoded Envelope; ``envelope.body.fault`` is set if a Fault came back.

    Raises:
        UnmarshalError: On malformed XML, an unknown declared encoding, an
            envelope that does not fit, or any other marshaller failure.
    """
    target = response if response is not None else DummyContent()
    envelope = Envelope(body=Body(content=target))
    try:
        marshaller.unmarshal(data, envelope)
    except SoapError:
        raise
    except Exception as e:
        raise UnmarshalError(f"COULD NOT UNMARSHAL: {e}") from e
    return envelope
