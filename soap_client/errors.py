"""Exceptions raised by a SOAP call.

Transport failures are not wrapped: whatever the transport raises (normally an
``httpx.HTTPError``) reaches the caller unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from soap_client.models import Fault


class SoapError(Exception):
    """Base class for soap_client errors."""


class MarshalError(SoapError):
    """Raised when the request envelope cannot be serialized."""


class UnmarshalError(SoapError):
    """Raised when the response envelope cannot be parsed into the target."""


class MediaTypeError(SoapError):
    """Raised when a Content-Type header cannot be parsed.

    Inside a call this is only logged; the body is then handled as single part.
    """


class NoSoapPartFound(SoapError):
    """Raised when no part of a multipart response carries a SOAP envelope."""


class PartReadError(SoapError):
    """Raised when a part of a multipart response cannot be read."""


class NotSoapMessage(SoapError):
    """Raised when a non-empty single-part response body is not SOAP."""

    def __init__(self, body: bytes) -> None:
        self.body = body
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"This is not a SOAP-Message: \n{text}")


class SoapFault(SoapError):
    """Raised when the response Body carries a SOAP Fault.

    The message is the formatted fault taken from the raw response bytes;
    ``fault`` is the decoded Fault.
    """

    def __init__(self, message: str, fault: Fault) -> None:
        self.fault = fault
        super().__init__(message)
