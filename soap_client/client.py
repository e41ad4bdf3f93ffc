"""Client - Sends SOAP requests over HTTP and decodes the replies.

One call runs strictly in sequence: encode the envelope, POST it, classify
the response body (empty, single part, multipart, not SOAP), translate the
namespace back to SOAP 1.1, decode into the caller's response value and
finally turn a SOAP Fault into a ``SoapFault`` error.

See DESIGN.md "Call Orchestrator" for the state machine.
"""

from __future__ import annotations

import base64
import logging
from functools import partial
from typing import Any, Callable

import httpx

from soap_client.envelope import decode, encode
from soap_client.errors import MediaTypeError, NotSoapMessage, SoapFault
from soap_client.fault import FAULT_START_LEVEL, format_fault_xml
from soap_client.marshaller import ElementTreeMarshaller, XMLMarshaller
from soap_client.models import BasicAuth, ClientConfig, SoapVersion
from soap_client.multipart import extract_soap_part, parse_media_type
from soap_client.namespaces import (
    DEFAULT_USER_AGENT,
    contains_soap_tag,
    to_version11,
    to_version12,
)

logger = logging.getLogger(__name__)

LogSink = Callable[..., None]
SendFn = Callable[[httpx.Request], httpx.Response]
RequestHeaderFn = Callable[[httpx.Headers], None]


def _discard(*args: Any) -> None:
    """Default log sink: drops everything."""


def _basic_auth_header(auth: BasicAuth) -> str:
    credentials = f"{auth.login}:{auth.password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


class Client:
    """Generic SOAP client for one endpoint.

    SOAP 1.1 is used by default; switch with ``use_soap12()``. The client keeps
    no per-call state, so one instance can serve several threads as long as
    the transport and marshaller are thread-safe.

    Usage:
        with Client("https://example.com/soap") as client:
            result: dict = {}
            client.call("urn:GetPrice", {"GetPrice": {"Item": "apple"}}, result)

    Attributes that may be changed between calls:
        log: Variadic sink for diagnostic output, no-op by default.
        marshaller: XML codec for envelopes (``XMLMarshaller``).
        send: Transport function taking an ``httpx.Request``.
        user_agent: User-Agent override.
        content_type: Content-Type header, set by ``use_soap11``/``use_soap12``.
        request_header_fn: Called with the request headers right before
            sending; may change any of them.
    """

    def __init__(
        self,
        url: str,
        auth: BasicAuth | None = None,
        *,
        soap_version: SoapVersion | str = SoapVersion.V11,
        marshaller: XMLMarshaller | None = None,
        http_client: httpx.Client | None = None,
        send: SendFn | None = None,
        user_agent: str | None = None,
        request_header_fn: RequestHeaderFn | None = None,
        log: LogSink | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: SOAP endpoint URL.
            auth: Basic auth credentials sent with every request.
            soap_version: "1.1" or "1.2".
            marshaller: XML codec. Defaults to ``ElementTreeMarshaller``.
            http_client: httpx client used to build and send requests. A
                client created here is closed by ``close()``; a passed-in
                client is left to its owner.
            send: Transport override. Defaults to ``http_client.send`` with a
                streamed response body.
            user_agent: User-Agent override.
            request_header_fn: Header mutation hook, applied last.
            log: Diagnostic sink, e.g. ``print``.
            headers: Extra headers for every request.
            timeout: Default timeout in seconds for every request.
        """
        self.url = url
        self._auth = auth
        self.marshaller: XMLMarshaller = marshaller or ElementTreeMarshaller()
        self.user_agent = user_agent
        self.request_header_fn = request_header_fn
        self.log: LogSink = log or _discard
        self.headers = dict(headers or {})
        self.timeout = timeout

        self.soap_version = SoapVersion(soap_version)
        self.content_type = self.soap_version.content_type

        self._owns_http_client = http_client is None
        self._http_client = http_client if http_client is not None else httpx.Client()
        self.send: SendFn = send or partial(self._http_client.send, stream=True)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "Client":
        """Build a client from a ``ClientConfig``; *kwargs* go to ``__init__``."""
        client = cls(
            config.url,
            config.auth,
            soap_version=config.soap_version,
            user_agent=config.user_agent,
            headers=config.headers,
            timeout=config.timeout,
            **kwargs,
        )
        if config.content_type:
            client.content_type = config.content_type
        return client

    def __enter__(self) -> "Client":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            self._http_client.close()

    @property
    def auth(self) -> BasicAuth | None:
        return self._auth

    def use_soap11(self) -> None:
        self.soap_version = SoapVersion.V11
        self.content_type = SoapVersion.V11.content_type

    def use_soap12(self) -> None:
        self.soap_version = SoapVersion.V12
        self.content_type = SoapVersion.V12.content_type

    def call(
        self,
        soap_action: str,
        request: Any,
        response: Any = None,
        *,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Make a SOAP call.

        Args:
            soap_action: Value of the SOAPAction header; empty to omit it.
            request: Body content (see ``ElementTreeMarshaller``).
            response: Target the response content is decoded into, or None
                when no content is expected.
            timeout: Timeout in seconds for this call, passed to the transport.

        Returns:
            The HTTP response. Its body stream is already consumed and closed.
            An empty response body is a success; *response* is left untouched.

        Raises:
            MarshalError: If the request cannot be serialized.
            NotSoapMessage: If a non-empty single-part body is not SOAP.
            NoSoapPartFound: If no part of a multipart body is SOAP.
            PartReadError: If a multipart part cannot be read.
            UnmarshalError: If the response cannot be decoded.
            SoapFault: If the response carries a SOAP Fault. *response* may
                hold content decoded alongside the fault.
            httpx.HTTPError: Transport failures, unchanged.
        """
        xml_bytes = encode(request, self.marshaller)
        if self.soap_version is SoapVersion.V12:
            xml_bytes = to_version12(xml_bytes)

        http_request = self._build_request(soap_action, xml_bytes, timeout)
        self.log("POST to", self.url, "with\n", xml_bytes)
        self.log("Header", http_request.headers)
        logger.debug("POST %s (SOAPAction=%r, %d bytes)", self.url, soap_action, len(xml_bytes))

        http_response = self.send(http_request)
        try:
            self.log("\n\n## Response header:\n", http_response.headers)
            self._handle_response(http_response, response)
        finally:
            http_response.close()

        return http_response

    def _build_request(
        self,
        soap_action: str,
        xml_bytes: bytes,
        timeout: float | None,
    ) -> httpx.Request:
        headers = httpx.Headers(self.headers)
        headers["Content-Type"] = self.content_type
        headers["User-Agent"] = self.user_agent or DEFAULT_USER_AGENT
        if self._auth is not None:
            headers["Authorization"] = _basic_auth_header(self._auth)
        if soap_action:
            headers["SOAPAction"] = soap_action

        # Last, so callers can override anything set above.
        if self.request_header_fn is not None:
            self.request_header_fn(headers)

        kwargs: dict[str, Any] = {}
        effective_timeout = timeout if timeout is not None else self.timeout
        if effective_timeout is not None:
            kwargs["timeout"] = effective_timeout

        return self._http_client.build_request(
            "POST", self.url, content=xml_bytes, headers=headers, **kwargs
        )

    def _handle_response(self, http_response: httpx.Response, response: Any) -> None:
        raw_body = self._read_soap_payload(http_response)
        if raw_body is None:
            return

        self.log("\n\n## Response body:\n", raw_body)

        # Envelope parsing only knows the SOAP 1.1 namespace.
        envelope = decode(to_version11(raw_body), response, self.marshaller)

        if envelope.body.fault is not None:
            # Format the untranslated wire bytes to keep the server's structure.
            message = "SOAP FAULT:\n" + format_fault_xml(raw_body, FAULT_START_LEVEL)
            logger.debug("SOAP fault from %s: %s", self.url, envelope.body.fault)
            raise SoapFault(message, envelope.body.fault)

    def _read_soap_payload(self, http_response: httpx.Response) -> bytes | None:
        """Return the SOAP bytes of the response body, or None for an empty body."""
        content_type = http_response.headers.get("content-type", "")
        try:
            media_type, params = parse_media_type(content_type)
        except MediaTypeError as e:
            # Unparsable Content-Type: read the body as a single part.
            logger.warning("Could not parse response Content-Type %r: %s", content_type, e)
            self.log("WARNING:", e)
            media_type, params = "", {}
        self.log("MIMETYPE:", media_type)

        if media_type.startswith("multipart/"):
            return extract_soap_part(http_response.iter_bytes(), params.get("boundary", ""))

        raw_body = http_response.read()
        if not raw_body:
            # Some services answer with a bare 200/202 and no payload.
            self.log("INFO: Response Body is empty!")
            return None

        if not contains_soap_tag(raw_body):
            self.log("This is not a SOAP-Message: \n", raw_body)
            raise NotSoapMessage(raw_body)

        self.log("RAWBODY\n", raw_body)
        return raw_body
