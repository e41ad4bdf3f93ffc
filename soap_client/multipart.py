"""Media type parsing and SOAP payload extraction from multipart responses.

Servers answering with attachments (SwA, MTOM) send a ``multipart/*`` body in
which one part carries the SOAP envelope. ``MultipartReader`` walks the parts
lazily from the response byte stream; ``extract_soap_part`` picks the first
one that starts with a SOAP tag.
"""

from __future__ import annotations

import quopri
import re
from dataclasses import dataclass, field
from email.message import Message
from email.parser import BytesHeaderParser
from email.utils import collapse_rfc2231_value
from typing import Iterable, Iterator

import httpx

from soap_client.errors import MediaTypeError, NoSoapPartFound, PartReadError
from soap_client.namespaces import has_soap_prefix

_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_MEDIA_TYPE = re.compile(rf"^\s*({_TOKEN})/({_TOKEN})\s*$")

# Bytes that may end the boundary on a delimiter line (optionally after
# transport padding). A close delimiter is followed by "--" instead.
_DELIMITER_FOLLOWERS = b"\r\n \t"


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Split a Content-Type value into a lowercased media type and its parameters.

    Parameter names are lowercased, quoted values are unquoted.

    Raises:
        MediaTypeError: If *value* does not start with a valid ``type/subtype``.
    """
    main, _, _ = value.partition(";")
    match = _MEDIA_TYPE.match(main)
    if match is None:
        if not main.strip():
            raise MediaTypeError("mime: no media type")
        raise MediaTypeError(f"mime: invalid media type '{main.strip()}'")

    media_type = f"{match.group(1)}/{match.group(2)}".lower()

    message = Message()
    message["content-type"] = value
    params: dict[str, str] = {}
    for key, param_value in (message.get_params() or [])[1:]:
        params[key.lower()] = collapse_rfc2231_value(param_value)

    return media_type, params


@dataclass(frozen=True)
class MultipartPart:
    """One fully read part of a multipart body."""

    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


class MultipartReader:
    """Iterates over the parts of a multipart body, reading the stream lazily.

    The reader consumes *stream* (an iterable of byte chunks, e.g.
    ``httpx.Response.iter_bytes()``) only as far as needed for the next part.
    It cannot be restarted. Quoted-printable parts are decoded.

    Usage:
        for part in MultipartReader(response.iter_bytes(), boundary):
            handle(part.content)

    Raises (while iterating):
        PartReadError: If the stream ends inside a part, a delimiter line is
            malformed, or reading the stream fails.
    """

    def __init__(self, stream: Iterable[bytes], boundary: str) -> None:
        if not boundary:
            raise PartReadError("multipart: boundary is empty")
        self._chunks = iter(stream)
        # The leading newline lets a delimiter at the very start of the body
        # match the same "\n--boundary" marker as every later delimiter.
        self._buffer = bytearray(b"\n")
        self._marker = b"\n--" + boundary.encode("latin-1")
        self._exhausted = False
        self._started = False
        self._finished = False

    def __iter__(self) -> Iterator[MultipartPart]:
        return self

    def __next__(self) -> MultipartPart:
        if self._finished:
            raise StopIteration

        if not self._started:
            self._started = True
            if not self._skip_preamble():
                self._finished = True
                raise StopIteration

        if self._at_close_delimiter():
            self._finished = True
            raise StopIteration

        headers = self._read_headers()
        content = self._read_body()
        encoding = headers.get("content-transfer-encoding", "").strip().lower()
        if encoding == "quoted-printable":
            # The header no longer describes the decoded content.
            del headers["content-transfer-encoding"]
            content = quopri.decodestring(content)
        return MultipartPart(content=content, headers=headers)

    def _fill(self) -> bool:
        """Append the next chunk to the buffer. Returns False at end of stream."""
        if self._exhausted:
            return False
        try:
            chunk = next(self._chunks, None)
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            raise PartReadError(f"multipart: error reading part: {e}") from e
        if chunk is None:
            self._exhausted = True
            return False
        self._buffer += chunk
        return True

    def _find_marker(self) -> int | None:
        """Index of the next real delimiter marker in the buffer, or None at EOF."""
        search = 0
        while True:
            idx = self._buffer.find(self._marker, search)
            if idx == -1:
                search = max(0, len(self._buffer) - len(self._marker) + 1)
            else:
                is_delimiter = self._is_delimiter_end(idx + len(self._marker))
                if is_delimiter:
                    return idx
                if is_delimiter is False:
                    # "--boundaryX" inside content is not a delimiter
                    search = idx + 1
                    continue
                search = idx

            if not self._fill():
                return idx if idx != -1 else None

    def _is_delimiter_end(self, end: int) -> bool | None:
        """Whether the marker ending at *end* is a delimiter; None if undecided yet."""
        if end >= len(self._buffer):
            return None
        if self._buffer[end] in _DELIMITER_FOLLOWERS:
            return True
        if self._buffer[end] != ord("-"):
            return False
        if end + 1 >= len(self._buffer):
            return None
        return self._buffer[end + 1] == ord("-")

    def _skip_preamble(self) -> bool:
        idx = self._find_marker()
        if idx is None:
            if self._buffer.strip():
                raise PartReadError("multipart: boundary not found in body")
            return False
        del self._buffer[: idx + len(self._marker)]
        return True

    def _at_close_delimiter(self) -> bool:
        """Consume the rest of the delimiter line; True if it closes the body."""
        while b"\n" not in self._buffer and not self._buffer.startswith(b"--"):
            if not self._fill():
                break

        if self._buffer.startswith(b"--"):
            self._buffer.clear()
            return True

        newline = self._buffer.find(b"\n")
        if newline == -1:
            raise PartReadError("multipart: unexpected EOF after boundary")
        if self._buffer[:newline].strip():
            raise PartReadError("multipart: malformed boundary line")
        del self._buffer[: newline + 1]
        return False

    def _read_headers(self) -> dict[str, str]:
        """Read the part header block, leaving its final newline in the buffer."""
        while True:
            if self._buffer.startswith(b"\n"):
                return {}
            if self._buffer.startswith(b"\r\n"):
                del self._buffer[:1]
                return {}

            end = self._header_end()
            if end is not None:
                break
            if not self._fill():
                raise PartReadError("multipart: unexpected EOF in part headers")

        message = BytesHeaderParser().parsebytes(bytes(self._buffer[:end]).rstrip(b"\r"))
        del self._buffer[:end]
        return {key.lower(): str(value) for key, value in message.items()}

    def _header_end(self) -> int | None:
        ends = []
        crlf = self._buffer.find(b"\r\n\r\n")
        if crlf != -1:
            ends.append(crlf + 3)
        lf = self._buffer.find(b"\n\n")
        if lf != -1:
            ends.append(lf + 1)
        return min(ends) if ends else None

    def _read_body(self) -> bytes:
        idx = self._find_marker()
        if idx is None:
            raise PartReadError("multipart: unexpected EOF in part body")
        # buffer[0] is the newline that ended the header block
        content = bytes(self._buffer[1:idx])
        if content.endswith(b"\r"):
            content = content[:-1]
        del self._buffer[: idx + len(self._marker)]
        return content


def extract_soap_part(stream: Iterable[bytes], boundary: str) -> bytes:
    """Return the content of the first part that starts with a SOAP tag.

    Parts are read one at a time; reading stops at the first SOAP part.

    Raises:
        NoSoapPartFound: If the body ends without a SOAP part.
        PartReadError: If a part cannot be read.
    """
    for part in MultipartReader(stream, boundary):
        if has_soap_prefix(part.content):
            return part.content
    raise NoSoapPartFound("multipart message does not contain a SOAP part")
