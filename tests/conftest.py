"""Pytest configuration and fixtures for soap_client tests.

This file provides:
- Envelope builders for SOAP 1.1 / 1.2 response bodies
- RecordingHandler: an httpx.MockTransport handler that records requests
- PortReservation / MockServer: subprocess management for the integration
  SOAP server (tests/integration/mock_server.py)
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from soap_client.client import Client
from soap_client.namespaces import NAMESPACE_SOAP11, NAMESPACE_SOAP12

PROJECT_ROOT = Path(__file__).parent.parent
MOCK_SERVER_MODULE = "tests.integration.mock_server"

TEST_URL = "http://soap.test/service"


# =============================================================================
# Envelope Builders
# =============================================================================


def soap11_envelope(body: str) -> bytes:
    """Wrap a Body fragment in a SOAP 1.1 envelope."""
    return (
        f'<soap:Envelope xmlns:soap="{NAMESPACE_SOAP11}">'
        f"<soap:Body>{body}</soap:Body>"
        f"</soap:Envelope>"
    ).encode("utf-8")


def soap12_envelope(body: str) -> bytes:
    """Wrap a Body fragment in a SOAP 1.2 envelope."""
    return (
        f'<soap:Envelope xmlns:soap="{NAMESPACE_SOAP12}">'
        f"<soap:Body>{body}</soap:Body>"
        f"</soap:Envelope>"
    ).encode("utf-8")


PRICE_RESPONSE = (
    '<m:GetPriceResponse xmlns:m="urn:shop"><m:Price>1.90</m:Price></m:GetPriceResponse>'
)

FAULT_11 = (
    "<soap:Fault>"
    "<faultcode>soap:Server</faultcode>"
    "<faultstring>Server.InvalidInput</faultstring>"
    "</soap:Fault>"
)

FAULT_12 = (
    "<soap:Fault>"
    "<soap:Code><soap:Value>soap:Receiver</soap:Value></soap:Code>"
    '<soap:Reason><soap:Text xml:lang="en">Server.InvalidInput</soap:Text></soap:Reason>'
    "</soap:Fault>"
)


# =============================================================================
# Mock Transport Helpers
# =============================================================================


class RecordingHandler:
    """MockTransport handler returning a fixed response and recording requests.

    Usage:
        handler = RecordingHandler(content=soap11_envelope(PRICE_RESPONSE))
        client = make_client(handler)
        client.call("urn:GetPrice", {...})
        handler.requests[0].headers["SOAPAction"]
    """

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        content_type: str | None = "text/xml; charset=utf-8",
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.content_type = content_type
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        headers = {"Content-Type": self.content_type} if self.content_type else {}
        return httpx.Response(self.status_code, headers=headers, content=self.content)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


class TrackingStream(httpx.SyncByteStream):
    """Response body stream that records whether it was closed."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self.closed = False

    def __iter__(self) -> Generator[bytes, None, None]:
        yield from self._chunks

    def close(self) -> None:
        self.closed = True


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> Client:
    """Create a Client whose HTTP traffic goes to *handler*."""
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return Client(TEST_URL, http_client=http_client, **kwargs)


# =============================================================================
# Integration Server
# =============================================================================


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    The socket stays bound until just before the server starts, so no other
    process can grab the port in between.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port. Safe to call twice."""
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class MockServer:
    """Manages the mock SOAP server subprocess for integration tests."""

    def __init__(self, reservation: PortReservation) -> None:
        self._reservation = reservation
        self.host = "127.0.0.1"
        self.port = reservation.port
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        self._reservation.release()
        self._process = subprocess.Popen(
            [
                sys.executable, "-m", MOCK_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"MockServer failed to start on port {self.port}. "
                f"stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the server: SIGTERM, then SIGKILL after 5s."""
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait(timeout=5)
            self._process = None

    def __enter__(self) -> MockServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def price_handler() -> RecordingHandler:
    """Handler answering every request with a SOAP 1.1 GetPriceResponse."""
    return RecordingHandler(content=soap11_envelope(PRICE_RESPONSE))


@pytest.fixture(scope="session")
def mock_soap_server() -> Generator[MockServer, None, None]:
    """Session-scoped mock SOAP server."""
    with MockServer(PortReservation()) as server:
        yield server


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Tag tests as integration or unit based on their directory.

    Enables running subsets via:
        pytest -m integration
        pytest -m unit
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
