"""Internal data models for soap_client.

Envelope, Body and Fault are plain dataclasses: they are created per call and
hold caller objects by reference, so the response target passed to a call is
the very object the marshaller fills in. Configuration models use Pydantic v2.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from soap_client.namespaces import CONTENT_TYPE_SOAP11, CONTENT_TYPE_SOAP12


class SoapVersion(str, Enum):
    """SOAP protocol version spoken on the wire."""

    V11 = "1.1"
    V12 = "1.2"

    @property
    def content_type(self) -> str:
        if self is SoapVersion.V12:
            return CONTENT_TYPE_SOAP12
        return CONTENT_TYPE_SOAP11


# =============================================================================
# Envelope Models
# =============================================================================


@dataclass
class Fault:
    """A SOAP Fault parsed from a server response.

    SOAP 1.1 ``faultcode``/``faultstring``/``faultactor``/``detail`` and SOAP 1.2
    ``Code/Value``/``Reason/Text``/``Node``/``Detail`` map onto the same fields.
    """

    code: str = ""
    string: str = ""
    actor: str | None = None
    detail: dict[str, Any] | None = None


@dataclass
class Body:
    """SOAP Body. ``content`` and ``fault`` are exclusive on the receive path."""

    content: Any = None
    fault: Fault | None = None


@dataclass
class Envelope:
    """SOAP Envelope. The header is passed through untouched."""

    body: Body
    header: dict[str, Any] | None = None


class DummyContent:
    """Unmarshal target used when the caller passes no response value.

    Lets a Fault-bearing response decode even though nobody asked for content.
    """


# =============================================================================
# Configuration Models
# =============================================================================


class BasicAuth(BaseModel):
    """HTTP basic auth credentials, fixed for the lifetime of a client."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    login: str = Field(description="User name")
    password: str = Field(repr=False, description="Password")


class ClientConfig(BaseModel):
    """Client configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(description="SOAP endpoint URL")
    soap_version: SoapVersion = Field(default=SoapVersion.V11, description="Protocol version")
    auth: BasicAuth | None = Field(default=None, description="Basic auth credentials")
    user_agent: str | None = Field(default=None, description="User-Agent override")
    content_type: str | None = Field(
        default=None, description="Content-Type override (defaults by soap_version)"
    )
    timeout: float | None = Field(default=None, description="Request timeout in seconds")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra request headers (supports ${ENV_VAR} substitution)",
    )

    @field_validator("soap_version", mode="before")
    @classmethod
    def coerce_soap_version(cls, v: Any) -> Any:
        # Unquoted YAML `1.2` arrives as a float.
        if isinstance(v, float):
            return str(v)
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must be an http(s) URL, got '{v}'")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v
