"""SOAP 1.1 / 1.2 client over HTTP."""

__version__ = "0.1.0"
