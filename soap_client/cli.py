"""CLI entry point for soap-client.

Sends one SOAP request read from a file and prints the decoded response as
JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from soap_client.client import Client
from soap_client.config_loader import ConfigError, load_client_config
from soap_client.errors import SoapError, SoapFault
from soap_client.models import SoapVersion

logger = logging.getLogger("soap_client.cli")


def positive_float(value: str) -> float:
    """Parse and validate a positive float value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive number.
    """
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


@dataclass
class CallArgs:
    """Parsed arguments for a single call."""

    config: Path
    action: str
    request: Path
    soap_version: SoapVersion | None
    timeout: float | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="soap-call",
        description="Send a SOAP request and print the response body as JSON.",
    )
    parser.add_argument(
        "request",
        type=Path,
        help="File holding the XML element to send as SOAP Body content",
    )
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to client config YAML file",
    )
    parser.add_argument(
        "--action",
        default="",
        help="SOAPAction header value (omitted when empty)",
    )

    version_group = parser.add_mutually_exclusive_group()
    version_group.add_argument(
        "--soap11",
        dest="soap_version",
        action="store_const",
        const=SoapVersion.V11,
        help="Use SOAP 1.1 regardless of the config file",
    )
    version_group.add_argument(
        "--soap12",
        dest="soap_version",
        action="store_const",
        const=SoapVersion.V12,
        help="Use SOAP 1.2 regardless of the config file",
    )

    parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help="Request timeout in seconds (overrides the config file)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log request and response details to stderr",
    )
    return parser


def parse_args(args: list[str] | None = None) -> CallArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    namespace = build_parser().parse_args(args)
    return CallArgs(
        config=namespace.config,
        action=namespace.action,
        request=namespace.request,
        soap_version=namespace.soap_version,
        timeout=namespace.timeout,
        verbose=namespace.verbose,
    )


def main() -> int:
    """Main entry point."""
    try:
        return run_call(parse_args())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def _log_to_debug(*args: Any) -> None:
    parts = [a.decode("utf-8", errors="replace") if isinstance(a, bytes) else str(a) for a in args]
    logger.debug(" ".join(parts))


def run_call(args: CallArgs) -> int:
    """Run one SOAP call. Returns the process exit code."""
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    try:
        config = load_client_config(args.config)
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    try:
        request_body = args.request.read_bytes()
    except OSError as e:
        print(f"Error reading request file: {e}", file=sys.stderr)
        return 1

    result: dict[str, Any] = {}
    with Client.from_config(config, log=_log_to_debug if args.verbose else None) as client:
        if args.soap_version is SoapVersion.V12:
            client.use_soap12()
        elif args.soap_version is SoapVersion.V11:
            client.use_soap11()

        try:
            http_response = client.call(args.action, request_body, result, timeout=args.timeout)
        except SoapFault as e:
            print(str(e), file=sys.stderr)
            return 1
        except SoapError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except httpx.HTTPError as e:
            print(f"Request error: {e}", file=sys.stderr)
            return 1

    print(json.dumps({"status_code": http_response.status_code, "body": result}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
