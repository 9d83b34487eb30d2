from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

import httpx
from jsonschema.exceptions import SchemaError
from pydantic import ValidationError

from apisign.adapters.dispatcher import RequestDispatcher
from apisign.config import Settings
from apisign.errors import ApiSignError, SchemaValidationError
from apisign.logging_context import with_logging_context
from apisign.logging_utils import setup_logging
from apisign.private_api import PrivateApiClient, prepare_private_request
from apisign.public_api import public_api_request
from apisign.schema import load_schema, validate_response_body
from apisign.security.redaction import sanitize_text

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_API_FAILURE = 1
EXIT_ERROR = 2


def _parse_pair(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key, value


def _parse_nonce(raw: str) -> str:
    if not raw.isdigit():
        raise argparse.ArgumentTypeError("nonce must be a non-negative decimal integer")
    return str(int(raw))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apisign",
        description="Signed and public requests against a nonce-protected HTTP API.",
        epilog=(
            "Credentials come from API_KEY, API_SECRET and OTP_SECRET; the base URL from "
            "API_LINK. Endpoint paths default to OPEN_ORDERS_ENDPOINT, "
            "SERVER_TIME_ENDPOINT and ASSET_PAIR_ENDPOINT."
        ),
    )
    parser.add_argument("--env-file", default=None, help="Optional dotenv file to read settings from")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    open_orders_parser = subparsers.add_parser("open-orders", help="List open orders (signed)")
    open_orders_parser.add_argument("--path", default=None, help="Overrides OPEN_ORDERS_ENDPOINT")
    open_orders_parser.add_argument(
        "--data", action="append", type=_parse_pair, default=[], metavar="KEY=VALUE"
    )

    for name, help_text in (
        ("server-time", "Fetch the public server time"),
        ("asset-pairs", "Fetch public asset pair info"),
    ):
        public_parser = subparsers.add_parser(name, help=help_text)
        public_parser.add_argument("--path", default=None, help="Overrides the configured endpoint")
        public_parser.add_argument("--schema", default=None, help="JSON Schema (Draft 7) file")

    sign_parser = subparsers.add_parser("sign", help="Print a signed request without sending it")
    sign_parser.add_argument("--path", required=True, help="Endpoint path, e.g. /0/private/Balance")
    sign_parser.add_argument("--nonce", type=_parse_nonce, default=None)
    sign_parser.add_argument("--otp", default=None, help="Use this code instead of generating one")
    sign_parser.add_argument(
        "--data", action="append", type=_parse_pair, default=[], metavar="KEY=VALUE"
    )
    sign_parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Print API key, signature and OTP unmasked",
    )
    return parser


def _load_settings(env_file: str | None) -> Settings:
    if env_file:
        return Settings(_env_file=env_file)
    return Settings()


def run_sign(settings: Settings, args: argparse.Namespace) -> int:
    signed = prepare_private_request(
        settings.credentials(require_otp_seed=args.otp is None),
        settings.api_link,
        args.path,
        extra_pairs=args.data,
        otp_generator=settings.otp_generator(),
        nonce=args.nonce,
        otp=args.otp,
    )
    if args.show_secrets:
        rendered: dict[str, object] = {
            "url": signed.url,
            "endpoint_path": signed.endpoint_path,
            "nonce": signed.nonce,
            "body": signed.body,
            "headers": dict(signed.headers),
        }
    else:
        rendered = signed.redacted()
    print(json.dumps(rendered, indent=2, sort_keys=True))
    return EXIT_OK


def _api_errors(response: httpx.Response) -> tuple[object, list[str]]:
    try:
        payload = response.json()
    except ValueError:
        return None, [f"non-JSON response (status={response.status_code})"]
    errors: list[str] = []
    if response.status_code >= 400:
        errors.append(f"HTTP status {response.status_code}")
    if isinstance(payload, dict):
        reported = payload.get("error") or []
        if isinstance(reported, str):
            reported = [reported]
        if isinstance(reported, list):
            errors.extend(str(item) for item in reported)
        else:
            errors.append(f"unexpected error field: {reported!r}")
    return payload, errors


def run_open_orders(settings: Settings, args: argparse.Namespace) -> int:
    endpoint_path = args.path or settings.open_orders_endpoint
    with PrivateApiClient(
        settings.credentials(),
        settings.api_link,
        dispatcher=RequestDispatcher(timeout=settings.request_timeout_seconds),
        otp_generator=settings.otp_generator(),
    ) as client:
        response = client.request(endpoint_path, args.data)

    payload, errors = _api_errors(response)
    if errors:
        for error in errors:
            print(f"API error: {sanitize_text(error)}", file=sys.stderr)
        return EXIT_API_FAILURE

    open_orders = {}
    if isinstance(payload, dict) and isinstance(payload.get("result"), dict):
        open_orders = payload["result"].get("open")
    if not isinstance(open_orders, dict):
        open_orders = {}
    print("List of open orders:")
    for order_id, order in open_orders.items():
        print(f"{order_id}: {json.dumps(order, sort_keys=True)}")
    return EXIT_OK


def run_public(settings: Settings, args: argparse.Namespace) -> int:
    configured = {
        "server-time": settings.server_time_endpoint,
        "asset-pairs": settings.asset_pair_endpoint,
    }
    endpoint_path = args.path or configured[args.command]
    with RequestDispatcher(timeout=settings.request_timeout_seconds) as dispatcher:
        response = public_api_request(settings.api_link, endpoint_path, dispatcher=dispatcher)

    if args.schema:
        try:
            schema = load_schema(args.schema)
        except (OSError, ValueError, SchemaError) as exc:
            print(f"Cannot load schema {args.schema}: {exc}", file=sys.stderr)
            return EXIT_ERROR
        try:
            payload = validate_response_body(response, schema, source=endpoint_path)
        except SchemaValidationError as exc:
            print(f"Schema validation failed for {endpoint_path}:", file=sys.stderr)
            for error in exc.errors:
                print(f"  - {error}", file=sys.stderr)
            return EXIT_API_FAILURE
    else:
        payload, errors = _api_errors(response)
        if errors:
            for error in errors:
                print(f"API error: {error}", file=sys.stderr)
            return EXIT_API_FAILURE

    print(json.dumps(payload, indent=2, sort_keys=True))
    return EXIT_OK


_COMMANDS = {
    "open-orders": run_open_orders,
    "server-time": run_public,
    "asset-pairs": run_public,
    "sign": run_sign,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args.env_file)
    except ValidationError as exc:
        print(f"Configuration error: {sanitize_text(str(exc))}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(args.log_level or settings.log_level)
    with with_logging_context(command=args.command):
        try:
            return _COMMANDS[args.command](settings, args)
        except ApiSignError as exc:
            logger.error(
                "command_failed",
                extra={"extra": {"error_type": type(exc).__name__}},
            )
            print(f"{type(exc).__name__}: {sanitize_text(str(exc))}", file=sys.stderr)
            return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
