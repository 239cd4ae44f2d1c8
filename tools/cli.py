#!/usr/bin/env python3
# =============================================================================
# CLI Tool for Slack Request Routing
# =============================================================================
# Developer tooling for local testing.
# Uses the same routers and verifier as the Lambda entry point.
#
# Usage:
#   python tools/cli.py sign --secret S --file event.json
#   python tools/cli.py verify --secret S --timestamp T --signature v0=... --file event.json
#   python tools/cli.py invoke --insecure --file event.json
#   python tools/cli.py invoke --interactions --secret S --file block_actions.json
# =============================================================================

import argparse
import json
import logging
import sys
import os
import time
from urllib.parse import urlencode

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from slackrouter import eventrouter, interactionrouter
from slackrouter.errors import VerificationError
from slackrouter.signature import HEADER_SIGNATURE, HEADER_TIMESTAMP, sign_headers, verify
from slackrouter.transport import FORM_CONTENT_TYPE, HttpRequest

logger = logging.getLogger("slackrouter.cli")


def _read_body(args) -> bytes:
    if args.file:
        with open(args.file, "rb") as f:
            return f.read()
    return args.body.encode("utf-8")


def _add_body_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--file", "-f", help="File to read the request body from")
    group.add_argument("--body", "-b", help="Request body")


def _log_fallback(payload, context=None) -> None:
    if isinstance(payload, interactionrouter.InteractionCallback):
        logger.info(f"Unhandled interaction: {json.dumps(payload.raw, ensure_ascii=False)}")
    else:
        logger.info(f"Unhandled event: {json.dumps(payload.raw, ensure_ascii=False)}")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_sign(args) -> int:
    body = _read_body(args)
    headers = sign_headers({}, args.secret, body, timestamp=args.timestamp)
    print(json.dumps(headers, indent=2 if args.pretty else None))
    return 0


def cmd_verify(args) -> int:
    body = _read_body(args)
    try:
        verify(args.secret, args.timestamp, body, args.signature, now=args.now)
    except VerificationError as e:
        print(f"REJECT: {type(e).__name__}: {e}")
        return 1
    print("ACCEPT")
    return 0


def cmd_invoke(args) -> int:
    body = _read_body(args)
    if not args.secret and not args.insecure:
        print("invoke needs --secret or --insecure", file=sys.stderr)
        return 2

    options = {"verbose_response": args.verbose}
    if args.insecure:
        options["insecure_skip_verification"] = True
    else:
        options["signing_secret"] = args.secret

    headers = {}
    if args.interactions:
        router = interactionrouter.Router(**options)
        body = urlencode({"payload": body.decode("utf-8")}).encode("utf-8")
        headers["Content-Type"] = FORM_CONTENT_TYPE
    else:
        router = eventrouter.Router(**options)
        headers["Content-Type"] = "application/json"
    router.set_fallback(_log_fallback)

    if not args.insecure:
        sign_headers(headers, args.secret, body, timestamp=int(time.time()))

    response = router.serve(HttpRequest.build(body=body, headers=headers))
    print(response.status_code)
    if response.body:
        print(response.text_body)
    return 0 if response.status_code < 400 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Slack request routing CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  %(prog)s sign --secret S --body '{{"type": "url_verification", "challenge": "abc"}}'
  %(prog)s verify --secret S --timestamp 1531420618 --signature v0=... --file event.json
  %(prog)s invoke --insecure --verbose --file event.json
  %(prog)s invoke --interactions --secret S --file block_actions.json

Headers produced by `sign`: {HEADER_TIMESTAMP}, {HEADER_SIGNATURE}
        """
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sign = subparsers.add_parser("sign", help="Print signature headers for a body")
    sign.add_argument("--secret", "-s", required=True, help="Signing secret")
    sign.add_argument("--timestamp", "-t", type=int, help="Request timestamp (default: now)")
    sign.add_argument("--pretty", "-p", action="store_true", help="Pretty print output")
    _add_body_arguments(sign)
    sign.set_defaults(func=cmd_sign)

    check = subparsers.add_parser("verify", help="Verify a signature")
    check.add_argument("--secret", "-s", required=True, help="Signing secret")
    check.add_argument("--timestamp", "-t", required=True, help="X-Slack-Request-Timestamp value")
    check.add_argument("--signature", required=True, help="X-Slack-Signature value")
    check.add_argument("--now", type=float, help="Verify as if the current time were this epoch")
    _add_body_arguments(check)
    check.set_defaults(func=cmd_verify)

    invoke = subparsers.add_parser("invoke", help="Send a body through a router locally")
    invoke.add_argument("--interactions", action="store_true",
                        help="Use the interaction router; the body is the JSON payload")
    invoke.add_argument("--secret", "-s", help="Signing secret (the body is signed with it)")
    invoke.add_argument("--insecure", action="store_true", help="Skip signature verification")
    invoke.add_argument("--verbose", "-v", action="store_true", help="Verbose error responses")
    _add_body_arguments(invoke)
    invoke.set_defaults(func=cmd_invoke)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if getattr(args, "insecure", False) and getattr(args, "secret", None):
        parser.error("--secret and --insecure are mutually exclusive")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
