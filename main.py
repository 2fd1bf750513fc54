#!/usr/bin/env python3
"""
orgauth -- command-line client for the orgauth configuration API.

Usage:
  python main.py read
  python main.py read --format json
  python main.py write organization=acme
  python main.py write organization=acme base_url=https://ghe.example.com/api/v3 token_ttl=1h
  python main.py write organization_id=1234567
  python main.py fields

Environment variables:
  ORGAUTH_ADDR   Server address. Default: http://127.0.0.1:8200
  ORGAUTH_TOKEN  Operator token, sent as "Authorization: Bearer <token>".
"""

import argparse
import json
import os
import sys
from typing import Any, Optional

import requests

from core.schema import CONFIG_FIELDS

CONFIG_PATH = "/api/v1/auth/github/config"
FIELDS_PATH = "/api/v1/auth/github/config/fields"
DEFAULT_ADDR = "http://127.0.0.1:8200"

# Module-level session shared across calls for connection pooling.
# max_redirects=3 replaces the requests default of 30.
_session = requests.Session()
_session.max_redirects = 3


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    """Turn ["organization=acme", "ttl=1h"] into a dict.

    Raises ValueError on a missing "=" or an unknown field name, so typos are
    caught before anything is sent.
    """
    body: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"expected key=value, got {pair!r}")
        if key not in CONFIG_FIELDS:
            raise ValueError(f"unknown field {key!r}. Run 'fields' to list valid names.")
        body[key] = value
    return body


def _request(
    method: str,
    address: str,
    path: str,
    token: Optional[str],
    body: Optional[dict[str, Any]] = None,
) -> requests.Response:
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return _session.request(method, address.rstrip("/") + path, headers=headers, json=body, timeout=10)


def _print_error(resp: requests.Response) -> None:
    try:
        error = resp.json().get("error", {})
        print(f"  [!] {resp.status_code} {error.get('code', 'error')}: {error.get('message', resp.text)}")
        if error.get("detail"):
            print(f"      {error['detail']}")
    except ValueError:
        print(f"  [!] {resp.status_code}: {resp.text}")


def _print_table(data: dict[str, Any]) -> None:
    if not data:
        return
    width = max(len(k) for k in data)
    print(f"{'Key'.ljust(width)}    Value")
    print(f"{'---'.ljust(width)}    -----")
    for key in sorted(data):
        value = data[key]
        if isinstance(value, list):
            value = "[" + " ".join(str(v) for v in value) + "]"
        print(f"{key.ljust(width)}    {value}")


def cmd_read(args: argparse.Namespace) -> int:
    resp = _request("GET", args.address, CONFIG_PATH, args.token)
    if resp.status_code == 204:
        print("  No configuration found. Run 'write organization=<name>' first.")
        return 0
    if not resp.ok:
        _print_error(resp)
        return 1
    payload = resp.json()
    if args.format == "json":
        print(json.dumps(payload, indent=2))
    else:
        _print_table(payload.get("data", {}))
        for warning in payload.get("warnings", []):
            print(f"  WARNING: {warning}")
    return 0


def cmd_write(args: argparse.Namespace) -> int:
    try:
        body = _parse_pairs(args.pairs)
    except ValueError as e:
        print(f"  [!] {e}")
        return 2
    if not body:
        print("  [!] Nothing to write. Pass one or more key=value pairs.")
        return 2

    resp = _request("POST", args.address, CONFIG_PATH, args.token, body)
    if not resp.ok:
        _print_error(resp)
        return 1
    print("  Success! Data written to: auth/github/config")
    if resp.status_code != 204:
        for warning in resp.json().get("warnings", []):
            print(f"  WARNING: {warning}")
    return 0


def cmd_fields(args: argparse.Namespace) -> int:
    resp = _request("GET", args.address, FIELDS_PATH, args.token)
    if not resp.ok:
        _print_error(resp)
        return 1
    fields = resp.json()
    if args.format == "json":
        print(json.dumps(fields, indent=2))
        return 0
    for f in fields:
        flags = []
        if f.get("required"):
            flags.append("required")
        if f.get("deprecated"):
            flags.append("deprecated")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  {f['name']} <{f['type']}>{suffix}")
        print(f"      {f['description']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orgauth",
        description="Read and write the GitHub organization auth method's configuration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  orgauth write organization=acme
  orgauth write organization=acme organization_id=1234567
  orgauth write base_url=https://ghe.example.com/api/v3
  orgauth write token_policies=dev,ops token_ttl=1h token_max_ttl=4h
  orgauth read --format json
  ORGAUTH_ADDR=https://orgauth.internal:8200 orgauth read
        """,
    )
    parser.add_argument(
        "--address",
        default=os.environ.get("ORGAUTH_ADDR") or DEFAULT_ADDR,
        metavar="URL",
        help=f"Server address (default: $ORGAUTH_ADDR or {DEFAULT_ADDR})",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("ORGAUTH_TOKEN") or None,
        metavar="TOKEN",
        help="Operator token (default: $ORGAUTH_TOKEN)",
    )
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format for read and fields (default: table)",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    read_p = sub.add_parser("read", help="Show the current configuration")
    read_p.set_defaults(func=cmd_read)
    write_p = sub.add_parser("write", help="Update configuration fields (key=value ...)")
    write_p.add_argument("pairs", nargs="*", metavar="KEY=VALUE")
    write_p.set_defaults(func=cmd_write)
    fields_p = sub.add_parser("fields", help="List accepted configuration fields")
    fields_p.set_defaults(func=cmd_fields)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except requests.RequestException as e:
        print(f"  [!] Could not reach {args.address}: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
