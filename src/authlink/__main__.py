"""AuthLink CLI — operator tooling for two-factor secrets.

Usage:
    python -m authlink secret            # Generate a secret + provisioning URI
    python -m authlink code SECRET       # Current code for a Base32 secret
    python -m authlink verify SECRET CODE
    python -m authlink setup-db          # Create tables
    python -m authlink server            # Start the API (FastAPI on port 8890)
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from authlink.auth import base32, totp
from authlink.auth.provisioning import build_provisioning_uri, generate_secret
from authlink.config import settings
from authlink.errors import InvalidSecretFormat


def cmd_secret(args: argparse.Namespace) -> None:
    """Print a fresh secret and its provisioning URI."""
    secret = generate_secret(args.bytes)
    print(f"Secret: {base32.encode(secret)}")
    print(f"URI:    {build_provisioning_uri(settings.issuer, args.label, secret)}")


def _decode_or_exit(text: str) -> bytes:
    try:
        return base32.decode(text)
    except InvalidSecretFormat as e:
        print(f"Error: {e}")
        sys.exit(1)


def cmd_code(args: argparse.Namespace) -> None:
    """Print the current code and seconds until it rolls over."""
    secret = _decode_or_exit(args.secret)
    now = time.time()
    remaining = totp.STEP_SECONDS - int(now) % totp.STEP_SECONDS
    print(f"{totp.current_code(secret, now)}  ({remaining}s left)")


def cmd_verify(args: argparse.Namespace) -> None:
    """Verify a code against a secret."""
    secret = _decode_or_exit(args.secret)
    result = totp.verify_code(secret, args.code, time.time(), window=args.window)
    if result.ok:
        print(f"Accepted (step {result.step})")
    else:
        print(f"Rejected: {result.error}")
        sys.exit(1)


def cmd_setup_db(args: argparse.Namespace) -> None:
    """Create database tables."""
    from authlink.db import create_schema
    create_schema()
    print("Schema created.")


def cmd_server(args: argparse.Namespace) -> None:
    """Start the API server."""
    import uvicorn

    print(f"Starting AuthLink on http://{args.host}:{args.port}")
    uvicorn.run("authlink.dashboard.app:create_app", factory=True,
                host=args.host, port=args.port, log_level="info")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="authlink",
        description="AuthLink — two-factor authentication for the operator dashboard",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", help="Command to run")

    # secret
    p_secret = sub.add_parser("secret", help="Generate a new shared secret")
    p_secret.add_argument("--bytes", type=int, default=settings.secret_bytes)
    p_secret.add_argument("--label", default=settings.admin_username)

    # code
    p_code = sub.add_parser("code", help="Show the current code for a secret")
    p_code.add_argument("secret")

    # verify
    p_verify = sub.add_parser("verify", help="Verify a code against a secret")
    p_verify.add_argument("secret")
    p_verify.add_argument("code")
    p_verify.add_argument("--window", type=int, default=settings.totp_window)

    # setup-db
    sub.add_parser("setup-db", help="Create database tables")

    # server
    p_server = sub.add_parser("server", help="Start the API (FastAPI)")
    p_server.add_argument("--port", type=int, default=8890)
    p_server.add_argument("--host", default="127.0.0.1")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    dispatch = {
        "secret": cmd_secret,
        "code": cmd_code,
        "verify": cmd_verify,
        "setup-db": cmd_setup_db,
        "server": cmd_server,
    }
    dispatch[args.command](args)


if __name__ == "__main__":
    main()
