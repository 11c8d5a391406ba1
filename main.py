#!/usr/bin/env python3
"""
RxAuth -- operator CLI for credential and secret chores.

Usage:
  python main.py generate-password
  python main.py generate-password --length 20
  python main.py check-password 'Str0ng!Pass123'
  python main.py generate-secret

generate-secret prints a value suitable for JWT_SECRET or
REFRESH_TOKEN_SECRET. Run it twice -- the two secrets must differ.
"""

import argparse
import secrets
import sys
from typing import Optional

from auth.passwords import MIN_PASSWORD_LENGTH, generate_compliant_secret, validate_strength


def _cmd_generate_password(args: argparse.Namespace) -> int:
    print(generate_compliant_secret(args.length))
    return 0


def _cmd_check_password(args: argparse.Namespace) -> int:
    report = validate_strength(args.password)
    if report.valid:
        print("  Password meets all strength requirements.")
        return 0
    print("  [!] Password is too weak:")
    for error in report.errors:
        print(f"      - {error}")
    return 1


def _cmd_generate_secret(args: argparse.Namespace) -> int:
    # 32 random bytes -> 64 hex chars, well above the 32-char minimum.
    print(secrets.token_hex(32))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rxauth",
        description="Credential and secret helpers for RxAuth.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py generate-password --length 20
  python main.py check-password 'hunter2'
  echo "JWT_SECRET=$(python main.py generate-secret)" >> .env
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    gen = sub.add_parser("generate-password", help="Print a random password that passes the strength policy")
    gen.add_argument(
        "--length",
        type=int,
        default=16,
        metavar="N",
        help=f"Password length (minimum {MIN_PASSWORD_LENGTH}, default 16)",
    )
    gen.set_defaults(func=_cmd_generate_password)

    check = sub.add_parser("check-password", help="Report every strength rule a password violates")
    check.add_argument("password", help="Password to check")
    check.set_defaults(func=_cmd_check_password)

    secret = sub.add_parser("generate-secret", help="Print a random 64-hex-char token signing secret")
    secret.set_defaults(func=_cmd_generate_secret)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
