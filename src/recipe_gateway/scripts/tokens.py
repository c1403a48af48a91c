# src/recipe_gateway/scripts/tokens.py
"""
Operator helpers for capability tokens.

    python -m recipe_gateway.scripts.tokens generate-secret
    python -m recipe_gateway.scripts.tokens issue
    python -m recipe_gateway.scripts.tokens verify '{"nonce": ..., "exp": ..., "sig": ...}'

``verify`` uses a fresh nonce ledger, so it says whether a token is well
formed, current and correctly signed, not whether a running gateway has
already consumed it.
"""

from __future__ import annotations

import argparse
import json
import secrets
import sys

from recipe_gateway.core.settings import Settings
from recipe_gateway.services.tokens import TokenService

DEFAULT_SECRET_BYTES = 32


def build_token_service(source: Settings) -> TokenService:
    return TokenService(
        source.token_secret,
        ttl_seconds=source.token_ttl_seconds,
        clock_skew_seconds=source.token_clock_skew_seconds,
        grace_seconds=source.nonce_grace_seconds,
    )


def generate_secret(num_bytes: int = DEFAULT_SECRET_BYTES) -> str:
    """Return a random hex secret suitable for GATEWAY_TOKEN_SECRET."""
    return secrets.token_hex(num_bytes)


def main(argv: list[str] | None = None, source: Settings | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="recipe-gateway-tokens",
        description="Operator helpers for capability tokens.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    secret_cmd = commands.add_parser("generate-secret", help="print a new signing secret")
    secret_cmd.add_argument("--bytes", type=int, default=DEFAULT_SECRET_BYTES, dest="num_bytes")
    commands.add_parser("issue", help="print a token signed with the configured secret")
    verify_cmd = commands.add_parser("verify", help="check a token JSON document")
    verify_cmd.add_argument("token")

    args = parser.parse_args(argv)

    if args.command == "generate-secret":
        if args.num_bytes < 16:
            parser.error("--bytes must be at least 16")
        print(generate_secret(args.num_bytes))
        return 0

    service = build_token_service(source or Settings())

    if args.command == "issue":
        token = service.issue()
        print(json.dumps(token.to_dict() if token else None))
        return 0

    try:
        candidate = json.loads(args.token)
    except ValueError:
        print("malformed", file=sys.stderr)
        return 1
    result = service.verify(candidate)
    print(result.value)
    return 0 if result else 1


if __name__ == "__main__":
    sys.exit(main())
