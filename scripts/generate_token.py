"""
CLI utility to mint host tokens for the tool services.

The orchestrating host authenticates every MCP request with a Bearer JWT whose
"sub" claim is the caller identity. Provider credentials obtained through
OAuth2 are stored under that identity. This script mints such tokens for
local testing.

Usage examples:

    # Token for caller "agent-1" (default secret, 8 hours)
    python -m scripts.generate_token --sub agent-1

    # Custom secret (must match MCP_JWT_SECRET_KEY on the server)
    python -m scripts.generate_token --sub agent-1 --secret my-secret

    # Expired token (for testing rejection)
    python -m scripts.generate_token --sub agent-1 --exp-hours -1
"""

import argparse
import datetime

import jwt


def generate_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    exp_hours: float = 8.0,
) -> str:
    """
    Generate a signed host JWT for a caller identity.

    Args:
        subject: The "sub" claim, i.e. the caller identity
        secret: The signing key (must match the server's MCP_JWT_SECRET_KEY)
        algorithm: JWT signing algorithm (default: HS256)
        exp_hours: Hours until expiration (negative = already expired)

    Returns:
        The encoded JWT token string
    """
    now = datetime.datetime.now(datetime.timezone.utc)

    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + datetime.timedelta(hours=exp_hours),
    }

    return jwt.encode(payload, secret, algorithm=algorithm)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate host tokens for the OAuth2 tool services.",
    )
    parser.add_argument(
        "--sub",
        required=True,
        help="Caller identity the token represents (e.g., 'agent-1')",
    )
    parser.add_argument(
        "--secret",
        default="dev-secret-change-me",
        help="JWT signing secret (must match server's MCP_JWT_SECRET_KEY)",
    )
    parser.add_argument(
        "--algorithm",
        default="HS256",
        help="JWT signing algorithm (default: HS256)",
    )
    parser.add_argument(
        "--exp-hours",
        type=float,
        default=8.0,
        help="Hours until token expires (negative = already expired, default: 8)",
    )

    args = parser.parse_args()

    token = generate_token(
        subject=args.sub,
        secret=args.secret,
        algorithm=args.algorithm,
        exp_hours=args.exp_hours,
    )

    print(f"Caller:     {args.sub}")
    print(f"Algorithm:  {args.algorithm}")
    print()
    print(f"Token: {token}")
    print()
    print("Usage with curl (initialize MCP session):")
    print('  curl -X POST http://localhost:2022/mcp \\')
    print('    -H "Content-Type: application/json" \\')
    print('    -H "Accept: application/json, text/event-stream" \\')
    print(f'    -H "Authorization: Bearer {token}" \\')
    print(
        '    -d \'{"jsonrpc":"2.0","id":1,"method":"initialize",'
        '"params":{"protocolVersion":"2025-03-26","capabilities":{},'
        '"clientInfo":{"name":"test","version":"1.0"}}}\''
    )


if __name__ == "__main__":
    main()
