#!/usr/bin/env python3
"""Generate a random ADMIN_SYNC_KEY (the server refuses keys shorter than 32 chars)."""
import argparse
import secrets
import string

MIN_LENGTH = 32


def generate_secret(length: int = 48) -> str:
    """Generate a cryptographically secure random string."""
    if length < MIN_LENGTH:
        raise ValueError(f"ADMIN_SYNC_KEY must be at least {MIN_LENGTH} characters")
    alphabet = string.ascii_letters + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--length", type=int, default=48)
    args = parser.parse_args()

    secret = generate_secret(args.length)
    print(f"Generated admin sync key ({len(secret)} chars). Add this to your environment:")
    print(f"ADMIN_SYNC_KEY={secret}")
