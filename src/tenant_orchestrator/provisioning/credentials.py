"""Per-tenant secret generation."""

import secrets

DEFAULT_SECRET_LENGTH = 32


def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """Return a cryptographically random URL-safe string of exactly ``length`` chars."""
    if length < 1:
        raise ValueError(f"Secret length must be positive, got {length}")
    # token_urlsafe(n) yields ~1.3 chars per byte, so n bytes always cover n chars.
    return secrets.token_urlsafe(length)[:length]
