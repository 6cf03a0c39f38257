"""Opaque identifiers for sessions, resources and temp files."""

import secrets

# 16 bytes of entropy -> 32 hex characters
TOKEN_BYTES = 16


def new_id() -> str:
    """Return a fresh 128-bit random token as lowercase hex.

    Uses the OS CSPRNG. A failure to obtain randomness propagates: nothing
    downstream can safely continue without unguessable identifiers.
    """
    return secrets.token_hex(TOKEN_BYTES)
