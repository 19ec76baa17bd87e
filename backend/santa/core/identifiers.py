"""Identifiers, bearer tokens and verification codes.

- Identifiers are UUIDv7 values: a 48-bit millisecond timestamp followed by
  random bits, so primary keys sort roughly by creation time and reveal
  nothing beyond it.
- Access tokens (admin and view) are 32 characters from the 62-symbol
  alphanumeric alphabet (~190 bits), drawn from the OS CSPRNG.
- Verification codes are 6 decimal digits. They are scoped to one request,
  so collisions across requests are harmless.

Tokens are compared with ``hmac.compare_digest`` so a mismatch takes the same
time regardless of where the first differing character is.
"""

import hashlib
import hmac
import os
import random
import secrets
import string
import time
import uuid

ALPHANUMERIC = string.ascii_letters + string.digits
ACCESS_TOKEN_LENGTH = 32
VERIFICATION_CODE_LENGTH = 6

_VERIFICATION_CODE_SPACE = 10**VERIFICATION_CODE_LENGTH
_UUID_VERSION_7 = 0x7
_UUID_VARIANT_RFC4122 = 0b10
_TIMESTAMP_MASK = (1 << 48) - 1

_system_random = secrets.SystemRandom()


def check_entropy_source() -> None:
    """Fail loudly if the OS random source is unavailable.

    Called once at startup so the process refuses to run rather than
    issuing weak tokens.

    Raises:
        NotImplementedError: If os.urandom has no backing source.
    """
    os.urandom(16)


def new_identifier() -> uuid.UUID:
    """Create a time-ordered unique identifier (UUID version 7).

    Returns:
        UUID whose most significant 48 bits are the Unix time in ms.
    """
    unix_ms = time.time_ns() // 1_000_000
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)
    value = (
        (unix_ms & _TIMESTAMP_MASK) << 80
        | _UUID_VERSION_7 << 76
        | rand_a << 64
        | _UUID_VARIANT_RFC4122 << 62
        | rand_b
    )
    return uuid.UUID(int=value)


def new_access_token(rng: random.Random | None = None) -> str:
    """Generate a bearer token for an admin or reveal link.

    Args:
        rng: Random source. Defaults to the OS CSPRNG; only tests pass
            a seeded generator.

    Returns:
        32-character alphanumeric token.
    """
    source = rng or _system_random
    return "".join(source.choice(ALPHANUMERIC) for _ in range(ACCESS_TOKEN_LENGTH))


def new_verification_code(rng: random.Random | None = None) -> str:
    """Generate a zero-padded 6-digit verification code.

    Args:
        rng: Random source. Defaults to the OS CSPRNG.

    Returns:
        Code in the range "000000"-"999999".
    """
    source = rng or _system_random
    return f"{source.randrange(_VERIFICATION_CODE_SPACE):0{VERIFICATION_CODE_LENGTH}d}"


def tokens_match(submitted: str, stored: str) -> bool:
    """Compare two secrets in constant time."""
    return hmac.compare_digest(submitted.encode(), stored.encode())


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token, for tokens stored only as hashes."""
    return hashlib.sha256(token.encode()).hexdigest()
