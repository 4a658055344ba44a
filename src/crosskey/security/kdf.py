"""Salt generation and PBKDF2 key / fingerprint derivation."""
from __future__ import annotations

import logging

from ..core.encoding import b64decode, b64encode
from ..core.exceptions import CapabilityUnsupportedError, InvalidParameterError
from .providers import require_capability

logger = logging.getLogger(__name__)

# Protocol constants. Changing any of these breaks compatibility with data
# produced by either binding.
SALT_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 100_000
DIGEST = "sha256"


def encode_password(password: bytes | str) -> bytes:
    if isinstance(password, str):
        return password.encode("utf-8")
    if isinstance(password, (bytes, bytearray)):
        return bytes(password)
    raise InvalidParameterError("password must be str or bytes")


def check_random(raw: bytes) -> bytes:
    # a short read from the random source is as bad as no source at all
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != SALT_LENGTH:
        raise CapabilityUnsupportedError("random source returned an unexpected result")
    return bytes(raw)


def generate_salt(provider) -> str:
    """Return a base64 encoded 16-byte salt from the provider's CSPRNG."""
    random_bytes = require_capability(provider, "random_bytes")
    return b64encode(check_random(random_bytes(SALT_LENGTH)))


def derive_key(provider, password: bytes | str, salt: str) -> str:
    """
    Derive a base64 encoded 32-byte key with PBKDF2-HMAC-SHA256.

    The salt is the base64 text produced by :func:`generate_salt`; it is
    decoded to its raw 16 bytes before use.
    """
    pbkdf2 = require_capability(provider, "pbkdf2_hmac")
    raw_salt = b64decode(salt, "salt", SALT_LENGTH)
    secret = encode_password(password)

    logger.debug("deriving key (iterations=%d, length=%d)", ITERATIONS, KEY_LENGTH)
    return b64encode(pbkdf2(secret, raw_salt, ITERATIONS, KEY_LENGTH, DIGEST))


def derive_fingerprint(provider, password: bytes | str, salt: str) -> str:
    """
    Derive a value that is safe to store next to the salt.

    The first-layer key can decrypt data, so it is fed back through
    :func:`derive_key` as the password and only the second layer leaves
    this function.
    """
    key = derive_key(provider, password, salt)
    return derive_key(provider, key, salt)
