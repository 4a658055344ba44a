"""Security helpers: PBKDF2 key derivation and AES-256-CBC for crosskey.

This package provides the two interchangeable bindings of the protocol:
- ``NativeCrypto``: synchronous, incremental, for server-side code
- ``SubtleCrypto``: asyncio based, one-shot, for sandboxed runtimes

Both take their primitive provider as a constructor argument and produce
identical salts-to-keys and ciphertexts for the same inputs.
"""

from .kdf import (
    SALT_LENGTH,
    KEY_LENGTH,
    ITERATIONS,
    generate_salt,
    derive_key,
    derive_fingerprint,
)
from .cipher import StreamCipher, BLOCK_SIZE, CIPHER_NAME
from .providers import NativeCryptoProvider, SubtleCryptoProvider, require_capability
from .native import NativeCrypto
from .subtle import SubtleCrypto

__all__ = [
    "SALT_LENGTH",
    "KEY_LENGTH",
    "ITERATIONS",
    "BLOCK_SIZE",
    "CIPHER_NAME",
    "generate_salt",
    "derive_key",
    "derive_fingerprint",
    "StreamCipher",
    "NativeCryptoProvider",
    "SubtleCryptoProvider",
    "require_capability",
    "NativeCrypto",
    "SubtleCrypto",
]
