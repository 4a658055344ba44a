"""Asynchronous binding for sandboxed (browser-style) runtimes.

Mirrors :class:`crosskey.security.native.NativeCrypto` call for call, but
every operation is a coroutine and the cipher is one-shot: ``emit`` is
called exactly once with the whole result.
"""
from __future__ import annotations

import inspect
import logging
from typing import Callable, Optional

from ..core.encoding import b64decode, b64encode
from ..core.exceptions import CorruptCiphertextError
from .cipher import CORRUPT_MESSAGE, decode_key_material, encode_plaintext
from .kdf import ITERATIONS, KEY_LENGTH, SALT_LENGTH, check_random, encode_password
from .providers import OperationError, SubtleCryptoProvider, require_capability

logger = logging.getLogger(__name__)

Emit = Callable[..., object]


class SubtleCrypto:
    """Key derivation and AES-256-CBC over an asynchronous provider."""

    def __init__(self, provider=None):
        self.provider = provider if provider is not None else SubtleCryptoProvider()

    async def generate_salt(self) -> str:
        get_random_values = require_capability(self.provider, "get_random_values")
        return b64encode(check_random(get_random_values(SALT_LENGTH)))

    async def generate_key(self, password: bytes | str, salt: str) -> str:
        import_key = require_capability(self.provider, "import_key")
        derive_bits = require_capability(self.provider, "derive_bits")
        raw_salt = b64decode(salt, "salt", SALT_LENGTH)

        base_key = await import_key(
            "raw", encode_password(password), "PBKDF2", ("deriveBits", "deriveKey")
        )
        logger.debug("deriving key (iterations=%d, length=%d)", ITERATIONS, KEY_LENGTH)
        bits = await derive_bits(
            {"name": "PBKDF2", "salt": raw_salt, "iterations": ITERATIONS, "hash": "SHA-256"},
            base_key,
            KEY_LENGTH * 8,
        )
        return b64encode(bits)

    async def generate_fingerprint(self, password: bytes | str, salt: str) -> str:
        """Second PBKDF2 pass over the first-layer key; safe to store."""
        key = await self.generate_key(password, salt)
        return await self.generate_key(key, salt)

    async def encrypt(
        self, key: str, salt: str, plaintext: bytes | str, emit: Optional[Emit] = None
    ) -> str:
        import_key = require_capability(self.provider, "import_key")
        encrypt = require_capability(self.provider, "encrypt")
        raw_key, iv = decode_key_material(key, salt)

        crypto_key = await import_key("raw", raw_key, "AES-CBC", ("encrypt",))
        ciphertext = await encrypt(
            {"name": "AES-CBC", "iv": iv}, crypto_key, encode_plaintext(plaintext)
        )
        result = b64encode(ciphertext)
        await _emit(emit, result)
        return result

    async def decrypt(
        self,
        key: str,
        salt: str,
        ciphertext: str,
        emit: Optional[Emit] = None,
        encoding: Optional[str] = "utf-8",
    ) -> str | bytes:
        import_key = require_capability(self.provider, "import_key")
        decrypt = require_capability(self.provider, "decrypt")
        raw_key, iv = decode_key_material(key, salt)
        data = b64decode(ciphertext, "ciphertext")

        crypto_key = await import_key("raw", raw_key, "AES-CBC", ("decrypt",))
        try:
            plaintext = await decrypt({"name": "AES-CBC", "iv": iv}, crypto_key, data)
            result = plaintext if encoding is None else plaintext.decode(encoding)
        except (OperationError, UnicodeDecodeError):
            raise CorruptCiphertextError(CORRUPT_MESSAGE) from None

        await _emit(emit, result)
        return result


async def _emit(emit: Optional[Emit], value) -> None:
    # accept both plain callbacks and coroutine functions
    if emit is None:
        return
    outcome = emit(value)
    if inspect.isawaitable(outcome):
        await outcome
