"""Crypto primitive providers handed to the bindings.

Providers are the capability objects each runtime binding is constructed
with. They hold no mutable state, so a single instance may be shared by any
number of concurrent calls.

- ``NativeCryptoProvider``: synchronous, incremental (update/finalize)
  primitives in the style of a server crypto module.
- ``SubtleCryptoProvider``: asynchronous one-shot primitives in the style of
  a browser SubtleCrypto object.

A provider that lacks one of the methods a binding needs is rejected by
:func:`require_capability` before any work is done.
"""
from __future__ import annotations

import asyncio
import functools
import hashlib
import os
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import CapabilityUnsupportedError


_HASHES = {"sha256": hashes.SHA256}
_CIPHERS = {"aes-256-cbc": 32}


def require_capability(provider: Any, name: str):
    """Return ``provider.<name>`` or raise if it is missing or not callable."""
    fn = getattr(provider, name, None)
    if not callable(fn):
        raise CapabilityUnsupportedError(
            f"{type(provider).__name__}.{name} is not supported"
        )
    return fn


# ----------------------------------------------------------------------
# Native (synchronous, incremental)
# ----------------------------------------------------------------------


class CbcEncryptContext:
    """AES-CBC encryptor with PKCS#7 padding applied on finalize()."""

    def __init__(self, key: bytes, iv: bytes):
        self._encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        self._padder = padding.PKCS7(algorithms.AES.block_size).padder()

    def update(self, data: bytes) -> bytes:
        return self._encryptor.update(self._padder.update(data))

    def finalize(self) -> bytes:
        tail = self._encryptor.update(self._padder.finalize())
        return tail + self._encryptor.finalize()


class CbcDecryptContext:
    """
    AES-CBC decryptor that strips PKCS#7 padding.

    The last decrypted block is held back until finalize(), where a bad
    padding or a ciphertext that is not block aligned raises ``ValueError``.
    """

    def __init__(self, key: bytes, iv: bytes):
        self._decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        self._unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()

    def update(self, data: bytes) -> bytes:
        return self._unpadder.update(self._decryptor.update(data))

    def finalize(self) -> bytes:
        tail = self._unpadder.update(self._decryptor.finalize())
        return tail + self._unpadder.finalize()


class NativeCryptoProvider:
    """Synchronous primitives backed by ``os.urandom`` and ``cryptography``."""

    def random_bytes(self, size: int) -> bytes:
        return os.urandom(size)

    def pbkdf2_hmac(
        self,
        password: bytes,
        salt: bytes,
        iterations: int,
        length: int,
        digest: str = "sha256",
    ) -> bytes:
        if digest not in _HASHES:
            raise CapabilityUnsupportedError(f"digest {digest!r} is not supported")
        kdf = PBKDF2HMAC(
            algorithm=_HASHES[digest](),
            length=length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password)

    def create_cipheriv(self, algorithm: str, key: bytes, iv: bytes) -> CbcEncryptContext:
        self._check_cipher(algorithm, key)
        return CbcEncryptContext(key, iv)

    def create_decipheriv(self, algorithm: str, key: bytes, iv: bytes) -> CbcDecryptContext:
        self._check_cipher(algorithm, key)
        return CbcDecryptContext(key, iv)

    @staticmethod
    def _check_cipher(algorithm: str, key: bytes) -> None:
        if algorithm not in _CIPHERS:
            raise CapabilityUnsupportedError(f"cipher {algorithm!r} is not supported")
        if len(key) != _CIPHERS[algorithm]:
            raise ValueError(f"{algorithm} requires a {_CIPHERS[algorithm]}-byte key")


# ----------------------------------------------------------------------
# Subtle (asynchronous, one-shot)
# ----------------------------------------------------------------------


async def _off_loop(fn, *args):
    # run blocking crypto on the default executor
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args))


class OperationError(Exception):
    # raised by SubtleCryptoProvider when an operation fails (bad padding etc.)
    pass


@dataclass(frozen=True)
class CryptoKey:
    """Opaque imported key; the raw material is kept out of repr()."""

    algorithm: str
    usages: Tuple[str, ...]
    material: bytes = field(repr=False)


class SubtleCryptoProvider:
    """
    Asynchronous primitives with a SubtleCrypto-shaped surface.

    PBKDF2 (:func:`hashlib.pbkdf2_hmac`) and the one-shot AES-CBC of
    ``cryptography`` both run on the default executor, so a long derivation
    or a large payload does not block the event loop.
    """

    _IMPORTABLE = ("PBKDF2", "AES-CBC")

    def get_random_values(self, size: int) -> bytes:
        return secrets.token_bytes(size)

    async def import_key(
        self, fmt: str, key_data: bytes, algorithm: str, usages: Tuple[str, ...]
    ) -> CryptoKey:
        if fmt != "raw":
            raise CapabilityUnsupportedError(f"key format {fmt!r} is not supported")
        if algorithm not in self._IMPORTABLE:
            raise CapabilityUnsupportedError(f"algorithm {algorithm!r} is not supported")
        if algorithm == "AES-CBC" and len(key_data) not in (16, 24, 32):
            raise OperationError("AES key data must be 128, 192 or 256 bits")
        return CryptoKey(algorithm=algorithm, usages=tuple(usages), material=bytes(key_data))

    async def derive_bits(self, params: Dict[str, Any], key: CryptoKey, length: int) -> bytes:
        if params.get("name") != "PBKDF2" or key.algorithm != "PBKDF2":
            raise OperationError("deriveBits requires a PBKDF2 key and parameters")
        if "deriveBits" not in key.usages:
            raise OperationError("key usages do not permit deriveBits")
        if params.get("hash") != "SHA-256":
            raise CapabilityUnsupportedError(f"hash {params.get('hash')!r} is not supported")
        if length % 8:
            raise OperationError("length must be a multiple of 8")

        return await _off_loop(
            hashlib.pbkdf2_hmac,
            "sha256",
            key.material,
            bytes(params["salt"]),
            int(params["iterations"]),
            length // 8,
        )

    async def encrypt(self, params: Dict[str, Any], key: CryptoKey, data: bytes) -> bytes:
        cipher = self._cipher(params, key, "encrypt")
        return await _off_loop(self._encrypt_blocking, cipher, bytes(data))

    async def decrypt(self, params: Dict[str, Any], key: CryptoKey, data: bytes) -> bytes:
        cipher = self._cipher(params, key, "decrypt")
        data = bytes(data)
        if not data or len(data) % 16:
            raise OperationError("ciphertext is not a whole number of blocks")
        return await _off_loop(self._decrypt_blocking, cipher, data)

    @staticmethod
    def _encrypt_blocking(cipher: Cipher, data: bytes) -> bytes:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        encryptor = cipher.encryptor()
        padded = padder.update(data) + padder.finalize()
        return encryptor.update(padded) + encryptor.finalize()

    @staticmethod
    def _decrypt_blocking(cipher: Cipher, data: bytes) -> bytes:
        decryptor = cipher.decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            raise OperationError("the operation failed for an operation-specific reason") from None

    @staticmethod
    def _cipher(params: Dict[str, Any], key: CryptoKey, usage: str) -> Cipher:
        if params.get("name") != "AES-CBC" or key.algorithm != "AES-CBC":
            raise OperationError("AES-CBC key and parameters required")
        if usage not in key.usages:
            raise OperationError(f"key usages do not permit {usage}")
        iv = bytes(params["iv"])
        if len(iv) != 16:
            raise OperationError("AES-CBC iv must be 16 bytes")
        return Cipher(algorithms.AES(key.material), modes.CBC(iv))
