"""AES-256-CBC streaming encryption with the salt reused as IV.

The cipher works on raw bytes and hands results back as a lazy iterator of
chunks: every ``update`` output is yielded as soon as the underlying context
releases it, followed by the closing block from ``finalize``. Input may be a
single ``bytes`` object or any iterable of byte chunks of arbitrary size.

Reusing the salt as IV keeps the number of stored values down to one, but
it means a salt must never protect two different plaintexts under the same
password. Generate a fresh salt per protected item.
"""
from __future__ import annotations

import codecs
import logging
from typing import BinaryIO, Iterable, Iterator, Optional, Tuple

from ..core.encoding import Base64ChunkEncoder, b64decode
from ..core.exceptions import CorruptCiphertextError, InvalidParameterError
from .kdf import KEY_LENGTH, SALT_LENGTH
from .providers import require_capability

logger = logging.getLogger(__name__)

CIPHER_NAME = "aes-256-cbc"
BLOCK_SIZE = 16
DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB
# one message for every decryption failure; callers must not learn which check failed
CORRUPT_MESSAGE = "invalid padding: corrupt ciphertext or wrong key"


def decode_key_material(key: bytes | str, iv: bytes | str) -> Tuple[bytes, bytes]:
    """Return raw (key, iv), decoding base64 text and checking both lengths."""
    if isinstance(key, str):
        key = b64decode(key, "key", KEY_LENGTH)
    elif len(key) != KEY_LENGTH:
        raise InvalidParameterError(f"key must be {KEY_LENGTH} bytes, got {len(key)}")
    if isinstance(iv, str):
        iv = b64decode(iv, "salt", SALT_LENGTH)
    elif len(iv) != SALT_LENGTH:
        raise InvalidParameterError(f"salt must be {SALT_LENGTH} bytes, got {len(iv)}")
    return bytes(key), bytes(iv)


def encode_plaintext(plaintext: bytes | str) -> bytes:
    if isinstance(plaintext, str):
        return plaintext.encode("utf-8")
    if isinstance(plaintext, (bytes, bytearray, memoryview)):
        return bytes(plaintext)
    raise InvalidParameterError("plaintext must be str or bytes")


def iter_reader(reader: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    while True:
        data = reader.read(chunk_size)
        if not data:
            break
        yield data


def encode_chunks(chunks: Iterable[bytes]) -> Iterator[str]:
    """Base64-encode a chunk stream; the pieces concatenate to valid base64."""
    encoder = Base64ChunkEncoder()
    for chunk in chunks:
        text = encoder.update(chunk)
        if text:
            yield text
    tail = encoder.finalize()
    if tail:
        yield tail


def decode_text_chunks(chunks: Iterable[bytes], encoding: str = "utf-8") -> Iterator[str]:
    """Incrementally decode plaintext chunks; undecodable output counts as corruption."""
    decoder = codecs.getincrementaldecoder(encoding)()
    try:
        for chunk in chunks:
            text = decoder.decode(chunk)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
    except UnicodeDecodeError:
        raise CorruptCiphertextError(CORRUPT_MESSAGE) from None
    if tail:
        yield tail


class StreamCipher:
    """
    Stateless AES-256-CBC encrypt/decrypt over a native crypto provider.

    Each call creates a fresh cipher context from the provider, so one
    instance can serve concurrent callers.
    """

    def __init__(self, provider):
        self.provider = provider

    def encrypt_chunks(
        self, key: bytes | str, iv: bytes | str, chunks: bytes | Iterable[bytes]
    ) -> Iterator[bytes]:
        create = require_capability(self.provider, "create_cipheriv")
        raw_key, raw_iv = decode_key_material(key, iv)
        context = create(CIPHER_NAME, raw_key, raw_iv)
        return self._run(context, _as_chunks(chunks), decrypting=False)

    def decrypt_chunks(
        self, key: bytes | str, iv: bytes | str, chunks: bytes | Iterable[bytes]
    ) -> Iterator[bytes]:
        create = require_capability(self.provider, "create_decipheriv")
        raw_key, raw_iv = decode_key_material(key, iv)
        context = create(CIPHER_NAME, raw_key, raw_iv)
        return self._run(context, _as_chunks(chunks), decrypting=True)

    def encrypt(self, key: bytes | str, iv: bytes | str, plaintext: bytes) -> bytes:
        return b"".join(self.encrypt_chunks(key, iv, plaintext))

    def decrypt(self, key: bytes | str, iv: bytes | str, ciphertext: bytes) -> bytes:
        return b"".join(self.decrypt_chunks(key, iv, ciphertext))

    def encrypt_stream(
        self,
        key: bytes | str,
        iv: bytes | str,
        reader: BinaryIO,
        writer: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """Encrypt ``reader`` into ``writer``; returns the number of bytes written."""
        return _pump(self.encrypt_chunks(key, iv, iter_reader(reader, chunk_size)), writer)

    def decrypt_stream(
        self,
        key: bytes | str,
        iv: bytes | str,
        reader: BinaryIO,
        writer: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """
        Decrypt ``reader`` into ``writer``.

        Plaintext is written as it is produced, so on CorruptCiphertextError
        the writer may already hold a partial result. Write to a temporary
        file and discard it on failure when that matters.
        """
        return _pump(self.decrypt_chunks(key, iv, iter_reader(reader, chunk_size)), writer)

    @staticmethod
    def _run(context, chunks: Iterable[bytes], decrypting: bool) -> Iterator[bytes]:
        processed = 0
        for chunk in chunks:
            processed += len(chunk)
            out = _step(context.update, bytes(chunk), decrypting)
            if out:
                yield out
        tail = _step(context.finalize, None, decrypting)
        logger.debug(
            "%s finished (%d input bytes)", "decryption" if decrypting else "encryption", processed
        )
        if tail:
            yield tail


def _as_chunks(data: bytes | Iterable[bytes]) -> Iterable[bytes]:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return (bytes(data),)
    return data


def _step(fn, data: Optional[bytes], decrypting: bool) -> bytes:
    try:
        return fn() if data is None else fn(data)
    except ValueError:
        if not decrypting:
            raise
        raise CorruptCiphertextError(CORRUPT_MESSAGE) from None


def _pump(chunks: Iterable[bytes], writer: BinaryIO) -> int:
    written = 0
    for chunk in chunks:
        writer.write(chunk)
        written += len(chunk)
    return written
