"""Synchronous binding for server-side use.

All values crossing this API are text: salts, keys, fingerprints and
ciphertexts are standard padded base64, plaintexts are ``str`` (UTF-8) or
``bytes``. Results are bit-compatible with :mod:`crosskey.security.subtle`.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from ..core.encoding import b64decode
from . import kdf
from .cipher import (
    DEFAULT_CHUNK_SIZE,
    StreamCipher,
    decode_key_material,
    decode_text_chunks,
    encode_chunks,
    encode_plaintext,
    iter_reader,
)
from .providers import NativeCryptoProvider, require_capability

logger = logging.getLogger(__name__)

Emit = Callable[[Union[str, bytes]], None]


class NativeCrypto:
    """
    Key derivation and AES-256-CBC over a synchronous provider.

    The provider is injected once at construction and only read afterwards;
    it defaults to :class:`NativeCryptoProvider`.
    """

    def __init__(self, provider=None, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.provider = provider if provider is not None else NativeCryptoProvider()
        self.cipher = StreamCipher(self.provider)
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Salts, keys and fingerprints
    # ------------------------------------------------------------------

    def generate_salt(self) -> str:
        return kdf.generate_salt(self.provider)

    def generate_key(self, password: bytes | str, salt: str) -> str:
        return kdf.derive_key(self.provider, password, salt)

    def generate_fingerprint(self, password: bytes | str, salt: str) -> str:
        return kdf.derive_fingerprint(self.provider, password, salt)

    # ------------------------------------------------------------------
    # Text encryption
    # ------------------------------------------------------------------

    def iter_encrypt(self, key: str, salt: str, plaintext: bytes | str) -> Iterator[str]:
        """Lazily yield base64 ciphertext pieces; joined they form one base64 string."""
        chunks = self.cipher.encrypt_chunks(key, salt, encode_plaintext(plaintext))
        return encode_chunks(chunks)

    def iter_decrypt(
        self, key: str, salt: str, ciphertext: str, encoding: Optional[str] = "utf-8"
    ) -> Iterator[str] | Iterator[bytes]:
        """
        Lazily yield plaintext pieces of a base64 ciphertext.

        With ``encoding=None`` the raw plaintext bytes are yielded instead of
        decoded text.
        """
        require_capability(self.provider, "create_decipheriv")
        chunks = self.cipher.decrypt_chunks(key, salt, _ciphertext_bytes(ciphertext))
        if encoding is None:
            return chunks
        return decode_text_chunks(chunks, encoding)

    def encrypt(
        self, key: str, salt: str, plaintext: bytes | str, emit: Optional[Emit] = None
    ) -> str:
        """
        Encrypt ``plaintext`` and return the base64 ciphertext.

        ``emit`` is called for every piece as it is produced: first the
        transformed blocks, then the padded closing block.
        """
        return "".join(_drain(self.iter_encrypt(key, salt, plaintext), emit))

    def decrypt(
        self,
        key: str,
        salt: str,
        ciphertext: str,
        emit: Optional[Emit] = None,
        encoding: Optional[str] = "utf-8",
    ) -> str | bytes:
        """
        Decrypt a base64 ciphertext and return the plaintext.

        ``emit`` receives plaintext pieces as they are produced, before the
        padding of the final block has been checked. On a corrupt ciphertext
        or wrong key it may already have been called when
        CorruptCiphertextError is raised, so treat emitted data as
        unverified until the call returns.
        """
        pieces = _drain(self.iter_decrypt(key, salt, ciphertext, encoding), emit)
        return b"".join(pieces) if encoding is None else "".join(pieces)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def encrypt_file(self, key: str, salt: str, in_path: str | Path, out_path: str | Path) -> int:
        """
        Encrypt a file into raw ciphertext bytes; returns the bytes written.

        Key, salt and provider are checked before ``out_path`` is opened, so
        an existing destination survives a rejected call.
        """
        with open(in_path, "rb") as inf:
            chunks = self.cipher.encrypt_chunks(key, salt, iter_reader(inf, self.chunk_size))
            with open(out_path, "wb") as outf:
                written = _write_all(chunks, outf)
        logger.info("encrypted %s (%d bytes)", Path(in_path).name, written)
        return written

    def decrypt_file(self, key: str, salt: str, in_path: str | Path, out_path: str | Path) -> int:
        """
        Decrypt a file produced by :meth:`encrypt_file`.

        Output goes to a temporary file next to ``out_path`` and is only
        moved into place once the padding check passed.
        """
        out_path = Path(out_path)
        # fail on a bad key or provider before creating the temp file
        require_capability(self.provider, "create_decipheriv")
        decode_key_material(key, salt)
        with tempfile.NamedTemporaryFile(dir=out_path.parent, delete=False) as tmpf:
            tmp_path = Path(tmpf.name)

        try:
            with open(in_path, "rb") as inf, open(tmp_path, "wb") as outf:
                written = self.cipher.decrypt_stream(key, salt, inf, outf, self.chunk_size)
            os.replace(tmp_path, out_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        logger.info("decrypted %s (%d bytes)", Path(in_path).name, written)
        return written


def _ciphertext_bytes(ciphertext: str | bytes) -> bytes:
    return b64decode(ciphertext, "ciphertext")


def _write_all(chunks, writer) -> int:
    written = 0
    for chunk in chunks:
        writer.write(chunk)
        written += len(chunk)
    return written


def _drain(pieces, emit: Optional[Emit]) -> list:
    collected = []
    for piece in pieces:
        if emit is not None:
            emit(piece)
        collected.append(piece)
    return collected
