"""Base64 helpers shared by both bindings."""

import base64
import binascii
from typing import Optional

from .exceptions import InvalidParameterError


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(text: str, name: str = "value", length: Optional[int] = None) -> bytes:
    """
    Strictly decode standard padded base64.

    ``name`` is only used in the error message, so pass the parameter name and
    never the value itself (keys must not end up in error text).
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError:
            raise InvalidParameterError(f"{name} is not valid base64") from None
    if not isinstance(text, str):
        raise InvalidParameterError(f"{name} must be base64 text")
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidParameterError(f"{name} is not valid base64") from None
    if length is not None and len(raw) != length:
        raise InvalidParameterError(
            f"{name} must decode to {length} bytes, got {len(raw)}"
        )
    return raw


class Base64ChunkEncoder:
    """
    Incrementally base64-encode a byte stream.

    Up to two trailing bytes are carried into the next call so every emitted
    chunk is a multiple of four characters and the concatenation of all
    chunks equals ``b64encode`` of the whole stream.
    """

    def __init__(self):
        self._pending = b""

    def update(self, data: bytes) -> str:
        data = self._pending + data
        cut = len(data) - (len(data) % 3)
        self._pending = data[cut:]
        return b64encode(data[:cut])

    def finalize(self) -> str:
        tail, self._pending = self._pending, b""
        return b64encode(tail)
