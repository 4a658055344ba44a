"""crosskey: reproducible PBKDF2 keys and AES-256-CBC across runtimes."""

from .core.exceptions import (
    CrossKeyError,
    CapabilityUnsupportedError,
    InvalidParameterError,
    CorruptCiphertextError,
    ConfigurationError,
)
from .security import NativeCrypto, SubtleCrypto

__version__ = "0.1.0"

__all__ = [
    "CrossKeyError",
    "CapabilityUnsupportedError",
    "InvalidParameterError",
    "CorruptCiphertextError",
    "ConfigurationError",
    "NativeCrypto",
    "SubtleCrypto",
    "__version__",
]
