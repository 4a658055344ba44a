"""
Exceptions for the crosskey package
Every error raised by the bindings derives from CrossKeyError so callers
have one general error catcher
"""


class CrossKeyError(Exception):
    # general container for errors
    pass


class CapabilityUnsupportedError(CrossKeyError):
    # raised when the crypto provider lacks a required primitive
    pass


class InvalidParameterError(CrossKeyError):
    # raised on malformed base64 or wrong decoded key / salt length
    pass


class CorruptCiphertextError(CrossKeyError):
    # raised when decryption fails padding validation (corrupt data or wrong key)
    pass


class ConfigurationError(CrossKeyError):
    # raised when settings read from the environment are invalid
    pass
