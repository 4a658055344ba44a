"""
Integration tests: data produced by one binding must be usable by the other.
"""

import asyncio
import base64
import os

import pytest

from crosskey import CorruptCiphertextError, NativeCrypto, SubtleCrypto

PASSWORD = "correct-horse"
SALT = "AAAAAAAAAAAAAAAAAAAAAA=="


@pytest.fixture(scope="module")
def native():
    return NativeCrypto()


@pytest.fixture(scope="module")
def subtle():
    return SubtleCrypto()


@pytest.fixture(scope="module")
def key(native):
    return native.generate_key(PASSWORD, SALT)


def test_same_key_in_both_environments(native, subtle, key):
    assert asyncio.run(subtle.generate_key(PASSWORD, SALT)) == key


def test_same_fingerprint_in_both_environments(native, subtle):
    assert native.generate_fingerprint(PASSWORD, SALT) == asyncio.run(
        subtle.generate_fingerprint(PASSWORD, SALT)
    )


def test_worked_example(native, subtle, key):
    native_ct = native.encrypt(key, SALT, "hello world")
    subtle_ct = asyncio.run(subtle.encrypt(key, SALT, "hello world"))

    assert native_ct == subtle_ct
    assert native.decrypt(key, SALT, subtle_ct) == "hello world"
    assert asyncio.run(subtle.decrypt(key, SALT, native_ct)) == "hello world"


@pytest.mark.parametrize("size", [0, 16, 100_000])
def test_payload_sizes_cross_decrypt(native, subtle, key, size):
    data = os.urandom(size)

    native_ct = native.encrypt(key, SALT, data)
    assert asyncio.run(subtle.decrypt(key, SALT, native_ct, encoding=None)) == data

    subtle_ct = asyncio.run(subtle.encrypt(key, SALT, data))
    assert native.decrypt(key, SALT, subtle_ct, encoding=None) == data


def test_streamed_emission_matches_one_shot(native, subtle, key):
    text = "streamed " * 5000
    pieces = []
    native.encrypt(key, SALT, text, pieces.append)

    assert len(pieces) > 1
    assert "".join(pieces) == asyncio.run(subtle.encrypt(key, SALT, text))


def test_fresh_salt_end_to_end(native, subtle):
    salt = native.generate_salt()
    key = asyncio.run(subtle.generate_key("another password", salt))
    stored = native.generate_fingerprint("another password", salt)

    ct = native.encrypt(key, salt, "per-item secret")
    assert asyncio.run(subtle.decrypt(key, salt, ct)) == "per-item secret"
    assert stored != key


def test_tamper_detected_by_both(native, subtle, key):
    raw = bytearray(base64.b64decode(native.encrypt(key, SALT, "0123456789abcdefXYZ")))
    raw[15] ^= 0x01
    tampered = base64.b64encode(bytes(raw)).decode()

    with pytest.raises(CorruptCiphertextError):
        native.decrypt(key, SALT, tampered)
    with pytest.raises(CorruptCiphertextError):
        asyncio.run(subtle.decrypt(key, SALT, tampered))
