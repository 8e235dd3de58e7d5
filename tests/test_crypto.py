import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from inkwell import create_app
from inkwell.config import TestConfig
from inkwell.crypto import MissingEncryptionKeyError, SecretCodecError, decrypt, encrypt


@pytest.fixture
def app_ctx():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    ctx.pop()


def test_encrypt_round_trips_with_configured_key(app_ctx):
    secret = "sk-test-1234567890"

    ciphertext = encrypt(secret)

    iv_hex, _, body_hex = ciphertext.partition(":")
    assert len(iv_hex) == 32
    assert body_hex and secret not in ciphertext
    assert decrypt(ciphertext) == secret


def test_encrypt_uses_fresh_iv_per_call(app_ctx):
    assert encrypt("same value") != encrypt("same value")


def test_empty_values_pass_through(app_ctx):
    assert encrypt("") == ""
    assert decrypt("") == ""


def test_short_key_is_rejected():
    with pytest.raises(MissingEncryptionKeyError):
        encrypt("secret", key="too-short")


def test_only_first_32_characters_of_key_are_used():
    key = "0123456789abcdef0123456789abcdef"
    ciphertext = encrypt("hello", key=key + "-ignored-suffix")

    assert decrypt(ciphertext, key=key) == "hello"


def test_malformed_ciphertext_raises(app_ctx):
    with pytest.raises(SecretCodecError):
        decrypt("not-encrypted")
    with pytest.raises(SecretCodecError):
        decrypt("zz:zz")


def test_wrong_key_does_not_return_plaintext():
    ciphertext = encrypt("hello", key="a" * 32)

    try:
        recovered = decrypt(ciphertext, key="b" * 32)
    except SecretCodecError:
        recovered = None
    assert recovered != "hello"
