"""
Tests for secret encryption at rest and masking.
"""

from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet

from opsboard import crypto
from opsboard.config import Settings


@pytest.fixture
def fernet_key():
    key = Fernet.generate_key().decode()
    crypto.reset_cipher()
    with patch("opsboard.crypto.get_settings", return_value=Settings(encryption_key=key)):
        yield key
    crypto.reset_cipher()


def test_encrypt_roundtrip_with_key(fernet_key):
    token = crypto.encrypt_value("EAAB-token")
    assert token != "EAAB-token"
    assert crypto.decrypt_value(token) == "EAAB-token"


def test_plaintext_rows_still_readable(fernet_key):
    assert crypto.decrypt_value("written-before-key") == "written-before-key"


def test_no_key_stores_plaintext_in_development():
    crypto.reset_cipher()
    assert crypto.encrypt_value("abc") == "abc"
    assert crypto.encrypt_value(None) is None


def test_mask_secret():
    assert crypto.mask_secret(None) == ""
    assert crypto.mask_secret("short") == "••••••••"
    masked = crypto.mask_secret("EAABsecretvalue1234")
    assert masked.startswith("EAABse")
    assert masked.endswith("1234")
    assert "secretvalue" not in masked
