"""Tests for signer loading."""

import json

import pytest
from eth_account import Account

from trader.chain.wallet import load_signer
from trader.config.settings import AppSettings

TEST_KEY = "0x" + "4c" * 32


def make_settings(**overrides) -> AppSettings:
    return AppSettings(env="dev", rpc_url="http://127.0.0.1:8545", **overrides)


def test_no_signer_configured():
    assert load_signer(make_settings()) is None


def test_private_key():
    signer = load_signer(make_settings(private_key=TEST_KEY))

    assert signer.address == Account.from_key(TEST_KEY).address


def test_keystore_is_preferred(tmp_path):
    keystore = Account.encrypt(TEST_KEY, "secret", kdf="pbkdf2", iterations=1000)
    path = tmp_path / "key.json"
    path.write_text(json.dumps(keystore), encoding="utf-8")
    other_key = "0x" + "5d" * 32

    signer = load_signer(
        make_settings(
            keystore_path=str(path), keystore_password="secret", private_key=other_key
        )
    )

    assert signer.address == Account.from_key(TEST_KEY).address


def test_keystore_requires_password(tmp_path):
    path = tmp_path / "key.json"
    path.write_text("{}", encoding="utf-8")

    with pytest.raises(ValueError, match="keystore_password"):
        load_signer(make_settings(keystore_path=str(path)))


def test_missing_keystore(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_signer(make_settings(keystore_path=str(tmp_path / "nope.json")))
