"""Signer loading for live trading."""

import json
from pathlib import Path

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..config.settings import AppSettings

logger = structlog.get_logger(__name__)


def load_signer(settings: AppSettings) -> LocalAccount | None:
    """Create the signing account from settings.

    An encrypted keystore is preferred over a raw private key. Returns None
    when neither is configured (read-only session).

    Raises:
        FileNotFoundError: If the keystore path does not exist
        ValueError: If the key material or password is invalid
    """
    if settings.keystore_path:
        path = Path(settings.keystore_path)
        if not path.exists():
            raise FileNotFoundError(f"Keystore not found: {path}")
        if settings.keystore_password is None:
            raise ValueError("keystore_password is required with keystore_path")

        keystore = json.loads(path.read_text(encoding="utf-8"))
        private_key = Account.decrypt(keystore, settings.keystore_password)
        account = Account.from_key(private_key)
        logger.info("Loaded signer from keystore", address=account.address)
        return account

    if settings.private_key:
        account = Account.from_key(settings.private_key)
        logger.info("Loaded signer from private key", address=account.address)
        return account

    logger.warning("No signer configured, session is read-only")
    return None
