"""Encryption for webhook signing secrets at rest."""

import base64
import hashlib

import structlog
from cryptography.fernet import Fernet, InvalidToken

from scoreflow.config import settings

logger = structlog.get_logger()


def _get_fernet() -> Fernet:
    key = settings.master_encryption_key
    try:
        return Fernet(key.encode())
    except ValueError:
        # Not a Fernet key: derive one deterministically. Set a real key in production.
        derived = hashlib.sha256(key.encode()).digest()
        return Fernet(base64.urlsafe_b64encode(derived))


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value. Returns base64 ciphertext."""
    return _get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    return _get_fernet().decrypt(ciphertext.encode()).decode()


def decrypt_webhook_secret(ciphertext: str | None) -> str | None:
    """Decrypt a stored webhook secret. Unreadable ciphertext counts as no secret."""
    if not ciphertext:
        return None
    try:
        return decrypt_value(ciphertext)
    except InvalidToken:
        logger.warning("webhook_secret_undecryptable")
        return None
