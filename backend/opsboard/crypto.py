"""
Field-level encryption for secrets kept in the database: vault passwords,
integration access tokens and API keys.

Uses Fernet symmetric encryption from the `cryptography` package, keyed by
the ENCRYPTION_KEY env var. Without a key (development), values are stored
as-is so local setups work with no extra configuration.
"""

import logging
from cryptography.fernet import Fernet, InvalidToken
from opsboard.config import get_settings

logger = logging.getLogger(__name__)

_fernet: Fernet | None = None
_warned_plaintext = False


def _cipher() -> Fernet | None:
    """Lazy-init the Fernet instance from the configured key."""
    global _fernet, _warned_plaintext
    if _fernet is not None:
        return _fernet

    settings = get_settings()
    key = settings.encryption_key
    if not key:
        if settings.is_production:
            raise RuntimeError("ENCRYPTION_KEY must be set in production.")
        if not _warned_plaintext:
            logger.warning("ENCRYPTION_KEY not set — secrets are stored in plaintext (development only).")
            _warned_plaintext = True
        return None

    try:
        _fernet = Fernet(key.encode())
    except Exception as exc:
        raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc
    return _fernet


def reset_cipher() -> None:
    """Forget the cached cipher (after the key setting changed)."""
    global _fernet
    _fernet = None


def encrypt_value(plaintext: str | None) -> str | None:
    if plaintext is None:
        return None
    f = _cipher()
    if f is None:
        return plaintext
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str | None) -> str | None:
    if ciphertext is None:
        return None
    f = _cipher()
    if f is None:
        return ciphertext
    try:
        return f.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        # Rows written before a key was configured
        logger.warning("Stored secret is not Fernet-encrypted — returning as-is.")
        return ciphertext


def mask_secret(value: str | None) -> str:
    """Masked representation for listings; never exposes the full secret."""
    if not value:
        return ""
    if len(value) <= 12:
        return "••••••••"
    return value[:6] + "•••••••••••••" + value[-4:]
