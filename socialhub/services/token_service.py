import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from socialhub.utils.logger import logger

_fernet: Optional[Fernet] = None


def get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        key = os.getenv("TOKEN_ENCRYPTION_KEY")
        if not key:
            # Tokens encrypted with a temporary key do not survive a restart.
            logger.warning("TOKEN_ENCRYPTION_KEY missing. Using a temporary key.")
            _fernet = Fernet(Fernet.generate_key())
        else:
            _fernet = Fernet(key.encode())
    return _fernet


def encrypt_token(token: str) -> str:
    """Encrypt a plain text token."""
    return get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt an encrypted token."""
    try:
        return get_fernet().decrypt(encrypted_token.encode()).decode()
    except InvalidToken:
        logger.error("Stored token could not be decrypted; the account must be reconnected")
        raise


def encrypt_optional(token: Optional[str]) -> Optional[str]:
    return encrypt_token(token) if token else None
