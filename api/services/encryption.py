"""Provider credential encryption using Fernet (AES-128-CBC + HMAC).

Credentials are encrypted before the provider registry persists them. The
key lives at <data dir>/secret.key and is created on first use, readable by
the owner only.
"""

import logging
import os
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from versus import VersusHelpers

log = logging.getLogger(f"versus.{__name__}")

KEY_FILE = "secret.key"


class CredentialCipher:
    """Encrypts and decrypts provider credentials with one Fernet key.

    Args:
        key_path: key file location; defaults to <data dir>/secret.key
    """

    def __init__(self, key_path: str | None = None) -> None:
        if key_path is None:
            key_path = str(Path(VersusHelpers.dataPath()) / KEY_FILE)
        self.key_path = Path(key_path)
        self._fernet = None

    def _load_key(self) -> bytes:
        if self.key_path.exists():
            return self.key_path.read_bytes().strip()

        self.key_path.parent.mkdir(parents=True, exist_ok=True)
        key = Fernet.generate_key()
        # O_EXCL: if another process created the key first, use theirs
        try:
            fd = os.open(str(self.key_path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return self.key_path.read_bytes().strip()
        with os.fdopen(fd, "wb") as f:
            f.write(key)

        log.info(f"Generated new credential encryption key at {self.key_path}")
        return key

    @property
    def fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_key())
        return self._fernet

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        return self.fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Plaintext credential, or an empty string if the token can't be read with this key."""
        if not ciphertext:
            return ""
        try:
            return self.fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, ValueError) as e:
            log.error(f"Failed to decrypt provider credential from {self.key_path.parent}: {e!r}")
            return ""


def default_cipher() -> CredentialCipher:
    """Cipher for the current data directory (VERSUS_DATA may change between calls)."""
    return CredentialCipher()


def encrypt_api_key(plaintext: str) -> str:
    return default_cipher().encrypt(plaintext)


def decrypt_api_key(ciphertext: str) -> str:
    return default_cipher().decrypt(ciphertext)
