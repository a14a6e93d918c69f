"""Credential vault: authenticated symmetric encryption of secret account fields.

Encrypted fields are stored as ``"<nonce-hex>:<ciphertext-hex>"``. The nonce is
random for every call, and AES-GCM appends an authentication tag to the
ciphertext, so a wrong key or a flipped byte fails loudly instead of decrypting
to garbage.

The key is derived once per process from the ``SECRET_KEY`` seed. Use
``init_vault`` at startup and ``get_vault`` everywhere else.
"""
import hashlib
import logging
import os
import threading
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import ConfigurationError, DecryptionError, VaultError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
DELIMITER = ":"


class Vault:
    """AES-256-GCM vault keyed by the SHA-256 digest of a secret seed."""

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ConfigurationError("Vault key must be 32 bytes")
        self._key = key
        self._aead = AESGCM(key)

    def __repr__(self) -> str:
        return "Vault(key=<hidden>)"

    @classmethod
    def from_seed(cls, seed: Optional[str]) -> "Vault":
        """Derive the vault key from an arbitrary-length seed.

        Raises:
            ConfigurationError: If the seed is missing or empty
        """
        if not seed:
            raise ConfigurationError("Vault seed is missing or empty")
        return cls(hashlib.sha256(seed.encode("utf-8")).digest())

    def fingerprint(self) -> str:
        """Short one-way identifier of the key, safe to compare (never the key)."""
        return hashlib.sha256(b"sharepilot-vault" + self._key).hexdigest()[:16]

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` with a fresh random nonce."""
        if not isinstance(plaintext, str):
            raise VaultError(f"Can only encrypt text, got {type(plaintext).__name__}")
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return nonce.hex() + DELIMITER + ciphertext.hex()

    def decrypt(self, field: str) -> str:
        """Decrypt a field produced by :meth:`encrypt`.

        Raises:
            DecryptionError: If the field is malformed, was tampered with, or
                was encrypted under a different key
        """
        if not isinstance(field, str):
            raise DecryptionError("Encrypted field must be a string")
        parts = field.split(DELIMITER)
        if len(parts) != 2:
            raise DecryptionError("Encrypted field is malformed: expected '<nonce>:<ciphertext>'")
        nonce_hex, body_hex = parts
        try:
            nonce = bytes.fromhex(nonce_hex)
            body = bytes.fromhex(body_hex)
        except ValueError as e:
            raise DecryptionError(f"Encrypted field is not valid hex: {e}") from e
        if len(nonce) != NONCE_SIZE:
            raise DecryptionError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        try:
            plaintext = self._aead.decrypt(nonce, body, None)
        except InvalidTag as e:
            raise DecryptionError("Decryption failed: wrong key or tampered data") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted field is not valid UTF-8") from e


# Process-wide vault, derived once at startup.
_vault: Optional[Vault] = None
_vault_lock = threading.Lock()


def init_vault(seed: Optional[str]) -> Vault:
    """Initialize the process-wide vault.

    Calling again with the same seed returns the existing vault; a different
    seed is refused, since it would make records written earlier in the run
    unreadable.
    """
    global _vault
    candidate = Vault.from_seed(seed)
    with _vault_lock:
        if _vault is None:
            _vault = candidate
            logger.debug("Vault initialized")
        elif _vault.fingerprint() != candidate.fingerprint():
            raise ConfigurationError("Vault is already initialized with a different seed")
        return _vault


def get_vault() -> Vault:
    """Return the process-wide vault or fail if ``init_vault`` was never called."""
    if _vault is None:
        raise ConfigurationError("Vault is not initialized; set SECRET_KEY and call init_vault() at startup")
    return _vault


def reset_vault() -> None:
    """Forget the process-wide vault (tests only)."""
    global _vault
    with _vault_lock:
        _vault = None
