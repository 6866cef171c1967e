# =============================================================================
# BODY MANUAL BACKEND - AES-256-GCM ENCRYPTION
# =============================================================================
"""
Encryption utilities for securing biometric snapshots at rest.
Uses AES-256-GCM for authenticated encryption.
"""

import os
from typing import Tuple

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from config import get_settings
from database.models import BiometricSnapshot

DEFAULT_KEY = "body_manual_default_key_change!!"


def _get_key() -> bytes:
    """
    Get the 32-byte AES-256 encryption key.
    Pads or truncates the configured key to exactly 32 bytes.
    """
    settings = get_settings()
    key = settings.encryption_key.encode('utf-8')
    if len(key) < 32:
        key = key.ljust(32, b'\0')
    elif len(key) > 32:
        key = key[:32]
    return key


def encrypt_biometrics(snapshot: BiometricSnapshot) -> Tuple[bytes, bytes, bytes]:
    """
    Encrypt a biometric snapshot using AES-256-GCM.

    Args:
        snapshot: Validated biometric readings

    Returns:
        Tuple of (ciphertext, iv, tag) - all as bytes

    Note:
        The IV must be unique for each encryption with the same key.
    """
    aesgcm = AESGCM(_get_key())

    # Random 12-byte IV (recommended for GCM)
    iv = os.urandom(12)

    plaintext = snapshot.model_dump_json(exclude_none=True).encode('utf-8')

    # GCM appends a 16-byte tag to the ciphertext
    ciphertext_with_tag = aesgcm.encrypt(iv, plaintext, None)

    return ciphertext_with_tag[:-16], iv, ciphertext_with_tag[-16:]


def decrypt_biometrics(ciphertext: bytes, iv: bytes, tag: bytes) -> BiometricSnapshot:
    """
    Decrypt a biometric snapshot using AES-256-GCM.

    Raises:
        InvalidTag: If authentication fails (data tampered)
    """
    aesgcm = AESGCM(_get_key())
    plaintext = aesgcm.decrypt(iv, ciphertext + tag, None)
    return BiometricSnapshot.model_validate_json(plaintext)


def verify_key_strength() -> bool:
    """
    Verify that the encryption key meets security requirements.
    Returns True if key is strong enough, False otherwise.
    """
    key = get_settings().encryption_key

    if key == DEFAULT_KEY:
        return False

    # Should be at least 32 characters for AES-256
    return len(key) >= 32
