# Tokens are stored as base64(nonce + ciphertext + tag), AES-256-GCM, fresh 12-byte nonce per value.
import base64
import binascii
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import settings
from .errors import InvalidInput

NONCE_LENGTH = 12
TAG_LENGTH = 16

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+=*$")

def load_key(encoded: str | None = None) -> bytes:
    """Decode a base64 key; defaults to TOKEN_ENCRYPTION_KEY."""
    raw = encoded if encoded is not None else settings.TOKEN_ENCRYPTION_KEY
    try:
        key = base64.b64decode(raw, validate=True)
    except binascii.Error as e:
        raise InvalidInput("encryption key is not valid base64") from e
    if len(key) != 32:
        raise InvalidInput(f"encryption key must be 32 bytes, got {len(key)}")
    return key

def encrypt_token(plaintext: str, key: bytes | None = None) -> str:
    nonce = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(key or load_key()).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + sealed).decode("ascii")

def decrypt_token(ciphertext: str, key: bytes | None = None) -> str:
    try:
        combined = base64.b64decode(ciphertext, validate=True)
    except binascii.Error as e:
        raise InvalidInput("encrypted token is not valid base64") from e
    if len(combined) < NONCE_LENGTH + TAG_LENGTH + 1:
        raise InvalidInput("encrypted token is too short")
    nonce, sealed = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
    try:
        return AESGCM(key or load_key()).decrypt(nonce, sealed, None).decode("utf-8")
    except InvalidTag as e:
        raise InvalidInput("encrypted token failed authentication") from e

def is_encrypted(value: str) -> bool:
    """
    Heuristic used by the migration script to skip values already encrypted.
    Raw Strava tokens are ~40 hex characters; encrypted ones are 60+ base64.
    """
    if len(value) < 50 or not _BASE64_RE.match(value):
        return False
    try:
        decoded = base64.b64decode(value, validate=True)
    except binascii.Error:
        return False
    return len(decoded) >= NONCE_LENGTH + TAG_LENGTH + 10
