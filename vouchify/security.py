"""
Security utilities: password hashing, JWT tokens, and scratch code encryption.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - passlib's CryptContext handles hashing and future scheme migration

2. JWT TOKENS
   - After login, the user receives a signed JWT containing their user ID
   - Signed with SECRET_KEY using HS256, expiring after
     ACCESS_TOKEN_EXPIRE_MINUTES

3. SCRATCH CODE CODEC (AES-256-GCM + SHA-256)
   - encrypt_code / decrypt_code protect voucher redemption codes at rest.
     Each call draws a fresh 64-byte salt and 16-byte IV, so encrypting the
     same code twice never yields the same blob. GCM authenticates the
     ciphertext: a flipped byte fails decryption instead of returning
     garbage.
   - Stored layout, hex encoded:  salt(64) | iv(16) | tag(16) | ciphertext
     This is the layout the marketplace has always written, so existing
     codes stay readable with the same key.
   - hash_code is a deterministic digest stored next to the ciphertext so
     listing creation can reject a code already on sale without comparing
     ciphertexts. It is not used for access control.
   - The key is read from settings on every call, so a missing key only
     breaks the operations that need it.
"""

import binascii
import hashlib
import os
from datetime import datetime, timedelta, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose import jwt
from passlib.context import CryptContext

from vouchify.config import settings
from vouchify.exceptions import ConfigurationError, FormatError, IntegrityError


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using Argon2id."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. JWT Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    The token payload contains:
      - "sub": The subject (user ID as string)
      - "exp": Expiration timestamp

    Args:
        data: Dictionary of claims to encode (must include "sub").
        expires_delta: Optional custom expiration time. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES from settings.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. Scratch code codec
# ---------------------------------------------------------------------------

SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
HEADER_LENGTH = SALT_LENGTH + IV_LENGTH + TAG_LENGTH


def _load_scratch_key() -> bytes:
    """Decode SCRATCH_CODE_KEY (64 hex chars) into a 32-byte AES key."""
    raw = settings.SCRATCH_CODE_KEY
    if not raw:
        raise ConfigurationError("SCRATCH_CODE_KEY is not configured")
    try:
        key = bytes.fromhex(raw.strip())
    except ValueError:
        raise ConfigurationError("SCRATCH_CODE_KEY must be hex encoded")
    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"SCRATCH_CODE_KEY must decode to {KEY_LENGTH} bytes, got {len(key)}"
        )
    return key


def encrypt_code(plaintext: str) -> str:
    """
    Encrypt a scratch code for storage.

    Args:
        plaintext: The redemption code exactly as the buyer will receive it.

    Returns:
        Hex string of salt | iv | tag | ciphertext.

    Raises:
        ConfigurationError: If the key is missing or has the wrong length.
    """
    key = _load_scratch_key()
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)

    # AESGCM appends the tag to the ciphertext; the stored layout puts it first
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    body, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return (salt + iv + tag + body).hex()


def decrypt_code(blob: str) -> str:
    """
    Decrypt a stored scratch code blob.

    Raises:
        FormatError: If the blob is not hex or too short to hold salt, iv and tag.
        ConfigurationError: If the key is missing or has the wrong length.
        IntegrityError: If GCM authentication fails (tampered or wrong key).
    """
    try:
        raw = binascii.unhexlify(blob)
    except (binascii.Error, ValueError, TypeError):
        raise FormatError("Stored scratch code is not valid hex")

    if len(raw) < HEADER_LENGTH:
        raise FormatError(
            f"Stored scratch code is {len(raw)} bytes, expected at least {HEADER_LENGTH}"
        )

    key = _load_scratch_key()
    iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    tag = raw[SALT_LENGTH + IV_LENGTH:HEADER_LENGTH]
    body = raw[HEADER_LENGTH:]

    try:
        plaintext = AESGCM(key).decrypt(iv, body + tag, None)
    except InvalidTag:
        raise IntegrityError("Stored scratch code failed authentication")

    return plaintext.decode("utf-8")


def hash_code(plaintext: str) -> str:
    """SHA-256 hex digest of a scratch code, used only for duplicate detection."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()
