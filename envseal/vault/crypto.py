"""
Vault Crypto Core — Key derivation, sealing and unsealing of env files.

Sealed format (hex-encoded as a whole):
    [salt 64B][nonce 16B][GCM tag 16B][ciphertext]

- Key: PBKDF2-HMAC-SHA512(password, salt, KDF_ITERATIONS) → 32 bytes
- Cipher: AES-256-GCM with the salt as associated data, so a salt spliced
  from another blob fails authentication.

Security Note:
    Never log passwords, plaintext or ciphertext values.
    Salt and nonce are drawn from os.urandom on every seal.
"""
import os
import re
import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import AuthenticationFailed, InvalidPlaintext, MalformedBlob

logger = logging.getLogger("envseal.vault")

SALT_SIZE = 64
NONCE_SIZE = 16
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
KDF_ITERATIONS = 100_000

HEADER_SIZE = SALT_SIZE + NONCE_SIZE + TAG_SIZE

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]*$")


# ---------------------------------------------------------------------------
# Blob framing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SealedBlob:
    """Parsed fields of a sealed blob."""

    salt: bytes
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return self.salt + self.nonce + self.tag + self.ciphertext

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SealedBlob":
        """Split raw blob bytes at the fixed header offsets.

        Raises:
            MalformedBlob: If fewer than HEADER_SIZE bytes are given.
        """
        if len(raw) < HEADER_SIZE:
            raise MalformedBlob(
                f"sealed blob too short: {len(raw)} bytes "
                f"(minimum {HEADER_SIZE})"
            )
        nonce_end = SALT_SIZE + NONCE_SIZE
        return cls(
            salt=raw[:SALT_SIZE],
            nonce=raw[SALT_SIZE:nonce_end],
            tag=raw[nonce_end:HEADER_SIZE],
            ciphertext=raw[HEADER_SIZE:],
        )

    @classmethod
    def from_hex(cls, blob: str) -> "SealedBlob":
        """Decode a hex blob. Surrounding whitespace is ignored.

        Raises:
            MalformedBlob: On non-hex characters, odd length or a short blob.
        """
        text = blob.strip()
        if not _HEX_PATTERN.match(text):
            raise MalformedBlob("sealed blob contains non-hex characters")
        if len(text) % 2:
            raise MalformedBlob("sealed blob has an odd number of hex digits")
        return cls.from_bytes(bytes.fromhex(text))


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 32-byte AES key from a password using PBKDF2-HMAC-SHA512.

    Args:
        password: Operator password.
        salt: Per-blob random salt.

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


# ---------------------------------------------------------------------------
# Seal / unseal
# ---------------------------------------------------------------------------

def seal(plaintext: str, password: str) -> str:
    """Encrypt text under a password.

    Args:
        plaintext: Text to protect (typically the contents of an env file).
        password: Operator password.

    Returns:
        Hex-encoded sealed blob.
    """
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_key(password, salt)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), salt)
    # cryptography appends the tag to the ciphertext
    blob = SealedBlob(
        salt=salt,
        nonce=nonce,
        tag=sealed[-TAG_SIZE:],
        ciphertext=sealed[:-TAG_SIZE],
    )
    return blob.to_hex()


def unseal_bytes(blob: "str | SealedBlob", password: str) -> bytes:
    """Decrypt a sealed blob without decoding the result.

    Raises:
        MalformedBlob: If the blob cannot be parsed.
        AuthenticationFailed: If the tag does not verify.
    """
    parsed = blob if isinstance(blob, SealedBlob) else SealedBlob.from_hex(blob)
    key = derive_key(password, parsed.salt)
    try:
        return AESGCM(key).decrypt(
            parsed.nonce, parsed.ciphertext + parsed.tag, parsed.salt,
        )
    except InvalidTag as err:
        raise AuthenticationFailed(
            "Authentication failed: wrong password or corrupted data"
        ) from err


def unseal(blob: "str | SealedBlob", password: str) -> str:
    """Decrypt a sealed blob.

    Args:
        blob: Hex-encoded blob, or an already parsed SealedBlob.
        password: Operator password.

    Returns:
        The original plaintext.

    Raises:
        MalformedBlob: If the blob cannot be parsed.
        AuthenticationFailed: If the tag does not verify.
        InvalidPlaintext: If the authenticated payload is not UTF-8 text.
    """
    return decode_plaintext(unseal_bytes(blob, password))


def decode_plaintext(raw: bytes) -> str:
    """Decode an authenticated payload as UTF-8.

    Raises:
        InvalidPlaintext: If the payload is not UTF-8 text.
    """
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as err:
        raise InvalidPlaintext(
            f"Decrypted payload is not valid UTF-8 text: {err.reason}"
        ) from err


def verify(blob: "str | SealedBlob", password: str) -> bool:
    """Return True if ``password`` opens ``blob``.

    Only the authentication tag is checked; the payload is not decoded.

    Raises:
        MalformedBlob: If the blob cannot be parsed.
    """
    try:
        unseal_bytes(blob, password)
    except AuthenticationFailed:
        return False
    return True
