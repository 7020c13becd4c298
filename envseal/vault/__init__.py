"""Env Vault — Password-based sealing of environment files.

Security Note (Threat Model):
    The password is held in process memory, and optionally in the process
    environment, for the lifetime of one invocation. The password file is
    stored in plaintext with mode 0600 and must stay out of version control.
    Protecting it beyond filesystem permissions is out of scope.
"""

from .crypto import SealedBlob, derive_key, seal, unseal, unseal_bytes, verify
from .config import VaultConfig
from .exceptions import (
    VaultError,
    UsageError,
    MissingInputFile,
    PasswordError,
    EmptyPassword,
    PasswordMismatch,
    DecryptionError,
    MalformedBlob,
    InvalidPlaintext,
    AuthenticationFailed,
    RetriesExhausted,
)
from .password import (
    PasswordContext,
    PasswordResolver,
    PasswordSource,
    ResolvedPassword,
)
from .storage import PasswordFile

__all__ = [
    "SealedBlob",
    "derive_key",
    "seal",
    "unseal",
    "unseal_bytes",
    "verify",
    "VaultConfig",
    "VaultError",
    "UsageError",
    "MissingInputFile",
    "PasswordError",
    "EmptyPassword",
    "PasswordMismatch",
    "DecryptionError",
    "MalformedBlob",
    "InvalidPlaintext",
    "AuthenticationFailed",
    "RetriesExhausted",
    "PasswordContext",
    "PasswordResolver",
    "PasswordSource",
    "ResolvedPassword",
    "PasswordFile",
]
