"""Vault exceptions.

All errors raised by the codec, the password resolver and the CLI derive
from :class:`VaultError`, so callers can catch the whole family at once.
"""


class VaultError(Exception):
    """Base class for envseal errors."""


class UsageError(VaultError):
    """Raised on a bad command-line invocation."""


class MissingInputFile(VaultError):
    """Raised when the file to encrypt or decrypt does not exist."""


class PasswordError(VaultError):
    """Raised when an interactively entered password is unusable."""


class EmptyPassword(PasswordError):
    """Raised when a blank password is entered."""


class PasswordMismatch(PasswordError):
    """Raised when the password confirmation differs from the entry."""


class DecryptionError(VaultError):
    """Raised when a sealed blob cannot be opened."""


class MalformedBlob(DecryptionError, ValueError):
    """Raised when a blob is not valid hex or is shorter than its header."""


class AuthenticationFailed(DecryptionError):
    """Raised when the AEAD tag does not verify.

    Wrong password, corrupted blob and tampering are indistinguishable.
    """


class InvalidPlaintext(DecryptionError):
    """Raised when an authenticated payload does not decode as UTF-8."""


class RetriesExhausted(AuthenticationFailed):
    """Raised when a capped prompt loop runs out of attempts."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"No valid password after {attempts} attempt(s)"
        )
