"""
Password Resolution — Locate a working password for sealing or unsealing.

Lookup order:
- already resolved in this process (``PasswordContext``)
- the ``*_ENCRYPTION_PASSWORD`` environment variable
- the persisted password file
- an interactive prompt

When a sealed blob exists, every candidate is verified by attempting
decryption before it is trusted. A password is written to the password file
only after it has been verified against a blob, or confirmed by a second
entry during first-time setup.

Security Note:
    Never log password values. Only log their source.
"""
import os
import enum
import getpass
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, MutableMapping, Optional

from .config import VaultConfig
from .crypto import SealedBlob, decode_plaintext, unseal_bytes
from .exceptions import (
    AuthenticationFailed,
    EmptyPassword,
    PasswordMismatch,
    RetriesExhausted,
)
from .storage import PasswordFile

logger = logging.getLogger("envseal.vault")

ENTER_PROMPT = "Enter your encryption password: "
CONFIRM_PROMPT = "Confirm your encryption password: "

Prompt = Callable[[str], str]


class PasswordSource(str, enum.Enum):
    CONTEXT = "context"
    ENVIRONMENT = "environment"
    FILE = "file"
    PROMPT = "prompt"


@dataclass(frozen=True)
class ResolvedPassword:
    password: str
    source: PasswordSource


class PasswordContext:
    """Holds the password resolved for the current process."""

    def __init__(self) -> None:
        self._resolved: Optional[ResolvedPassword] = None

    @property
    def resolved(self) -> Optional[ResolvedPassword]:
        return self._resolved

    @property
    def password(self) -> Optional[str]:
        return self._resolved.password if self._resolved else None

    def remember(self, resolved: ResolvedPassword) -> None:
        self._resolved = resolved

    def forget(self) -> None:
        self._resolved = None


class PasswordResolver:
    """Resolve the encryption password from context, environment, file or prompt.

    Args:
        config: Validated vault configuration.
        prompt: Callable used for interactive entry (``getpass.getpass``).
        environ: Environment mapping read and, with ``export_env``,
            updated on success (defaults to ``os.environ``).
        store: Password file store; built from ``config`` when omitted.
        context: Shared password context; a fresh one when omitted.
    """

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        prompt: Optional[Prompt] = None,
        environ: Optional[MutableMapping[str, str]] = None,
        store: Optional[PasswordFile] = None,
        context: Optional[PasswordContext] = None,
    ):
        self.config = config or VaultConfig()
        self._prompt = prompt or getpass.getpass
        self._environ = os.environ if environ is None else environ
        self.store = store or PasswordFile(
            self.config.password_file, self.config.password_env_var,
        )
        self.context = context or PasswordContext()

    # ------------------------------------------------------------------
    # Candidate sources
    # ------------------------------------------------------------------

    def _candidates(self) -> Iterator[ResolvedPassword]:
        """Yield non-interactive candidates in priority order."""
        if self.context.password:
            yield ResolvedPassword(self.context.password, PasswordSource.CONTEXT)
        env_password = self._environ.get(self.config.password_env_var)
        if env_password:
            yield ResolvedPassword(env_password, PasswordSource.ENVIRONMENT)
        file_password = self.store.load()
        if file_password:
            yield ResolvedPassword(file_password, PasswordSource.FILE)

    def _ask(self, message: str) -> str:
        try:
            return self._prompt(message)
        except EOFError:
            return ""

    def _accept(self, resolved: ResolvedPassword) -> ResolvedPassword:
        """Cache a trusted password for the rest of the process."""
        self.context.remember(resolved)
        if self.config.export_env:
            self._environ[self.config.password_env_var] = resolved.password
        logger.debug("Using password from %s", resolved.source.value)
        return resolved

    def _persist(self, password: str) -> None:
        """Write a trusted password to the password file (best effort)."""
        if self.store.load() == password:
            logger.debug("Password file %s already up to date", self.store.path)
            return
        try:
            self.store.save(password)
        except OSError as err:
            logger.warning(
                "Could not save password to %s, continuing: %s",
                self.store.path, err,
            )
            return
        logger.warning("Password saved to %s", self.store.path)

    # ------------------------------------------------------------------
    # Sealing
    # ------------------------------------------------------------------

    def resolve_for_sealing(self) -> ResolvedPassword:
        """Return the password to seal with.

        Raises:
            EmptyPassword: If first-time setup gets a blank password.
            PasswordMismatch: If the confirmation differs.
        """
        candidate = next(self._candidates(), None)
        if candidate is not None:
            return self._accept(candidate)
        return self._accept(self._interactive_setup())

    def _interactive_setup(self) -> ResolvedPassword:
        logger.warning(
            "No encryption password found in %s or %s, setting one up",
            self.config.password_env_var, self.store.path,
        )
        password = self._ask(ENTER_PROMPT)
        if not password:
            raise EmptyPassword("Password cannot be empty")
        if self._ask(CONFIRM_PROMPT) != password:
            raise PasswordMismatch("Passwords do not match")
        self._persist(password)
        return ResolvedPassword(password, PasswordSource.PROMPT)

    # ------------------------------------------------------------------
    # Unsealing
    # ------------------------------------------------------------------

    def resolve_for_opening(self, blob: "str | SealedBlob") -> ResolvedPassword:
        """Return a password verified to open ``blob``.

        Raises:
            MalformedBlob: If the blob cannot be parsed.
            EmptyPassword: If a blank password is entered at the prompt.
            RetriesExhausted: If ``max_attempts`` wrong entries were made.
        """
        resolved, _ = self._open(blob)
        return resolved

    def unseal(self, blob: "str | SealedBlob") -> str:
        """Resolve a password for ``blob`` and return its plaintext.

        The key is derived once per candidate; the plaintext recovered
        while verifying is returned directly.

        Raises:
            MalformedBlob: If the blob cannot be parsed.
            InvalidPlaintext: If the payload is not UTF-8 text.
            EmptyPassword: If a blank password is entered at the prompt.
            RetriesExhausted: If ``max_attempts`` wrong entries were made.
        """
        _, plaintext = self._open(blob)
        return decode_plaintext(plaintext)

    def _open(self, blob: "str | SealedBlob") -> tuple[ResolvedPassword, bytes]:
        parsed = blob if isinstance(blob, SealedBlob) else SealedBlob.from_hex(blob)
        tried: set[str] = set()
        for candidate in self._candidates():
            if candidate.password in tried:
                continue
            tried.add(candidate.password)
            plaintext = _try_unseal(parsed, candidate.password)
            if plaintext is not None:
                return self._accept(candidate), plaintext
            logger.warning(
                "Password from %s failed to decrypt, trying next source",
                candidate.source.value,
            )
            if candidate.source is PasswordSource.CONTEXT:
                self.context.forget()
        resolved, plaintext = self._prompt_until_valid(parsed)
        return self._accept(resolved), plaintext

    def _prompt_until_valid(self, blob: SealedBlob) -> tuple[ResolvedPassword, bytes]:
        limit = self.config.max_attempts
        attempts = 0
        while limit is None or attempts < limit:
            attempts += 1
            password = self._ask(ENTER_PROMPT)
            if not password:
                raise EmptyPassword("Password cannot be empty")
            plaintext = _try_unseal(blob, password)
            if plaintext is not None:
                self._persist(password)
                return ResolvedPassword(password, PasswordSource.PROMPT), plaintext
            logger.error("Wrong password! Please try again.")
        raise RetriesExhausted(attempts)


def _try_unseal(blob: SealedBlob, password: str) -> Optional[bytes]:
    try:
        return unseal_bytes(blob, password)
    except AuthenticationFailed:
        return None
