"""
Vault Configuration — Validated settings for password resolution.

Values may be overridden from the environment:
    ENVSEAL_PASSWORD_VAR  = <name of the *_ENCRYPTION_PASSWORD variable>
    ENVSEAL_PASSWORD_FILE = <path of the persisted password file>
    ENVSEAL_MAX_ATTEMPTS  = <integer, unbounded when unset>
    ENVSEAL_EXPORT_ENV    = <true|false>

Security Note:
    Never log the password itself. Only log variable names and file paths.
"""
import os
import re
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("envseal.vault")

DEFAULT_PASSWORD_VAR = "ENV_ENCRYPTION_PASSWORD"
DEFAULT_PASSWORD_FILE = ".env.password"

_PASSWORD_VAR_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*_ENCRYPTION_PASSWORD$")

_ENV_FIELDS = {
    "ENVSEAL_PASSWORD_VAR": "password_env_var",
    "ENVSEAL_PASSWORD_FILE": "password_file",
    "ENVSEAL_MAX_ATTEMPTS": "max_attempts",
    "ENVSEAL_EXPORT_ENV": "export_env",
}


class VaultConfig(BaseModel):
    """Validated password-resolution configuration."""

    password_env_var: str = Field(default=DEFAULT_PASSWORD_VAR)
    password_file: Path = Field(default=Path(DEFAULT_PASSWORD_FILE))
    max_attempts: Optional[int] = Field(default=None, ge=1)
    export_env: bool = Field(default=True)

    @field_validator("password_env_var")
    @classmethod
    def validate_env_var(cls, v: str) -> str:
        """Require an upper-case *_ENCRYPTION_PASSWORD variable name."""
        if not _PASSWORD_VAR_PATTERN.match(v):
            raise ValueError(
                f"Invalid password variable {v!r}: expected a name "
                "ending in _ENCRYPTION_PASSWORD"
            )
        return v

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "VaultConfig":
        """Create VaultConfig from ENVSEAL_* environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).
            **overrides: Explicit values that win over the environment;
                ``None`` values are ignored.

        Returns:
            Populated VaultConfig instance.

        Raises:
            pydantic.ValidationError: If a value fails validation.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name, field in _ENV_FIELDS.items():
            raw = env.get(name)
            if raw:
                values[field] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        logger.debug(
            "Vault config: password_env_var=%s password_file=%s max_attempts=%s",
            config.password_env_var, config.password_file, config.max_attempts,
        )
        return config
