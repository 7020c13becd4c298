"""EnvSeal.

Password-based AES-GCM sealing of environment files.
"""
from .version import __version__
from .vault import seal, unseal, PasswordResolver, VaultConfig

__all__ = ["__version__", "seal", "unseal", "PasswordResolver", "VaultConfig"]
