"""
Password File Store — Persisted ``KEY=value`` password record.

The file lives outside version control and holds a single assignment line
preceded by comment lines. An ``export `` prefix on that line is accepted
when reading. It is always rewritten wholesale through an
atomic replace, so a crash never leaves a truncated record behind.
"""
import os
import re
import logging
import tempfile
from pathlib import Path

logger = logging.getLogger("envseal.vault")

_HEADER = (
    "# Environment password for .env encryption\n"
    "# This file should be in your .gitignore\n"
)


class PasswordFile:
    """Read and atomically rewrite the local password record."""

    def __init__(self, path: "str | os.PathLike[str]", env_var: str):
        self.path = Path(path)
        self.env_var = env_var
        self._pattern = re.compile(
            rf"^(?:export[ \t]+)?{re.escape(env_var)}=(.+)$", re.MULTILINE,
        )

    def __repr__(self) -> str:
        return f"<PasswordFile {self.path} [{self.env_var}]>"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> "str | None":
        """Return the stored password, or None if absent or unreadable."""
        if not self.exists():
            return None
        try:
            content = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            logger.warning("Could not read password file %s: %s", self.path, err)
            return None
        match = self._pattern.search(content)
        if not match:
            logger.debug("No %s entry in %s", self.env_var, self.path)
            return None
        return match.group(1).rstrip("\r")

    def render(self, password: str) -> str:
        return f"{_HEADER}{self.env_var}={password}\n"

    def save(self, password: str) -> None:
        """Replace the password file with a record for ``password``.

        Raises:
            OSError: If the file cannot be written.
        """
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(self.render(password))
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Wrote password file %s", self.path)
