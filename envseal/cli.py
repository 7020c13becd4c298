"""Command line entry point: ``encrypt-env <encrypt|decrypt> <input-file> [output-file]``."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from .version import __version__
from .vault import (
    MissingInputFile,
    PasswordResolver,
    UsageError,
    VaultConfig,
    VaultError,
    seal,
)

logger = logging.getLogger("envseal.cli")

ACTIONS = ("encrypt", "decrypt")
SUFFIX = ".encrypted"

_EXAMPLES = """\
examples:
  encrypt-env encrypt .env
  encrypt-env encrypt .env.production
  encrypt-env decrypt .env.encrypted
  encrypt-env decrypt .env.production.encrypted

or with custom output:
  encrypt-env encrypt .env .env.encrypted
  encrypt-env decrypt .env.encrypted .env
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="encrypt-env",
        description="Encrypt or decrypt .env files with password protection.",
        epilog=_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("action", help="encrypt or decrypt")
    p.add_argument("input_file", help="file to read")
    p.add_argument("output_file", nargs="?", help="file to write (derived from input when omitted)")
    p.add_argument("--password-file", help="password file to read and update")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def default_output(action: str, input_file: str) -> str:
    if action == "encrypt":
        return input_file + SUFFIX
    if input_file.endswith(SUFFIX):
        return input_file[: -len(SUFFIX)]
    return input_file


def cmd_encrypt(resolver: PasswordResolver, source: Path, target: Path) -> None:
    plaintext = source.read_bytes().decode("utf-8")
    resolved = resolver.resolve_for_sealing()
    target.write_bytes(seal(plaintext, resolved.password).encode("ascii"))
    print(f"File encrypted successfully: {source} -> {target}")


def cmd_decrypt(resolver: PasswordResolver, source: Path, target: Path) -> None:
    blob = source.read_bytes().decode("ascii", errors="replace")
    target.write_bytes(resolver.unseal(blob).encode("utf-8"))
    print(f"File decrypted successfully: {source} -> {target}")


def run(args: argparse.Namespace, resolver: Optional[PasswordResolver] = None) -> int:
    if args.action not in ACTIONS:
        raise UsageError('Action must be either "encrypt" or "decrypt"')
    source = Path(args.input_file)
    if not source.is_file():
        raise MissingInputFile(f'Input file "{source}" does not exist')
    target = Path(args.output_file or default_output(args.action, args.input_file))

    if resolver is None:
        try:
            config = VaultConfig.from_env(password_file=args.password_file)
        except ValidationError as err:
            raise UsageError(f"Invalid configuration: {err}") from err
        resolver = PasswordResolver(config)

    logger.debug("%s %s -> %s", args.action, source, target)
    if args.action == "encrypt":
        cmd_encrypt(resolver, source, target)
    else:
        cmd_decrypt(resolver, source, target)
    print(f"Output saved to: {target}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as err:
        parser.print_usage(sys.stderr)
        print(f"Error: {err}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return run(args)
    except UsageError as err:
        parser.print_usage(sys.stderr)
        print(f"Error: {err}", file=sys.stderr)
    except VaultError as err:
        print(f"Error: {err}", file=sys.stderr)
    except UnicodeDecodeError as err:
        print(f"Error: input is not valid UTF-8 text: {err}", file=sys.stderr)
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
