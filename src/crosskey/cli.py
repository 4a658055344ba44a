"""
Command line front end.

Usage:
    python -m crosskey salt
    python -m crosskey key --salt <salt>
    python -m crosskey fingerprint --salt <salt>
    python -m crosskey encrypt --salt <salt> [--key <key>] [text]
    python -m crosskey decrypt --salt <salt> [--key <key>] [ciphertext]
    python -m crosskey encrypt-file --salt <salt> [--key <key>] <in> <out>
    python -m crosskey decrypt-file --salt <salt> [--key <key>] <in> <out>

Passwords are prompted for with getpass, or read from the environment
variable named by ``--password-env``. When ``--key`` is omitted the key is
derived from the password and salt. Text input defaults to stdin; one
trailing newline is dropped from text read for ``encrypt``.
"""

import argparse
import asyncio
import getpass
import inspect
import logging
import os
import sys

from .config import ENVIRONMENTS, Settings
from .core.exceptions import ConfigurationError, CrossKeyError
from .logging_config import configure_logging
from .security.native import NativeCrypto
from .security.subtle import SubtleCrypto

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crosskey", description="Portable PBKDF2 keys and AES-256-CBC encryption"
    )
    parser.add_argument("--env", choices=ENVIRONMENTS, default=None,
                        help="binding to use (default: CROSSKEY_ENVIRONMENT or native)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("salt", help="generate a new random salt")

    for name in ("key", "fingerprint"):
        p = sub.add_parser(name, help=f"derive a {name} from a password and salt")
        p.add_argument("--salt", required=True)
        p.add_argument("--password-env", default=None)

    for name in ("encrypt", "decrypt"):
        p = sub.add_parser(name, help=f"{name} text (ciphertext is base64)")
        _add_cipher_args(p)
        p.add_argument("text", nargs="?", default=None)

    for name in ("encrypt-file", "decrypt-file"):
        p = sub.add_parser(name, help=f"{name.split('-')[0]} a file (native only)")
        _add_cipher_args(p)
        p.add_argument("in_path")
        p.add_argument("out_path")

    return parser


def _add_cipher_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--salt", required=True)
    parser.add_argument("--key", default=None, help="base64 key; derived from the password if omitted")
    parser.add_argument("--password-env", default=None)


def _read_password(args) -> str:
    if args.password_env:
        value = os.getenv(args.password_env)
        if value is None:
            raise ConfigurationError(f"environment variable {args.password_env} is not set")
        return value
    return getpass.getpass("Password: ")


def _read_stdin(command: str) -> str:
    text = sys.stdin.read()
    if command == "encrypt" and text.endswith("\n"):
        # drop the newline added by echo or a heredoc
        text = text[:-2] if text.endswith("\r\n") else text[:-1]
    return text


def _call(fn, *args):
    # subtle bindings return coroutines; drive them to completion here
    result = fn(*args)
    if inspect.iscoroutine(result):
        return asyncio.run(result)
    return result


def _resolve_key(binding, args) -> str:
    if args.key:
        return args.key
    return _call(binding.generate_key, _read_password(args), args.salt)


def run(args, settings: Settings) -> None:
    environment = args.env or settings.environment
    if environment == "subtle":
        binding = SubtleCrypto()
    else:
        binding = NativeCrypto(chunk_size=settings.chunk_size)
    logger.debug("using %s binding for %s", environment, args.command)

    if args.command == "salt":
        print(_call(binding.generate_salt))
    elif args.command == "key":
        print(_call(binding.generate_key, _read_password(args), args.salt))
    elif args.command == "fingerprint":
        print(_call(binding.generate_fingerprint, _read_password(args), args.salt))
    elif args.command in ("encrypt", "decrypt"):
        key = _resolve_key(binding, args)
        text = args.text if args.text is not None else _read_stdin(args.command)
        if args.command == "encrypt":
            print(_call(binding.encrypt, key, args.salt, text))
        else:
            sys.stdout.write(_call(binding.decrypt, key, args.salt, text.strip()))
    else:
        if environment != "native":
            raise ConfigurationError("file encryption requires the native environment")
        key = _resolve_key(binding, args)
        if args.command == "encrypt-file":
            binding.encrypt_file(key, args.salt, args.in_path, args.out_path)
        else:
            binding.decrypt_file(key, args.salt, args.in_path, args.out_path)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
        configure_logging(logging.DEBUG if args.verbose else settings.log_level)
        run(args, settings)
    except (CrossKeyError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\ncancelled", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
