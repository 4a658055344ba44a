"""Runtime settings read from the environment.

Only operational knobs live here. Protocol constants (iterations, key and
salt lengths, cipher) are fixed in :mod:`crosskey.security.kdf` and
:mod:`crosskey.security.cipher` and are deliberately not configurable.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Mapping, Optional

from .core.exceptions import ConfigurationError
from .security.cipher import BLOCK_SIZE, DEFAULT_CHUNK_SIZE

ENVIRONMENTS = ("native", "subtle")


@dataclass(frozen=True)
class Settings:
    environment: str = "native"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_level: int = logging.WARNING

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from ``CROSSKEY_*`` variables.

        - ``CROSSKEY_ENVIRONMENT``: ``native`` (default) or ``subtle``
        - ``CROSSKEY_CHUNK_SIZE``: file read size, positive multiple of 16
        - ``CROSSKEY_LOG_LEVEL``: logging level name, default ``WARNING``
        """
        env = os.environ if environ is None else environ

        environment = env.get("CROSSKEY_ENVIRONMENT", "native").strip().lower()
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"CROSSKEY_ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}"
            )

        raw_chunk = env.get("CROSSKEY_CHUNK_SIZE")
        chunk_size = DEFAULT_CHUNK_SIZE
        if raw_chunk:
            try:
                chunk_size = int(raw_chunk)
            except ValueError:
                raise ConfigurationError("CROSSKEY_CHUNK_SIZE must be an integer") from None
            if chunk_size <= 0 or chunk_size % BLOCK_SIZE:
                raise ConfigurationError(
                    f"CROSSKEY_CHUNK_SIZE must be a positive multiple of {BLOCK_SIZE}"
                )

        level_name = env.get("CROSSKEY_LOG_LEVEL", "WARNING").strip().upper()
        log_level = logging.getLevelName(level_name)
        if not isinstance(log_level, int):
            raise ConfigurationError(f"unknown CROSSKEY_LOG_LEVEL {level_name!r}")

        return cls(environment=environment, chunk_size=chunk_size, log_level=log_level)
