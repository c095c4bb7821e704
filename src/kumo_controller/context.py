"""Credential persistence for the Kumo Cloud account.

Credentials live in ``$KUMO_CONFIG_DIR/credentials.yaml`` with both fields
base64 encoded. That keeps them out of casual view but is not encryption.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import os
from pathlib import Path
from typing import cast

import yaml

from kumo_controller.const import KUMO_CREDENTIALS_PATH
from kumo_controller.logging_abstraction import get_logger
from kumo_controller.structs import Credentials

logger = get_logger(__name__)

__all__ = ["CredentialStore"]


def _encode(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _decode(value: object) -> str:
    if not isinstance(value, str):
        msg = f"expected a base64 string, got {type(value).__name__}"
        raise TypeError(msg)
    return base64.b64decode(value, validate=True).decode("utf-8")


class CredentialStore:
    lp: str = "CredentialStore"

    def __init__(self, path: str | Path = KUMO_CREDENTIALS_PATH) -> None:
        self.path: Path = Path(path).expanduser()

    async def load(self) -> Credentials | None:
        """Read stored credentials; None when absent or unreadable."""
        lp = f"{self.lp}:load:"

        def _read_yaml() -> Credentials | None:
            with self.path.open("r", encoding="utf-8") as f:
                raw = cast("object", yaml.safe_load(f))
            if not isinstance(raw, dict):
                return None
            data = cast("dict[str, object]", raw)
            return Credentials(username=_decode(data.get("username")), password=_decode(data.get("password")))

        try:
            credentials = await asyncio.to_thread(_read_yaml)
        except FileNotFoundError:
            logger.debug("%s No credentials file at %s", lp, self.path)
            return None
        except (yaml.YAMLError, binascii.Error, UnicodeDecodeError, TypeError, ValueError) as e:
            logger.warning("%s Failed to parse credentials file %s: %s", lp, self.path, e)
            return None

        if credentials is None:
            logger.warning("%s Credentials file %s is empty", lp, self.path)
        return credentials

    async def save(self, credentials: Credentials) -> bool:
        """Write credentials (owner read/write only). Returns False if the write failed."""
        lp = f"{self.lp}:save:"

        def _write_yaml() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Owner-only before any secret is written, also when the file already exists
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    {"username": _encode(credentials.username), "password": _encode(credentials.password)},
                    f,
                    default_flow_style=False,
                )

        try:
            await asyncio.to_thread(_write_yaml)
        except OSError:
            logger.exception("%s Failed to write credentials to %s", lp, self.path)
            return False
        logger.info("%s Credentials saved to %s", lp, self.path)
        return True

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)
