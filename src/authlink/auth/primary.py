"""Primary (username/password) credential check for operator accounts.

Password storage is out of scope here: operators come from settings and the
optional operators YAML file, and are compared in constant time.
"""

from __future__ import annotations

import hmac
import logging
from typing import Protocol

from authlink.config import Settings, load_operators

logger = logging.getLogger(__name__)

_DUMMY = "\x00" * 32


class PrimaryCredentialStore(Protocol):
    def verify_primary(self, username: str, password: str) -> bool: ...


class StaticPrimaryStore:
    """In-memory username -> password table."""

    def __init__(self, accounts: dict[str, str]) -> None:
        self._accounts = dict(accounts)

    @classmethod
    def from_settings(cls, settings: Settings) -> StaticPrimaryStore:
        accounts: dict[str, str] = {}
        if settings.operators_file.exists():
            accounts.update(load_operators(settings.operators_file))
        if settings.admin_password:
            accounts[settings.admin_username] = settings.admin_password
        if not accounts:
            logger.warning("No operator accounts configured; every login will be rejected")
        return cls(accounts)

    def verify_primary(self, username: str, password: str) -> bool:
        expected = self._accounts.get(username)
        # Unknown users still pay for a comparison.
        matched = hmac.compare_digest(
            (expected if expected is not None else _DUMMY).encode(),
            password.encode(),
        )
        return matched and expected is not None

    def __contains__(self, username: str) -> bool:
        return username in self._accounts
