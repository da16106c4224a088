"""Persistence for two-factor credentials.

A store exposes plain load/save/delete plus ``lock(account_id)``. Callers
wrap every read-modify-write of one account in ``lock`` so that verifying
a code, updating the replay guard and changing status happen as one unit.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import Any, ContextManager, Protocol

from authlink import crypto
from authlink.db import sync_conn, sync_execute, sync_execute_one
from authlink.locks import KeyedLock
from authlink.models import TwoFactorCredential, TwoFactorStatus


class CredentialStore(Protocol):
    def load(self, account_id: str) -> TwoFactorCredential | None: ...

    def save(self, record: TwoFactorCredential) -> None: ...

    def delete(self, account_id: str) -> None: ...

    def lock(self, account_id: str) -> ContextManager[None]: ...


class MemoryCredentialStore:
    """Dict-backed store for tests and single-process deployments."""

    def __init__(self) -> None:
        self._records: dict[str, TwoFactorCredential] = {}
        self._locks = KeyedLock()

    def load(self, account_id: str) -> TwoFactorCredential | None:
        record = self._records.get(account_id)
        return record.model_copy() if record else None

    def save(self, record: TwoFactorCredential) -> None:
        self._records[record.account_id] = record.model_copy()

    def delete(self, account_id: str) -> None:
        self._records.pop(account_id, None)

    def lock(self, account_id: str) -> ContextManager[None]:
        return self._locks.hold(account_id)


class PostgresCredentialStore:
    """PostgreSQL-backed store; secrets are AES-GCM encrypted at rest.

    The account id is bound as associated data so an encrypted secret cannot
    be moved to another account's row.
    """

    def __init__(self) -> None:
        self._locks = KeyedLock()

    def load(self, account_id: str) -> TwoFactorCredential | None:
        row = sync_execute_one(
            """SELECT account_id, secret_enc, status, created_at, confirmed_at, last_accepted_step
               FROM two_factor_credentials WHERE account_id = %s""",
            (account_id,),
        )
        if not row:
            return None
        return self._from_row(row)

    def save(self, record: TwoFactorCredential) -> None:
        secret_enc = None
        if record.secret is not None:
            secret_enc = crypto.encrypt(record.secret, record.account_id.encode())
        sync_execute(
            """INSERT INTO two_factor_credentials
               (account_id, secret_enc, status, created_at, confirmed_at, last_accepted_step)
               VALUES (%s, %s, %s, %s, %s, %s)
               ON CONFLICT (account_id) DO UPDATE SET
                   secret_enc = EXCLUDED.secret_enc,
                   status = EXCLUDED.status,
                   created_at = EXCLUDED.created_at,
                   confirmed_at = EXCLUDED.confirmed_at,
                   last_accepted_step = EXCLUDED.last_accepted_step,
                   updated_at = now()""",
            (
                record.account_id,
                secret_enc,
                record.status.value,
                record.created_at,
                record.confirmed_at,
                record.last_accepted_step,
            ),
        )

    def delete(self, account_id: str) -> None:
        sync_execute("DELETE FROM two_factor_credentials WHERE account_id = %s", (account_id,))

    @contextlib.contextmanager
    def lock(self, account_id: str) -> Iterator[None]:
        """Hold the in-process lock and a session advisory lock for the account."""
        with self._locks.hold(account_id):
            with sync_conn(autocommit=True) as conn:
                conn.execute("SELECT pg_advisory_lock(hashtextextended(%s, 0))", (account_id,))
                try:
                    yield
                finally:
                    conn.execute("SELECT pg_advisory_unlock(hashtextextended(%s, 0))", (account_id,))

    @staticmethod
    def _from_row(row: dict[str, Any]) -> TwoFactorCredential:
        secret = None
        if row["secret_enc"] is not None:
            secret = crypto.decrypt(bytes(row["secret_enc"]), row["account_id"].encode())
        return TwoFactorCredential(
            account_id=row["account_id"],
            secret=secret,
            status=TwoFactorStatus(row["status"]),
            created_at=row["created_at"],
            confirmed_at=row["confirmed_at"],
            last_accepted_step=row["last_accepted_step"],
        )
