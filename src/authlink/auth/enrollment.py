"""Two-factor credential lifecycle per account.

    Unenrolled --start--> PendingConfirmation --confirm--> Active
    Active --disable--> Disabled --start--> PendingConfirmation

Every transition runs under the store's per-account lock, so two requests
racing to confirm, or to spend the same code at login, cannot both win.
Re-enrollment replaces the secret in a single save: there is no moment at
which both the old and the new secret are valid.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from authlink.auth import base32, totp
from authlink.auth.provisioning import DEFAULT_SECRET_BYTES, build_provisioning_uri, generate_secret
from authlink.auth.totp import Verification
from authlink.errors import AlreadyActive, CodeMismatch, NotPending
from authlink.events import EventSink, log_only
from authlink.models import EnrollmentStart, TwoFactorCredential, TwoFactorStatus, VerificationError
from authlink.store import CredentialStore

logger = logging.getLogger(__name__)

CATEGORY = "two_factor"


class TwoFactorManager:
    """Enrollment, confirmation, disablement and login-time verification."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        issuer: str,
        secret_bytes: int = DEFAULT_SECRET_BYTES,
        window: int = totp.DEFAULT_WINDOW,
        clock: Callable[[], float] = time.time,
        on_event: EventSink = log_only,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._secret_bytes = secret_bytes
        self._window = window
        self._clock = clock
        self._emit = on_event

    def status(self, account_id: str) -> TwoFactorStatus:
        record = self._store.load(account_id)
        return record.status if record else TwoFactorStatus.UNENROLLED

    def is_required(self, account_id: str) -> bool:
        """True iff the account has an active second factor."""
        return self.status(account_id) == TwoFactorStatus.ACTIVE

    def start_enrollment(self, account_id: str, account_label: str | None = None) -> EnrollmentStart:
        """Create a pending credential with a fresh secret.

        The returned secret and URI are the only time the secret leaves the
        store. A pending enrollment is replaced; an active one is not.

        Raises:
            AlreadyActive: the account must be disabled first.
        """
        with self._store.lock(account_id):
            current = self._store.load(account_id)
            if current and current.status == TwoFactorStatus.ACTIVE:
                raise AlreadyActive(f"Two-factor already active for {account_id}")
            replaced = bool(current and current.status == TwoFactorStatus.PENDING_CONFIRMATION)

            secret = generate_secret(self._secret_bytes)
            self._store.save(TwoFactorCredential(
                account_id=account_id,
                secret=secret,
                status=TwoFactorStatus.PENDING_CONFIRMATION,
            ))

        self._emit(CATEGORY, "info", "enrollment_started",
                   f"Two-factor enrollment started for {account_id}",
                   account_id=account_id,
                   context={"replaced_pending": replaced})
        return EnrollmentStart(
            secret=secret,
            secret_base32=base32.encode(secret),
            provisioning_uri=build_provisioning_uri(self._issuer, account_label or account_id, secret),
        )

    def confirm_enrollment(self, account_id: str, candidate_code: str, now: float | None = None) -> None:
        """Promote a pending credential to active on a verified code.

        Raises:
            AlreadyActive: another request confirmed first.
            NotPending: there is no enrollment to confirm.
            CodeMismatch: the code did not verify; state is unchanged.
        """
        now = self._clock() if now is None else now
        with self._store.lock(account_id):
            record = self._store.load(account_id)
            if record and record.status == TwoFactorStatus.ACTIVE:
                raise AlreadyActive(f"Two-factor already active for {account_id}")
            if not record or record.status != TwoFactorStatus.PENDING_CONFIRMATION:
                raise NotPending(f"No pending enrollment for {account_id}")

            result = totp.verify_code(record.secret, candidate_code, now, window=self._window)
            if result.ok:
                record.status = TwoFactorStatus.ACTIVE
                record.confirmed_at = datetime.now(UTC)
                self._store.save(record)

        if not result.ok:
            self._emit(CATEGORY, "warning", "enrollment_code_mismatch",
                       f"Enrollment code rejected for {account_id}",
                       account_id=account_id, context={"reason": result.error.value})
            raise CodeMismatch(result.error.value)

        self._emit(CATEGORY, "info", "enrollment_confirmed",
                   f"Two-factor enabled for {account_id}", account_id=account_id)

    def disable(self, account_id: str) -> None:
        """Discard the secret. A no-op when nothing is enrolled.

        Active credentials become Disabled; a pending enrollment is cancelled
        back to Unenrolled.
        """
        with self._store.lock(account_id):
            record = self._store.load(account_id)
            if not record or record.status in (TwoFactorStatus.UNENROLLED, TwoFactorStatus.DISABLED):
                logger.debug("disable(%s): nothing enrolled", account_id)
                return
            previous = record.status
            if previous == TwoFactorStatus.PENDING_CONFIRMATION:
                self._store.delete(account_id)
            else:
                self._store.save(TwoFactorCredential(
                    account_id=account_id,
                    status=TwoFactorStatus.DISABLED,
                    created_at=record.created_at,
                ))

        self._emit(CATEGORY, "info", "two_factor_disabled",
                   f"Two-factor disabled for {account_id}",
                   account_id=account_id, context={"previous_status": previous.value})

    def verify_login_code(self, account_id: str, candidate_code: str, now: float | None = None) -> Verification:
        """Verify a login code against the active secret and advance the replay guard."""
        now = self._clock() if now is None else now
        with self._store.lock(account_id):
            record = self._store.load(account_id)
            if not record or record.status != TwoFactorStatus.ACTIVE:
                return Verification(error=VerificationError.INVALID_SECRET)

            result = totp.verify_code(
                record.secret,
                candidate_code,
                now,
                window=self._window,
                last_accepted_step=record.last_accepted_step,
            )
            if result.ok:
                record.last_accepted_step = result.step
                self._store.save(record)
        return result
