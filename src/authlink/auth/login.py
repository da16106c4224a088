"""Sign-in: primary credential first, then the TOTP challenge if enrolled.

    AwaitingPrimary --ok--> AwaitingSecondFactor --ok--> Authenticated
          |                        |
       rejected                 rejected

The account id of an operator is their username. A primary rejection ends
the attempt before two-factor state is read, so a rejected attempt learns
nothing about whether the account has a second factor.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from authlink.auth.enrollment import CATEGORY, TwoFactorManager
from authlink.auth.primary import PrimaryCredentialStore
from authlink.events import EventSink, log_only
from authlink.models import LoginOutcome, VerificationError

logger = logging.getLogger(__name__)

MESSAGES: dict[LoginOutcome, str] = {
    LoginOutcome.AUTHENTICATED: "Signed in",
    LoginOutcome.PRIMARY_REJECTED: "Invalid username or password",
    LoginOutcome.SECOND_FACTOR_REQUIRED: "Enter your authenticator code",
    LoginOutcome.SECOND_FACTOR_REJECTED: "Invalid authenticator code",
}

ENROLLMENT_MISMATCH_MESSAGE = "Invalid code. Please try again."


def outcome_message(outcome: LoginOutcome) -> str:
    """User-facing text for a login outcome."""
    return MESSAGES[outcome]


class LoginCoordinator:
    def __init__(
        self,
        primary: PrimaryCredentialStore,
        two_factor: TwoFactorManager,
        *,
        clock: Callable[[], float] = time.time,
        on_event: EventSink = log_only,
    ) -> None:
        self._primary = primary
        self._two_factor = two_factor
        self._clock = clock
        self._emit = on_event

    def attempt(
        self,
        username: str,
        password: str,
        totp_code: str | None = None,
        now: float | None = None,
    ) -> LoginOutcome:
        if not self._primary.verify_primary(username, password):
            self._emit(CATEGORY, "warning", "login_primary_rejected",
                       "Primary credential rejected", context={"username": username})
            return LoginOutcome.PRIMARY_REJECTED

        if not self._two_factor.is_required(username):
            self._emit(CATEGORY, "info", "login_authenticated",
                       f"{username} signed in", account_id=username,
                       context={"second_factor": False})
            return LoginOutcome.AUTHENTICATED

        # An empty code is treated as no code: the caller is asked again.
        if not totp_code:
            self._emit(CATEGORY, "info", "login_second_factor_required",
                       f"Second factor required for {username}", account_id=username)
            return LoginOutcome.SECOND_FACTOR_REQUIRED

        now = self._clock() if now is None else now
        result = self._two_factor.verify_login_code(username, totp_code, now)
        if not result.ok:
            event_type = ("login_code_replayed" if result.error == VerificationError.REPLAYED
                          else "login_second_factor_rejected")
            self._emit(CATEGORY, "warning", event_type,
                       f"Second factor rejected for {username}", account_id=username,
                       context={"reason": result.error.value})
            return LoginOutcome.SECOND_FACTOR_REJECTED

        self._emit(CATEGORY, "info", "login_authenticated",
                   f"{username} signed in", account_id=username,
                   context={"second_factor": True, "step": result.step})
        return LoginOutcome.AUTHENTICATED
