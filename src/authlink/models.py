"""Pydantic models for two-factor credentials and login outcomes."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class TwoFactorStatus(StrEnum):
    UNENROLLED = "unenrolled"
    PENDING_CONFIRMATION = "pending_confirmation"
    ACTIVE = "active"
    DISABLED = "disabled"


class LoginOutcome(StrEnum):
    AUTHENTICATED = "authenticated"
    PRIMARY_REJECTED = "primary_rejected"
    SECOND_FACTOR_REQUIRED = "second_factor_required"
    SECOND_FACTOR_REJECTED = "second_factor_rejected"


class VerificationError(StrEnum):
    INVALID_SECRET = "invalid_secret"
    MALFORMED_CODE = "malformed_code"
    NO_MATCH = "no_match"
    REPLAYED = "replayed"


class TwoFactorCredential(BaseModel):
    """Per-account two-factor record.

    ``last_accepted_step`` is the replay guard: the time step of the last
    code accepted at login. It only ever grows while the secret is unchanged.
    """

    account_id: str
    secret: bytes | None = Field(default=None, repr=False)
    status: TwoFactorStatus = TwoFactorStatus.UNENROLLED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    confirmed_at: datetime | None = None
    last_accepted_step: int | None = None

    @model_validator(mode="after")
    def _secret_matches_status(self) -> TwoFactorCredential:
        needs_secret = self.status in (TwoFactorStatus.PENDING_CONFIRMATION, TwoFactorStatus.ACTIVE)
        if needs_secret and not self.secret:
            raise ValueError(f"{self.status} credential requires a secret")
        if not needs_secret and self.secret is not None:
            raise ValueError(f"{self.status} credential must not hold a secret")
        return self


class EnrollmentStart(BaseModel):
    """Returned exactly once when enrollment starts, for display to the user."""

    secret: bytes = Field(repr=False)
    secret_base32: str = Field(repr=False)
    provisioning_uri: str = Field(repr=False)
