"""TOTP (RFC 6238) code generation and verification.

HOTP (RFC 4226, via pyotp) over HMAC-SHA1 with the counter taken from
30-second time steps. Window checks and replay protection live here.
Everything is a pure function of its arguments: no clock reads unless
the caller omits ``now``, no shared state, no logging of secrets.
"""

from __future__ import annotations

import hmac
import time
from dataclasses import dataclass

import pyotp

from authlink.auth import base32
from authlink.errors import InvalidSecret
from authlink.models import VerificationError

STEP_SECONDS = 30
DIGITS = 6
DEFAULT_WINDOW = 1


@dataclass(frozen=True, slots=True)
class Verification:
    """Outcome of ``verify_code``: exactly one of ``step`` / ``error`` is set."""

    step: int | None = None
    error: VerificationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def time_step(now: float) -> int:
    """Time-step index for a Unix timestamp."""
    return int(now // STEP_SECONDS)


def compute_code(secret: bytes, step: int) -> str:
    """Compute the 6-digit code for ``secret`` at time step ``step``."""
    if not secret:
        raise InvalidSecret("Shared secret is empty")
    if step < 0:
        raise ValueError("step must be non-negative")
    return pyotp.HOTP(base32.encode(secret), digits=DIGITS).at(step)


def current_code(secret: bytes, now: float | None = None) -> str:
    """Code for the step containing ``now`` (defaults to the wall clock)."""
    return compute_code(secret, time_step(time.time() if now is None else now))


def is_well_formed(candidate: str) -> bool:
    """Exactly six ASCII digits."""
    return len(candidate) == DIGITS and candidate.isascii() and candidate.isdigit()


def verify_code(
    secret: bytes,
    candidate: str,
    now: float,
    window: int = DEFAULT_WINDOW,
    last_accepted_step: int | None = None,
) -> Verification:
    """Check ``candidate`` against the steps ``now`` +/- ``window``.

    Every step in the window is computed and compared with
    ``hmac.compare_digest`` so the time taken does not depend on where (or
    whether) a match occurs. The earliest matching step wins. A match at or
    before ``last_accepted_step`` is reported as ``REPLAYED``.
    """
    if window < 0:
        raise ValueError("window must be non-negative")
    if not secret:
        return Verification(error=VerificationError.INVALID_SECRET)
    if not isinstance(candidate, str) or not is_well_formed(candidate):
        return Verification(error=VerificationError.MALFORMED_CODE)

    current = time_step(now)
    matched: int | None = None
    for step in range(current - window, current + window + 1):
        if step < 0:
            continue
        if hmac.compare_digest(compute_code(secret, step), candidate) and matched is None:
            matched = step

    if matched is None:
        return Verification(error=VerificationError.NO_MATCH)
    if last_accepted_step is not None and matched <= last_accepted_step:
        return Verification(error=VerificationError.REPLAYED)
    return Verification(step=matched)
