"""Two-factor error taxonomy.

None of these are fatal to the process; callers decide whether to retry,
rate-limit or lock out. Messages never carry secret material.
"""

from __future__ import annotations


class TwoFactorError(Exception):
    """Base class for all two-factor failures."""


class InvalidSecretFormat(TwoFactorError, ValueError):
    """Base32 text could not be decoded into at least one byte."""


class InvalidSecret(TwoFactorError, ValueError):
    """The shared secret is empty."""


class AlreadyActive(TwoFactorError):
    """Enrollment requested while an active credential exists."""


class NotPending(TwoFactorError):
    """Confirmation requested without a pending enrollment."""


class CodeMismatch(TwoFactorError):
    """The confirmation code did not verify against the pending secret."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Code did not match ({reason})")
        self.reason = reason
