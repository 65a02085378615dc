"""
Authentication failures.

Each rejection the verifier raises is its own exception class so callers
can render specific guidance (prompt for a code, show the remaining lock
time, ...). An invalid password is not an exception: ``authorize`` returns
``None`` for it.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Optional


class AuthFailure(Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    MFA_REQUIRED = "MFA_REQUIRED"
    INVALID_MFA_TOKEN = "INVALID_MFA_TOKEN"
    INVALID_BACKUP_CODE = "INVALID_BACKUP_CODE"


class AuthError(Exception):
    """Base class for raised authentication failures."""

    code: AuthFailure = AuthFailure.INVALID_CREDENTIALS
    default_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class AccountDisabled(AuthError):
    code = AuthFailure.ACCOUNT_DISABLED
    default_message = "Account is disabled"


class AccountLocked(AuthError):
    """
    Raised while an account is locked.

    ``locked_until`` is None when the lock has no expiry (status LOCKED
    with the timer cleared), which only an administrator can lift.
    """
    code = AuthFailure.ACCOUNT_LOCKED
    default_message = "Account is locked"

    def __init__(self, locked_until: Optional[datetime] = None,
                 message: Optional[str] = None):
        super().__init__(message)
        self.locked_until = locked_until

    def retry_after(self, now: datetime) -> Optional[int]:
        """Whole seconds until the lock lapses, or None if it never does."""
        if self.locked_until is None:
            return None
        return max(0, math.ceil((self.locked_until - now).total_seconds()))


class MfaRequired(AuthError):
    code = AuthFailure.MFA_REQUIRED
    default_message = "A TOTP code or backup code is required"


class InvalidMfaToken(AuthError):
    code = AuthFailure.INVALID_MFA_TOKEN
    default_message = "Invalid MFA token"


class InvalidBackupCode(AuthError):
    code = AuthFailure.INVALID_BACKUP_CODE
    default_message = "Invalid backup code"


class MfaEnrollmentError(ValueError):
    """Raised when an MFA lifecycle operation is used out of order."""


class UnknownUserError(LookupError):
    """Raised when an operation names a user id the store does not hold."""
