"""
Credential Verifier

Runs one login attempt end to end:

1. load the user by email
2. refuse disabled and locked accounts
3. check the password (wrong password counts toward lockout)
4. check the second factor when MFA is on (TOTP first, else backup code)
5. clear the lockout counters and stamp the login

Exactly one LoginAttempt is written to the audit trail for every outcome.
Wrong passwords and unknown emails return None; every other rejection
raises its own AuthError subclass.

Security considerations:
- Passwords are only compared through the adaptive-hash verify function
- Lockout and backup-code writes go through the store's atomic transitions
- Wrong second factors are audited but do not count toward the password lockout
- Never log sensitive data (passwords, codes, secrets)
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from . import backup_codes
from .base32 import decode as decode_base32
from .errors import AccountDisabled, AccountLocked, AuthFailure, InvalidBackupCode, InvalidMfaToken, MfaRequired
from .lockout import LockoutPolicy
from .models import LockoutState, Principal, User, as_utc
from .passwords import verify_password
from .store import UserStore
from .totp import verify_totp
from ..audit.event_logger import AuditRecorder, EventType, get_subject_hash
from ..config import AuthSettings, get_settings


logger = logging.getLogger(__name__)

PasswordVerifier = Callable[[str, str], bool]

# Audit reasons
REASON_MISSING_CREDENTIALS = "Missing credentials"
REASON_UNKNOWN_EMAIL = "Unknown email"
REASON_DISABLED = "Account disabled"
REASON_LOCKED = "Account locked"
REASON_INVALID_PASSWORD = "Invalid password"
REASON_MFA_REQUIRED = "MFA required"
REASON_INVALID_MFA_TOKEN = "Invalid MFA token"
REASON_INVALID_BACKUP_CODE = "Invalid backup code"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialVerifier:
    """
    Password + TOTP/backup-code authentication with account lockout.

    Example:
        >>> verifier = CredentialVerifier(store, AuditRecorder())
        >>> principal = verifier.authorize("alice@example.com", "s3cret", mfa_code="123456")
        >>> if principal is None:
        ...     ...  # wrong email or password
    """

    def __init__(self, store: UserStore, recorder: Optional[AuditRecorder] = None,
                 settings: Optional[AuthSettings] = None,
                 password_verifier: PasswordVerifier = verify_password,
                 clock: Callable[[], datetime] = _utcnow):
        """
        Initialize the verifier.

        Args:
            store: User-record store
            recorder: Audit recorder (a private in-memory one if omitted)
            settings: Lockout and TOTP settings (process settings if omitted)
            password_verifier: Function (password, hash) -> bool
            clock: Returns the current UTC time when ``now`` is not passed
        """
        self._store = store
        self._recorder = recorder if recorder is not None else AuditRecorder()
        self._settings = settings or get_settings()
        self._policy = LockoutPolicy.from_settings(self._settings)
        self._password_verifier = password_verifier
        self._clock = clock

    @property
    def policy(self) -> LockoutPolicy:
        return self._policy

    @property
    def recorder(self) -> AuditRecorder:
        return self._recorder

    def authorize(self, email: str, password: str,
                  mfa_code: Optional[str] = None,
                  backup_code: Optional[str] = None,
                  now: Optional[datetime] = None) -> Optional[Principal]:
        """
        Authenticate one login attempt.

        Args:
            email: Account email (exact match)
            password: Plaintext password
            mfa_code: 6-digit TOTP code, if supplied
            backup_code: Recovery code, used only when no TOTP code is supplied
            now: Attempt time (clock time if omitted)

        Returns:
            Principal on success, None for unknown email or wrong password

        Raises:
            AccountDisabled: The account is administratively disabled
            AccountLocked: The account is locked
            MfaRequired: MFA is on and no second factor was supplied
            InvalidMfaToken: The TOTP code did not verify
            InvalidBackupCode: The backup code is unknown or already used
            ValueError: If ``now`` is a naive datetime
        """
        now = as_utc(now or self._clock())
        subject = get_subject_hash(email) if email else None

        if not email or not password:
            self._audit(None, REASON_MISSING_CREDENTIALS, now, subject=subject)
            return None

        user = self._store.find_by_email(email)
        if user is None:
            logger.debug("Login for unknown subject %s", subject)
            self._audit(None, REASON_UNKNOWN_EMAIL, now, subject=subject)
            return None

        guard = self._policy.entry_guard(user.lockout_state, now)
        if guard is not None:
            self._refuse(user.id, guard, user.locked_until, now, subject)

        if not self._password_verifier(password, user.password_hash):
            self._register_password_failure(user, now, subject)
            self._audit(user.id, REASON_INVALID_PASSWORD, now, subject=subject)
            return None

        mfa_used = self._check_second_factor(user, mfa_code, backup_code, now, subject)

        # The lock may have been applied by a concurrent attempt since the
        # entry guard ran; the transition re-checks it under the store's lock.
        raced = []

        def succeed(current: LockoutState) -> LockoutState:
            guard = self._policy.entry_guard(current, now)
            if guard is not None:
                raced.append(guard)
                return current
            return self._policy.register_success(current)

        state = self._store.update_lockout_state(user.id, succeed)
        if raced:
            self._refuse(user.id, raced[0], state.locked_until, now, subject)

        self._store.touch_last_login(user.id, now)
        self._recorder.record(user.id, True, mfa_used=mfa_used, subject_hash=subject, timestamp=now)
        logger.info("Login succeeded for user %s (mfa=%s)", user.id, mfa_used)

        return Principal.from_user(user)

    def _refuse(self, user_id: str, guard: AuthFailure, locked_until: Optional[datetime],
                now: datetime, subject: Optional[str]) -> None:
        """Audit and raise the failure an entry guard reported."""
        if guard is AuthFailure.ACCOUNT_DISABLED:
            logger.warning("Login refused for disabled user %s", user_id)
            self._audit(user_id, REASON_DISABLED, now, subject=subject)
            raise AccountDisabled()
        logger.warning("Login refused for locked user %s (until %s)", user_id, locked_until)
        self._audit(user_id, REASON_LOCKED, now, subject=subject)
        raise AccountLocked(locked_until)

    def _register_password_failure(self, user: User, now: datetime,
                                   subject: Optional[str]) -> None:
        raced = []

        def fail(current: LockoutState) -> LockoutState:
            guard = self._policy.entry_guard(current, now)
            if guard is not None:
                raced.append(guard)
                return current
            return self._policy.register_failure(current, now)

        state = self._store.update_lockout_state(user.id, fail)
        if raced:
            # Locked (or disabled) by another attempt; this one is not counted
            self._refuse(user.id, raced[0], state.locked_until, now, subject)

        if state.failed_attempts >= self._policy.threshold:
            logger.warning(
                "User %s locked after %d failed attempts (until %s)",
                user.id, state.failed_attempts, state.locked_until.isoformat(),
            )
        else:
            logger.info(
                "Invalid password for user %s (%d attempts left)",
                user.id, self._policy.remaining_attempts(state),
            )

    def _check_second_factor(self, user: User, mfa_code: Optional[str],
                             backup_code: Optional[str], now: datetime,
                             subject: Optional[str]) -> bool:
        """Returns True when a second factor was checked and passed."""
        if user.mfa_enabled and not user.mfa_secret:
            logger.warning("User %s has MFA enabled without a secret; second factor skipped", user.id)
        if not user.requires_mfa:
            return False

        if not mfa_code and not backup_code:
            self._audit(user.id, REASON_MFA_REQUIRED, now, subject=subject)
            raise MfaRequired()

        if mfa_code:
            secret = decode_base32(user.mfa_secret)
            if not verify_totp(secret, mfa_code, now.timestamp(), self._settings.totp_window):
                logger.warning("Invalid MFA token for user %s", user.id)
                self._audit(user.id, REASON_INVALID_MFA_TOKEN, now, mfa_used=True, subject=subject)
                raise InvalidMfaToken()
            return True

        remaining = []

        def spend(codes):
            matched, left = backup_codes.consume(codes, backup_code)
            remaining[:] = left
            return matched, left

        if not self._store.update_backup_codes(user.id, spend):
            logger.warning("Invalid backup code for user %s", user.id)
            self._audit(user.id, REASON_INVALID_BACKUP_CODE, now, mfa_used=True, subject=subject)
            raise InvalidBackupCode()

        self._recorder.record_event(
            EventType.MFA_BACKUP_CODE_USED, user.id,
            details={'remaining_codes': len(remaining)}, timestamp=now,
        )
        if not remaining:
            logger.warning("User %s has used their last backup code", user.id)
        return True

    def _audit(self, user_id: Optional[str], reason: str, now: datetime,
               mfa_used: bool = False, subject: Optional[str] = None) -> None:
        self._recorder.record(
            user_id, False, reason=reason, mfa_used=mfa_used,
            subject_hash=subject, timestamp=now,
        )
