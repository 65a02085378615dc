"""
Account Lockout Policy

State machine over (status, failed_attempts, locked_until):

    ACTIVE --[failure reaches threshold]--> LOCKED (timer = now + duration)
    LOCKED --[timer lapses]--> treated as unlocked, status and timer left as stored
    LOCKED --[administrative unlock]--> ACTIVE
    DISABLED: terminal for this policy, never entered or left here

Only wrong passwords count toward the threshold. Rejections of a locked
or disabled account never add to the counter, and neither do wrong second
factors.

Every transition is a pure function from one LockoutState to the next so
the store can apply it inside its own transaction.
"""

from datetime import datetime, timedelta
from typing import Optional

from .errors import AuthFailure
from .models import LockoutState, UserStatus


MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=30)


class LockoutPolicy:
    """
    Lockout rules for password authentication.

    Example:
        >>> policy = LockoutPolicy(threshold=5, duration=timedelta(minutes=30))
        >>> state = LockoutState(UserStatus.ACTIVE)
        >>> for _ in range(5):
        ...     state = policy.register_failure(state, now)
        >>> state.status
        <UserStatus.LOCKED: 'LOCKED'>
    """

    def __init__(self, threshold: int = MAX_FAILED_ATTEMPTS,
                 duration: timedelta = LOCKOUT_DURATION):
        """
        Initialize lockout policy.

        Args:
            threshold: Consecutive wrong passwords that trigger a lock
            duration: How long a triggered lock lasts
        """
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._threshold = threshold
        self._duration = duration

    @classmethod
    def from_settings(cls, settings) -> 'LockoutPolicy':
        return cls(settings.lockout_threshold, settings.lockout_duration)

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def duration(self) -> timedelta:
        return self._duration

    def is_locked(self, state: LockoutState, now: datetime) -> bool:
        """
        Check whether an account is currently locked.

        A future ``locked_until`` locks the account whatever the status. A
        LOCKED status whose timer has passed counts as expired; a LOCKED
        status with no timer at all stays locked until an administrator
        clears it.
        """
        if state.locked_until is not None:
            return state.locked_until > now
        return state.status is UserStatus.LOCKED

    def entry_guard(self, state: LockoutState, now: datetime) -> Optional[AuthFailure]:
        """
        Decide whether an attempt may proceed to the password check.

        Returns:
            ACCOUNT_DISABLED, ACCOUNT_LOCKED, or None when the attempt may go on
        """
        if state.status is UserStatus.DISABLED:
            return AuthFailure.ACCOUNT_DISABLED
        if self.is_locked(state, now):
            return AuthFailure.ACCOUNT_LOCKED
        return None

    def register_failure(self, state: LockoutState, now: datetime) -> LockoutState:
        """
        Apply one wrong password.

        The counter increments; when it reaches the threshold the account
        becomes LOCKED until ``now + duration``. A state that is already
        locked at ``now`` is returned unchanged, so a failure that races the
        lock is never counted toward it and never extends the timer.
        """
        if self.is_locked(state, now):
            return state

        attempts = state.failed_attempts + 1

        if attempts >= self._threshold:
            return LockoutState(
                status=UserStatus.LOCKED,
                failed_attempts=attempts,
                locked_until=now + self._duration,
            )

        return LockoutState(
            status=state.status,
            failed_attempts=attempts,
            locked_until=state.locked_until,
        )

    def register_success(self, state: LockoutState) -> LockoutState:
        """
        Clear the counter after a full login. Status is kept.

        A stale LOCKED status keeps its lapsed timer, otherwise it would read
        as a lock with no expiry on the next attempt.
        """
        if state.status is UserStatus.LOCKED:
            return LockoutState(status=state.status, failed_attempts=0,
                                locked_until=state.locked_until)
        return LockoutState(status=state.status, failed_attempts=0, locked_until=None)

    def unlock(self, state: LockoutState) -> LockoutState:
        """Administrative unlock. Disabled accounts are returned unchanged."""
        if state.status is UserStatus.DISABLED:
            return state
        return LockoutState(status=UserStatus.ACTIVE, failed_attempts=0, locked_until=None)

    def remaining_attempts(self, state: LockoutState) -> int:
        """Wrong passwords left before the next lock."""
        return max(0, self._threshold - state.failed_attempts)
