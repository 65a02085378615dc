"""
User record store.

The verifier never writes lockout or backup-code fields directly. It hands
the store a transition function and the store applies it to the current
value while holding whatever per-account guarantee it has (row lock,
transaction, compare-and-swap). Two concurrent wrong passwords therefore
both count, and one backup code cannot be spent twice.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import UnknownUserError
from .models import LockoutState, User


logger = logging.getLogger(__name__)

LockoutTransition = Callable[[LockoutState], LockoutState]
BackupCodeTransition = Callable[[List[str]], Tuple[bool, List[str]]]

_MFA_FIELDS = frozenset({'mfa_enabled', 'mfa_secret', 'mfa_backup_codes', 'mfa_verified_at'})


class UserStore(ABC):
    """Interface the credential verifier consumes."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def update_lockout_state(self, user_id: str, mutate: LockoutTransition) -> LockoutState:
        """Atomically replace the lockout fields with ``mutate(current)``."""
        raise NotImplementedError

    @abstractmethod
    def update_backup_codes(self, user_id: str, mutate: BackupCodeTransition) -> bool:
        """Atomically apply ``mutate(current) -> (matched, remaining)`` and persist ``remaining``."""
        raise NotImplementedError

    @abstractmethod
    def touch_last_login(self, user_id: str, when: datetime) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_mfa(self, user_id: str, **fields) -> User:
        """Set MFA enrollment fields (used by enrollment, never by login)."""
        raise NotImplementedError


class InMemoryUserStore(UserStore):
    """
    Dict-backed store with one lock per account.

    Reads return copies so callers cannot mutate stored records behind
    the store's back.
    """

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._users: Dict[str, User] = {}
        self._by_email: Dict[str, str] = {}
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()
        for user in users or ():
            self.add(user)

    def add(self, user: User) -> None:
        """Provision a user (test and demo helper)."""
        with self._registry_lock:
            if user.email in self._by_email:
                raise ValueError(f"Email already registered: {user.email}")
            self._users[user.id] = user.copy()
            self._by_email[user.email] = user.id

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks[user_id]

    def _get(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UnknownUserError(user_id)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        user_id = self._by_email.get(email)
        if user_id is None:
            return None
        with self._lock_for(user_id):
            return self._get(user_id).copy()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if user_id not in self._users:
            return None
        with self._lock_for(user_id):
            return self._get(user_id).copy()

    def update_lockout_state(self, user_id: str, mutate: LockoutTransition) -> LockoutState:
        with self._lock_for(user_id):
            user = self._get(user_id)
            new_state = mutate(user.lockout_state)
            user.status = new_state.status
            user.failed_attempts = new_state.failed_attempts
            user.locked_until = new_state.locked_until
            return new_state

    def update_backup_codes(self, user_id: str, mutate: BackupCodeTransition) -> bool:
        with self._lock_for(user_id):
            user = self._get(user_id)
            matched, remaining = mutate(list(user.mfa_backup_codes))
            user.mfa_backup_codes = list(remaining)
            return matched

    def touch_last_login(self, user_id: str, when: datetime) -> None:
        with self._lock_for(user_id):
            self._get(user_id).last_login_at = when

    def update_mfa(self, user_id: str, **fields) -> User:
        unknown = set(fields) - _MFA_FIELDS
        if unknown:
            raise TypeError(f"Not MFA fields: {', '.join(sorted(unknown))}")
        with self._lock_for(user_id):
            user = self._get(user_id)
            for name, value in fields.items():
                if name == 'mfa_backup_codes':
                    value = list(value)
                setattr(user, name, value)
            logger.debug("MFA fields updated for user %s: %s", user_id, sorted(fields))
            return user.copy()

    def __len__(self) -> int:
        return len(self._users)
