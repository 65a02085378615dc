"""Administrative account actions."""

import logging
from typing import Optional

from .errors import UnknownUserError
from .lockout import LockoutPolicy
from .models import LockoutState, UserStatus
from .store import UserStore
from ..audit.event_logger import AuditRecorder, EventType


logger = logging.getLogger(__name__)


class AccountAdministration:
    """
    Operations reserved for administrators.

    Unlock is the only path that moves a LOCKED account back to ACTIVE;
    login success clears the counters but leaves the status as stored.
    """

    def __init__(self, store: UserStore, recorder: AuditRecorder,
                 policy: Optional[LockoutPolicy] = None):
        self._store = store
        self._recorder = recorder
        self._policy = policy or LockoutPolicy()

    def unlock(self, user_id: str, actor_id: str) -> LockoutState:
        """
        Clear a lock and its failure counter.

        Args:
            user_id: Account to unlock
            actor_id: Administrator performing the unlock

        Returns:
            The new lockout state (unchanged for disabled accounts)
        """
        user = self._store.find_by_id(user_id)
        if user is None:
            raise UnknownUserError(user_id)

        state = self._store.update_lockout_state(user_id, self._policy.unlock)
        if state.status is UserStatus.DISABLED:
            logger.warning("Unlock of disabled user %s by %s ignored", user_id, actor_id)
            return state

        self._recorder.record_event(
            EventType.USER_UNLOCKED, user_id, actor_id=actor_id,
            details={'email': user.email},
        )
        logger.info("User %s unlocked by %s", user_id, actor_id)
        return state
