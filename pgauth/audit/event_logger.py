"""
Audit Recorder

Records one LoginAttempt per authentication outcome and one AuditEvent
per MFA lifecycle or administrative action, on top of the hash-chained
AuditLedger.

Writing is fail-open: if the ledger cannot be written the error is logged
with its traceback and the caller's outcome stands. An authentication
decision is never changed by an audit failure.

Emails are never stored; attempts carry a short SHA-256 subject hash so
repeated attempts against the same address can still be correlated.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .ledger import AuditLedger, LedgerEntry


logger = logging.getLogger(__name__)

LOGIN_ATTEMPT_KIND = "login_attempt"
AUDIT_EVENT_KIND = "audit_event"


# ============================================================================
# Privacy Functions
# ============================================================================

def get_subject_hash(email: str) -> str:
    """
    Privacy-preserving identifier for a submitted email.

    Returns:
        First 16 hex characters of SHA-256(email)
    """
    return hashlib.sha256(email.encode('utf-8')).hexdigest()[:16]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Record Types
# ============================================================================

class EventType(Enum):
    """Account lifecycle actions written alongside login attempts."""
    MFA_ENABLED = "MFA_ENABLED"
    MFA_DISABLED = "MFA_DISABLED"
    MFA_BACKUP_CODES_REGENERATED = "MFA_BACKUP_CODES_REGENERATED"
    MFA_BACKUP_CODE_USED = "MFA_BACKUP_CODE_USED"
    USER_UNLOCKED = "USER_UNLOCKED"


@dataclass(frozen=True)
class LoginAttempt:
    """
    One authentication attempt.

    ``sequence`` and ``hash`` are filled in from the ledger entry when the
    record is read back.
    """
    user_id: Optional[str]
    success: bool
    reason: Optional[str]
    mfa_used: bool
    timestamp: datetime
    subject_hash: Optional[str] = None
    sequence: Optional[int] = None
    hash: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'success': self.success,
            'reason': self.reason,
            'mfa_used': self.mfa_used,
            'timestamp': self.timestamp.isoformat(),
            'subject': self.subject_hash,
        }

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> 'LoginAttempt':
        data = entry.data
        return cls(
            user_id=data['user_id'],
            success=data['success'],
            reason=data['reason'],
            mfa_used=data['mfa_used'],
            timestamp=datetime.fromisoformat(data['timestamp']),
            subject_hash=data.get('subject'),
            sequence=entry.sequence,
            hash=entry.hash,
        )


@dataclass(frozen=True)
class AuditEvent:
    """An administrative or MFA lifecycle action."""
    event_type: EventType
    actor_id: Optional[str]
    entity_id: str
    timestamp: datetime
    details: Dict[str, Any] = field(default_factory=dict)
    sequence: Optional[int] = None
    hash: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            'action': self.event_type.value,
            'actor_id': self.actor_id,
            'entity_type': 'User',
            'entity_id': self.entity_id,
            'timestamp': self.timestamp.isoformat(),
            'details': self.details,
        }

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> 'AuditEvent':
        data = entry.data
        return cls(
            event_type=EventType(data['action']),
            actor_id=data['actor_id'],
            entity_id=data['entity_id'],
            timestamp=datetime.fromisoformat(data['timestamp']),
            details=data.get('details', {}),
            sequence=entry.sequence,
            hash=entry.hash,
        )

    def __str__(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.event_type.value} | user:{self.entity_id}"


# ============================================================================
# Recorder
# ============================================================================

class AuditRecorder:
    """
    Append-only audit trail for authentication.

    Args:
        ledger: Backing store (a fresh in-memory ledger if omitted)
        clock: Source of timestamps for records that do not pass one
    """

    def __init__(self, ledger: Optional[AuditLedger] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self._ledger = ledger if ledger is not None else AuditLedger()
        self._clock = clock
        self._callbacks: List[Callable[[Any], None]] = []

    @property
    def ledger(self) -> AuditLedger:
        return self._ledger

    def add_callback(self, callback: Callable[[Any], None]) -> None:
        """Call ``callback(record)`` after every successful write."""
        self._callbacks.append(callback)

    def _write(self, kind: str, record):
        try:
            entry = self._ledger.append(kind, record.to_payload())
        except Exception:
            logger.exception("Audit write failed (%s); continuing without audit record", kind)
            return None

        for callback in self._callbacks:
            try:
                callback(record)
            except Exception:
                logger.exception("Audit callback %r failed", callback)

        return entry

    def record(self, user_id: Optional[str], success: bool,
               reason: Optional[str] = None, mfa_used: bool = False,
               subject_hash: Optional[str] = None,
               timestamp: Optional[datetime] = None) -> Optional[LoginAttempt]:
        """
        Append one login attempt.

        Args:
            user_id: Account the attempt resolved to, None for unknown emails
            success: Whether the attempt fully authenticated
            reason: Why it failed (required when success is False)
            mfa_used: Whether a second factor was checked
            subject_hash: Hash of the submitted email
            timestamp: Attempt time (clock time if omitted)

        Returns:
            The sealed record, or None if the ledger write failed
        """
        if not success and not reason:
            raise ValueError("A failed attempt must carry a reason")

        attempt = LoginAttempt(
            user_id=user_id,
            success=success,
            reason=reason,
            mfa_used=mfa_used,
            timestamp=timestamp or self._clock(),
            subject_hash=subject_hash,
        )
        entry = self._write(LOGIN_ATTEMPT_KIND, attempt)
        if entry is None:
            return None
        return LoginAttempt.from_entry(entry)

    def record_event(self, event_type: EventType, entity_id: str,
                     actor_id: Optional[str] = None,
                     details: Optional[Dict[str, Any]] = None,
                     timestamp: Optional[datetime] = None) -> Optional[AuditEvent]:
        """Append one lifecycle event. Returns None if the write failed."""
        event = AuditEvent(
            event_type=event_type,
            actor_id=actor_id if actor_id is not None else entity_id,
            entity_id=entity_id,
            timestamp=timestamp or self._clock(),
            details=dict(details or {}),
        )
        entry = self._write(AUDIT_EVENT_KIND, event)
        if entry is None:
            return None
        return AuditEvent.from_entry(entry)

    # ========================================================================
    # Retrieval
    # ========================================================================

    def login_attempts(self, user_id: Optional[str] = None) -> Tuple[LoginAttempt, ...]:
        """All login attempts, or only those for ``user_id``."""
        attempts = (LoginAttempt.from_entry(e) for e in self._ledger.entries(LOGIN_ATTEMPT_KIND))
        if user_id is None:
            return tuple(attempts)
        return tuple(a for a in attempts if a.user_id == user_id)

    def events(self, event_type: Optional[EventType] = None) -> Tuple[AuditEvent, ...]:
        events = (AuditEvent.from_entry(e) for e in self._ledger.entries(AUDIT_EVENT_KIND))
        if event_type is None:
            return tuple(events)
        return tuple(e for e in events if e.event_type is event_type)

    def verify_integrity(self) -> bool:
        return self._ledger.verify_integrity()
