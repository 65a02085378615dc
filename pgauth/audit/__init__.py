# Audit Module
"""
Append-only audit trail for authentication.

Login attempts and account lifecycle events are sealed into a SHA-256
hash chain; emails are stored only as short hashes.
"""

from .ledger import AuditLedger, LedgerEntry, LedgerIntegrityError
from .event_logger import (
    AuditEvent,
    AuditRecorder,
    EventType,
    LoginAttempt,
    get_subject_hash,
)

__all__ = [
    'AuditLedger',
    'LedgerEntry',
    'LedgerIntegrityError',
    'AuditEvent',
    'AuditRecorder',
    'EventType',
    'LoginAttempt',
    'get_subject_hash',
]
