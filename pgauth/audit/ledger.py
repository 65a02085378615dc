"""
Audit Ledger Module

Append-only, hash-chained store for audit records.

Security features:
- Immutable entries (frozen dataclass, JSON body stored as text)
- SHA-256 chaining: each entry commits to the hash of the one before it
- Full chain validation on demand and on import

Entries are never updated or removed; the only write operation is
``append``.
"""

import hashlib
import json
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


# ============================================================================
# Constants
# ============================================================================

GENESIS_PREV_HASH = "0" * 64
LEDGER_VERSION = "1.0"


class LedgerIntegrityError(Exception):
    """Raised when the hash chain does not verify."""


def canonical_json(data: Dict[str, Any]) -> str:
    """Deterministic compact JSON used as the hashed body."""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), default=str)


def compute_entry_hash(prev_hash: str, body: str) -> str:
    """SHA-256 over the previous hash followed by the entry body."""
    return hashlib.sha256((prev_hash + body).encode('utf-8')).hexdigest()


# ============================================================================
# Entry Structure (Immutable)
# ============================================================================

@dataclass(frozen=True)
class LedgerEntry:
    """One sealed audit entry."""
    sequence: int
    kind: str
    body: str
    prev_hash: str
    hash: str

    @property
    def data(self) -> Dict[str, Any]:
        """Decoded payload."""
        return json.loads(self.body)['data']

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sequence': self.sequence,
            'kind': self.kind,
            'body': self.body,
            'prev_hash': self.prev_hash,
            'hash': self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerEntry':
        return cls(
            sequence=data['sequence'],
            kind=data['kind'],
            body=data['body'],
            prev_hash=data['prev_hash'],
            hash=data['hash'],
        )


# ============================================================================
# Ledger
# ============================================================================

class AuditLedger:
    """
    Append-only audit store.

    Example:
        >>> ledger = AuditLedger()
        >>> entry = ledger.append("login_attempt", {"success": True})
        >>> ledger.verify_integrity()
        True
    """

    def __init__(self, entries: Optional[List[LedgerEntry]] = None):
        self._entries: List[LedgerEntry] = list(entries or [])
        self._lock = threading.Lock()
        if self._entries:
            self.validate_chain()

    @property
    def length(self) -> int:
        return len(self._entries)

    @property
    def head_hash(self) -> str:
        """Hash of the newest entry, or the genesis value when empty."""
        return self._entries[-1].hash if self._entries else GENESIS_PREV_HASH

    def append(self, kind: str, data: Dict[str, Any]) -> LedgerEntry:
        """
        Seal and append a record.

        Args:
            kind: Record type tag
            data: JSON-serializable payload

        Returns:
            The sealed entry
        """
        with self._lock:
            sequence = len(self._entries)
            prev_hash = self.head_hash
            body = canonical_json({
                'version': LEDGER_VERSION,
                'seq': sequence,
                'kind': kind,
                'data': data,
            })
            entry = LedgerEntry(
                sequence=sequence,
                kind=kind,
                body=body,
                prev_hash=prev_hash,
                hash=compute_entry_hash(prev_hash, body),
            )
            self._entries.append(entry)
            return entry

    def entries(self, kind: Optional[str] = None) -> Tuple[LedgerEntry, ...]:
        """Read-only view of the entries, optionally filtered by kind."""
        with self._lock:
            snapshot = tuple(self._entries)
        if kind is None:
            return snapshot
        return tuple(e for e in snapshot if e.kind == kind)

    def validate_chain(self) -> None:
        """
        Recompute the whole chain.

        Raises:
            LedgerIntegrityError: On the first entry that does not verify
        """
        prev_hash = GENESIS_PREV_HASH
        for position, entry in enumerate(self._entries):
            if entry.sequence != position:
                raise LedgerIntegrityError(
                    f"Entry {position}: sequence {entry.sequence} out of order"
                )
            if entry.prev_hash != prev_hash:
                raise LedgerIntegrityError(f"Entry {position}: broken link")
            if compute_entry_hash(prev_hash, entry.body) != entry.hash:
                raise LedgerIntegrityError(f"Entry {position}: hash mismatch")
            body = json.loads(entry.body)
            if body.get('seq') != entry.sequence or body.get('kind') != entry.kind:
                raise LedgerIntegrityError(f"Entry {position}: header does not match body")
            prev_hash = entry.hash

    def verify_integrity(self) -> bool:
        """True when the chain validates."""
        try:
            self.validate_chain()
        except LedgerIntegrityError:
            return False
        return True

    def to_json(self) -> str:
        return json.dumps({
            'version': LEDGER_VERSION,
            'entries': [e.to_dict() for e in self.entries()],
        }, indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'AuditLedger':
        """
        Load an exported ledger.

        Raises:
            LedgerIntegrityError: If the imported chain does not verify
        """
        data = json.loads(json_str)
        return cls([LedgerEntry.from_dict(e) for e in data['entries']])

    def __len__(self) -> int:
        return self.length
