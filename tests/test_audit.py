"""
Unit tests for the audit trail.

Tests:
- Hash-chained ledger
- Tamper detection on import
- LoginAttempt / AuditEvent recording
- Fail-open writes
"""

import json
import logging
from dataclasses import replace

import pytest

from pgauth.audit import (
    AuditEvent, AuditLedger, AuditRecorder, EventType, LedgerIntegrityError,
    LoginAttempt, get_subject_hash,
)
from pgauth.audit.ledger import GENESIS_PREV_HASH, compute_entry_hash

from tests.factories import T0


class TestAuditLedger:
    """Tests for the append-only hash chain."""

    def test_empty_ledger(self):
        ledger = AuditLedger()
        assert len(ledger) == 0
        assert ledger.head_hash == GENESIS_PREV_HASH
        assert ledger.verify_integrity()

    def test_entries_are_chained(self):
        ledger = AuditLedger()
        first = ledger.append("login_attempt", {"n": 1})
        second = ledger.append("login_attempt", {"n": 2})

        assert first.sequence == 0
        assert first.prev_hash == GENESIS_PREV_HASH
        assert second.prev_hash == first.hash
        assert second.hash == compute_entry_hash(first.hash, second.body)
        assert ledger.head_hash == second.hash
        assert ledger.verify_integrity()

    def test_entry_data(self):
        ledger = AuditLedger()
        entry = ledger.append("audit_event", {"action": "MFA_ENABLED"})
        assert entry.data == {"action": "MFA_ENABLED"}

    def test_filter_by_kind(self):
        ledger = AuditLedger()
        ledger.append("login_attempt", {})
        ledger.append("audit_event", {})
        ledger.append("login_attempt", {})
        assert len(ledger.entries("login_attempt")) == 2
        assert len(ledger.entries()) == 3

    def test_entries_view_is_read_only(self):
        ledger = AuditLedger()
        ledger.append("login_attempt", {})
        assert isinstance(ledger.entries(), tuple)
        with pytest.raises(AttributeError):
            ledger.entries()[0].body = "{}"

    def test_export_import(self):
        ledger = AuditLedger()
        for n in range(3):
            ledger.append("login_attempt", {"n": n})

        restored = AuditLedger.from_json(ledger.to_json())
        assert restored.entries() == ledger.entries()
        assert restored.verify_integrity()

    def test_tampered_body_rejected_on_import(self):
        """Editing a sealed record breaks the chain."""
        ledger = AuditLedger()
        ledger.append("login_attempt", {"success": False, "reason": "Invalid password"})
        ledger.append("login_attempt", {"success": True, "reason": None})

        exported = json.loads(ledger.to_json())
        exported["entries"][0]["body"] = exported["entries"][0]["body"].replace("false", "true")

        with pytest.raises(LedgerIntegrityError, match="hash mismatch"):
            AuditLedger.from_json(json.dumps(exported))

    def test_removed_entry_rejected(self):
        ledger = AuditLedger()
        for n in range(3):
            ledger.append("login_attempt", {"n": n})
        entries = list(ledger.entries())
        del entries[1]
        with pytest.raises(LedgerIntegrityError):
            AuditLedger(entries)

    def test_rehashed_entry_breaks_next_link(self):
        """Resealing an edited entry still breaks the link after it."""
        ledger = AuditLedger()
        ledger.append("login_attempt", {"n": 0})
        ledger.append("login_attempt", {"n": 1})
        first, second = ledger.entries()

        body = first.body.replace('"n":0', '"n":9')
        forged = replace(first, body=body, hash=compute_entry_hash(first.prev_hash, body))

        with pytest.raises(LedgerIntegrityError, match="broken link"):
            AuditLedger([forged, second])

    def test_relabelled_kind_rejected(self):
        ledger = AuditLedger()
        ledger.append("login_attempt", {})
        entry = replace(ledger.entries()[0], kind="audit_event")
        with pytest.raises(LedgerIntegrityError, match="header"):
            AuditLedger([entry])


class TestAuditRecorder:
    """Tests for LoginAttempt and AuditEvent recording."""

    def test_record_attempt(self):
        recorder = AuditRecorder(clock=lambda: T0)
        attempt = recorder.record("user-1", False, reason="Invalid password",
                                  subject_hash=get_subject_hash("alice@example.com"))

        assert isinstance(attempt, LoginAttempt)
        assert attempt.timestamp == T0
        assert attempt.sequence == 0
        assert attempt.hash == recorder.ledger.head_hash
        assert recorder.login_attempts() == (attempt,)

    def test_failure_requires_reason(self):
        recorder = AuditRecorder()
        with pytest.raises(ValueError):
            recorder.record("user-1", False)

    def test_filter_attempts_by_user(self):
        recorder = AuditRecorder(clock=lambda: T0)
        recorder.record("user-1", True)
        recorder.record(None, False, reason="Unknown email")
        recorder.record("user-2", True)
        recorder.record("user-1", False, reason="Invalid password")

        assert [a.reason for a in recorder.login_attempts("user-1")] == [None, "Invalid password"]
        assert len(recorder.login_attempts()) == 4

    def test_record_event(self):
        recorder = AuditRecorder(clock=lambda: T0)
        event = recorder.record_event(EventType.USER_UNLOCKED, "user-1", actor_id="admin-1",
                                      details={"email": "alice@example.com"})

        assert isinstance(event, AuditEvent)
        assert event.actor_id == "admin-1"
        assert event.entity_id == "user-1"
        assert event.details == {"email": "alice@example.com"}
        assert recorder.events(EventType.USER_UNLOCKED) == (event,)
        assert recorder.events(EventType.MFA_ENABLED) == ()
        assert "USER_UNLOCKED" in str(event)

    def test_actor_defaults_to_entity(self):
        recorder = AuditRecorder(clock=lambda: T0)
        event = recorder.record_event(EventType.MFA_ENABLED, "user-1")
        assert event.actor_id == "user-1"

    def test_attempts_and_events_share_chain(self):
        recorder = AuditRecorder(clock=lambda: T0)
        recorder.record("user-1", True, mfa_used=True)
        recorder.record_event(EventType.MFA_BACKUP_CODE_USED, "user-1", details={"remaining_codes": 9})
        recorder.record("user-1", True)

        assert len(recorder.ledger) == 3
        assert len(recorder.login_attempts()) == 2
        assert len(recorder.events()) == 1
        assert recorder.verify_integrity()

    def test_subject_hash(self):
        digest = get_subject_hash("alice@example.com")
        assert len(digest) == 16
        assert digest == get_subject_hash("alice@example.com")
        assert digest != get_subject_hash("Alice@example.com")

    def test_callbacks(self):
        recorder = AuditRecorder(clock=lambda: T0)
        seen = []
        recorder.add_callback(seen.append)
        recorder.record("user-1", True)
        recorder.record_event(EventType.MFA_DISABLED, "user-1")
        assert [type(r) for r in seen] == [LoginAttempt, AuditEvent]

    def test_failing_callback_is_logged(self, caplog):
        def explode(record):
            raise RuntimeError("sink down")

        recorder = AuditRecorder(clock=lambda: T0)
        recorder.add_callback(explode)
        with caplog.at_level(logging.ERROR, logger="pgauth.audit.event_logger"):
            attempt = recorder.record("user-1", True)

        assert attempt is not None
        assert len(recorder.ledger) == 1
        assert any("callback" in r.getMessage() for r in caplog.records)


class TestFailOpen:
    """A broken audit store never raises into the caller."""

    class BrokenLedger(AuditLedger):
        def append(self, kind, data):
            raise OSError("audit store unavailable")

    def test_record_returns_none(self, caplog):
        recorder = AuditRecorder(ledger=self.BrokenLedger(), clock=lambda: T0)
        with caplog.at_level(logging.ERROR, logger="pgauth.audit.event_logger"):
            assert recorder.record("user-1", False, reason="Invalid password") is None
            assert recorder.record_event(EventType.MFA_ENABLED, "user-1") is None

        assert len(caplog.records) == 2
        assert all(r.exc_info for r in caplog.records)

    def test_unserializable_payload(self, caplog):
        """Serialization errors are also contained."""
        class Exploding:
            def __str__(self):
                raise RuntimeError("cannot render")

        recorder = AuditRecorder(clock=lambda: T0)
        with caplog.at_level(logging.ERROR, logger="pgauth.audit.event_logger"):
            event = recorder.record_event(EventType.MFA_ENABLED, "user-1", details={"x": Exploding()})
        assert event is None
        assert len(recorder.ledger) == 0
