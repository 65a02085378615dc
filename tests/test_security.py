"""
Security tests for pgauth.

Tests specifically for security-related scenarios:
- Brute force against passwords and codes
- Replay of backup codes
- Malformed input
- Concurrent attempts
"""

import threading
from datetime import timedelta

import pytest

from pgauth.auth import base32
from pgauth.auth.errors import (
    AccountLocked, AuthError, InvalidBackupCode, InvalidMfaToken, MfaRequired,
)
from pgauth.auth.models import UserStatus
from pgauth.auth.totp import totp, verify_totp

from tests.factories import MFA_SECRET, PASSWORD, T0, make_mfa_user, make_user


class TestBruteForce:
    """Password guessing is capped by the lockout."""

    def test_correct_password_after_lock_rejected(self, store, verifier):
        """A guess that lands after the lock is refused even if right."""
        store.add(make_user())
        for i in range(5):
            verifier.authorize("alice@example.com", f"guess-{i}")

        with pytest.raises(AccountLocked):
            verifier.authorize("alice@example.com", PASSWORD, now=T0 + timedelta(minutes=1))

    def test_lock_lapses_after_duration(self, store, verifier):
        store.add(make_user())
        for i in range(5):
            verifier.authorize("alice@example.com", f"guess-{i}")

        later = T0 + timedelta(minutes=30)
        assert verifier.authorize("alice@example.com", PASSWORD, now=later) is not None

    def test_wrong_totp_does_not_lock(self, store, verifier):
        """Wrong second factors are audited but never count toward lockout."""
        store.add(make_mfa_user())
        secret = base32.decode(MFA_SECRET)
        window = {totp(secret, T0.timestamp() + s) for s in (-30, 0, 30)}
        wrong = [c for c in ("000000", "111111", "222222", "333333", "444444",
                             "555555", "666666", "777777") if c not in window][:6]

        for code in wrong:
            with pytest.raises(InvalidMfaToken):
                verifier.authorize("alice@example.com", PASSWORD, mfa_code=code)

        user = store.find_by_id("user-1")
        assert user.status is UserStatus.ACTIVE
        assert user.failed_attempts == 0

    def test_unknown_emails_do_not_lock_anyone(self, store, verifier):
        store.add(make_user())
        for i in range(10):
            assert verifier.authorize(f"user{i}@example.com", PASSWORD) is None
        assert store.find_by_id("user-1").failed_attempts == 0

    def test_mfa_required_does_not_count(self, store, verifier):
        store.add(make_mfa_user())
        for _ in range(6):
            with pytest.raises(MfaRequired):
                verifier.authorize("alice@example.com", PASSWORD)
        assert store.find_by_id("user-1").status is UserStatus.ACTIVE


class TestBackupCodeReplay:
    """Backup codes are single use."""

    def test_replay_rejected(self, store, verifier):
        store.add(make_mfa_user())
        verifier.authorize("alice@example.com", PASSWORD, backup_code="A1B2C3D4")
        with pytest.raises(InvalidBackupCode):
            verifier.authorize("alice@example.com", PASSWORD, backup_code="A1B2C3D4")

    def test_exhausted_codes(self, store, verifier):
        store.add(make_mfa_user())
        for code in ("A1B2C3D4", "0F0F0F0F", "DEADBEEF"):
            assert verifier.authorize("alice@example.com", PASSWORD, backup_code=code) is not None
        with pytest.raises(InvalidBackupCode):
            verifier.authorize("alice@example.com", PASSWORD, backup_code="A1B2C3D4")

    def test_concurrent_spend_single_winner(self, store, verifier):
        """Two racing logins with the same code: exactly one succeeds."""
        store.add(make_mfa_user())
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def attempt():
            barrier.wait()
            try:
                verifier.authorize("alice@example.com", PASSWORD, backup_code="DEADBEEF")
                result = "ok"
            except InvalidBackupCode:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7
        assert "DEADBEEF" not in store.find_by_id("user-1").mfa_backup_codes


class TestConcurrentLockout:
    """Concurrent wrong passwords are all counted."""

    def test_parallel_failures(self, store, verifier):
        store.add(make_user())
        barrier = threading.Barrier(12)

        def guess():
            barrier.wait()
            try:
                verifier.authorize("alice@example.com", "wrong")
            except AccountLocked:
                pass

        threads = [threading.Thread(target=guess) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        user = store.find_by_id("user-1")
        assert user.status is UserStatus.LOCKED
        assert user.failed_attempts >= 5


class TestMalformedInput:
    """Malformed codes are rejected without raising."""

    @pytest.mark.parametrize("code", [
        "", "12345", "1234567", "12 34 5", "12345a", "abcdef",
        "١٢٣٤٥٦",  # Arabic-Indic digits
        "１２３４５６",  # full-width digits
    ])
    def test_bad_totp_rejected(self, code):
        assert not verify_totp(base32.decode(MFA_SECRET), code, T0.timestamp())

    @pytest.mark.parametrize("code", ["١٢٣٤٥٦", "0000000", "x" * 1000])
    def test_bad_totp_through_verifier(self, store, verifier, code):
        store.add(make_mfa_user())
        with pytest.raises(InvalidMfaToken):
            verifier.authorize("alice@example.com", PASSWORD, mfa_code=code)

    @pytest.mark.parametrize("code", ["DEADBEE", "DEADBEEF0", "DEADBEEÉ", " "])
    def test_bad_backup_code_rejected(self, store, verifier, code):
        store.add(make_mfa_user())
        with pytest.raises(InvalidBackupCode):
            verifier.authorize("alice@example.com", PASSWORD, backup_code=code)
        assert len(store.find_by_id("user-1").mfa_backup_codes) == 3

    def test_garbage_secret_does_not_raise(self, store, verifier):
        """A corrupt stored secret fails the code check instead of crashing."""
        store.add(make_mfa_user(mfa_secret="!!!!"))
        with pytest.raises(InvalidMfaToken):
            verifier.authorize("alice@example.com", PASSWORD, mfa_code="123456")

    def test_failures_share_base_class(self, store, verifier):
        store.add(make_user(status=UserStatus.DISABLED))
        with pytest.raises(AuthError):
            verifier.authorize("alice@example.com", PASSWORD)

    def test_error_message_has_no_secret(self, store, verifier):
        store.add(make_mfa_user())
        with pytest.raises(MfaRequired) as excinfo:
            verifier.authorize("alice@example.com", PASSWORD)
        assert PASSWORD not in str(excinfo.value)
        assert MFA_SECRET not in str(excinfo.value)
