"""Shared fixtures for the pgauth tests."""

import pytest

from pgauth.audit.event_logger import AuditRecorder
from pgauth.auth.store import InMemoryUserStore
from pgauth.auth.verifier import CredentialVerifier
from pgauth.config import AuthSettings

from tests.factories import FAST_HASHER, T0


@pytest.fixture
def settings():
    return AuthSettings(
        lockout_threshold=5,
        lockout_duration_minutes=30,
        totp_window=1,
        backup_code_count=10,
    )


@pytest.fixture
def store():
    return InMemoryUserStore()


@pytest.fixture
def recorder():
    return AuditRecorder(clock=lambda: T0)


@pytest.fixture
def verifier(store, recorder, settings):
    return CredentialVerifier(
        store,
        recorder,
        settings=settings,
        password_verifier=FAST_HASHER.verify_password,
        clock=lambda: T0,
    )
