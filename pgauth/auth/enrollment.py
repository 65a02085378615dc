"""
MFA enrollment lifecycle.

setup -> confirm -> (regenerate backup codes)* -> disable

The secret and backup codes are stored at setup but MFA stays off until
the user proves their authenticator works by confirming one code. Until
then login ignores the pending secret.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from . import base32
from .backup_codes import generate_backup_codes
from .errors import MfaEnrollmentError, UnknownUserError
from .models import User, as_utc
from .store import UserStore
from .totp import build_provisioning_uri, generate_secret, render_qr_ascii, verify_totp
from ..audit.event_logger import AuditRecorder, EventType
from ..config import AuthSettings, get_settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MfaSetup:
    """What the user needs to configure an authenticator app."""
    secret: str
    provisioning_uri: str
    backup_codes: List[str]


class MfaEnrollment:
    """Manage TOTP enrollment for users in a store."""

    def __init__(self, store: UserStore, recorder: AuditRecorder,
                 settings: Optional[AuthSettings] = None):
        self._store = store
        self._recorder = recorder
        self._settings = settings or get_settings()

    def _user(self, user_id: str) -> User:
        user = self._store.find_by_id(user_id)
        if user is None:
            raise UnknownUserError(user_id)
        return user

    def status(self, user_id: str) -> Dict:
        user = self._user(user_id)
        return {
            'enabled': user.mfa_enabled,
            'verified_at': user.mfa_verified_at,
            'backup_codes_remaining': len(user.mfa_backup_codes),
        }

    def begin_setup(self, user_id: str) -> MfaSetup:
        """
        Create a pending secret and a fresh set of backup codes.

        Calling this again before confirming replaces the pending secret.

        Raises:
            MfaEnrollmentError: If MFA is already enabled
        """
        user = self._user(user_id)
        if user.mfa_enabled:
            raise MfaEnrollmentError("MFA is already enabled; disable it first")

        secret = base32.encode(generate_secret())
        codes = generate_backup_codes(self._settings.backup_code_count)
        self._store.update_mfa(
            user_id, mfa_secret=secret, mfa_backup_codes=codes, mfa_enabled=False,
        )

        return MfaSetup(
            secret=secret,
            provisioning_uri=build_provisioning_uri(secret, user.email, self._settings.issuer),
            backup_codes=codes,
        )

    def confirm(self, user_id: str, code: str, now: Optional[datetime] = None) -> bool:
        """
        Enable MFA once the user submits a valid code for the pending secret.

        Returns:
            True if MFA is now enabled, False if the code did not verify

        Raises:
            MfaEnrollmentError: If there is no pending secret
            ValueError: If ``now`` is a naive datetime
        """
        user = self._user(user_id)
        if not user.mfa_secret:
            raise MfaEnrollmentError("MFA not set up; run setup first")

        now = as_utc(now or datetime.now(timezone.utc))
        if not verify_totp(base32.decode(user.mfa_secret), code, now.timestamp(),
                           self._settings.totp_window):
            logger.info("MFA confirmation code rejected for user %s", user_id)
            return False

        self._store.update_mfa(user_id, mfa_enabled=True, mfa_verified_at=now)
        self._recorder.record_event(
            EventType.MFA_ENABLED, user_id, details={'email': user.email}, timestamp=now,
        )
        logger.info("MFA enabled for user %s", user_id)
        return True

    def regenerate_backup_codes(self, user_id: str) -> List[str]:
        """
        Replace all backup codes with a fresh set.

        Raises:
            MfaEnrollmentError: If MFA is not enabled
        """
        user = self._user(user_id)
        if not user.mfa_enabled:
            raise MfaEnrollmentError("MFA not enabled")

        codes = generate_backup_codes(self._settings.backup_code_count)
        self._store.update_mfa(user_id, mfa_backup_codes=codes)
        self._recorder.record_event(
            EventType.MFA_BACKUP_CODES_REGENERATED, user_id,
            details={'email': user.email, 'count': len(codes)},
        )
        return codes

    def disable(self, user_id: str, code: Optional[str] = None,
                now: Optional[datetime] = None) -> None:
        """
        Turn MFA off and discard the secret and backup codes.

        When MFA is active and a code is given it must verify.

        Raises:
            MfaEnrollmentError: If the supplied code is invalid
            ValueError: If ``now`` is a naive datetime
        """
        user = self._user(user_id)
        now = as_utc(now or datetime.now(timezone.utc))

        if user.requires_mfa and code is not None:
            if not verify_totp(base32.decode(user.mfa_secret), code, now.timestamp(),
                               self._settings.totp_window):
                raise MfaEnrollmentError("Invalid token")

        self._store.update_mfa(
            user_id, mfa_enabled=False, mfa_secret=None,
            mfa_backup_codes=[], mfa_verified_at=None,
        )
        self._recorder.record_event(
            EventType.MFA_DISABLED, user_id, details={'email': user.email}, timestamp=now,
        )
        logger.info("MFA disabled for user %s", user_id)

    def qr_code(self, user_id: str) -> str:
        """
        ASCII QR code of the provisioning URI for the stored secret.

        Raises:
            MfaEnrollmentError: If no secret is stored
        """
        user = self._user(user_id)
        if not user.mfa_secret:
            raise MfaEnrollmentError("MFA not set up; run setup first")
        uri = build_provisioning_uri(user.mfa_secret, user.email, self._settings.issuer)
        return render_qr_ascii(uri)
