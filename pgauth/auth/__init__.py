# Authentication Module
"""
Credential verification including:
- Base32 secret decoding - base32.py
- HOTP/TOTP (RFC 4226 / RFC 6238) - totp.py
- Single-use backup codes - backup_codes.py
- Account lockout policy - lockout.py
- Password hashing (Argon2id) - passwords.py
- Login orchestration - verifier.py
- MFA enrollment and admin unlock - enrollment.py, admin.py

Security features:
- Constant-time comparison for codes
- Failures raised as distinct exception types
- Atomic per-account updates for lockout counters and backup codes
"""

from .base32 import decode as decode_base32, encode as encode_base32

from .totp import (
    TOTPGenerator,
    hotp,
    totp,
    verify_totp,
    generate_secret,
    build_provisioning_uri,
)

from .backup_codes import consume as consume_backup_code, generate_backup_codes

from .lockout import LockoutPolicy

from .passwords import PasswordHasher_, hash_password, verify_password

from .models import LockoutState, Principal, User, UserRole, UserStatus

from .errors import (
    AuthFailure,
    AuthError,
    AccountDisabled,
    AccountLocked,
    MfaRequired,
    InvalidMfaToken,
    InvalidBackupCode,
    MfaEnrollmentError,
    UnknownUserError,
)

from .store import UserStore, InMemoryUserStore

from .verifier import CredentialVerifier

from .enrollment import MfaEnrollment, MfaSetup

from .admin import AccountAdministration

__all__ = [
    # Base32
    'decode_base32',
    'encode_base32',
    # TOTP
    'TOTPGenerator',
    'hotp',
    'totp',
    'verify_totp',
    'generate_secret',
    'build_provisioning_uri',
    # Backup codes
    'consume_backup_code',
    'generate_backup_codes',
    # Lockout
    'LockoutPolicy',
    # Passwords
    'PasswordHasher_',
    'hash_password',
    'verify_password',
    # Records
    'LockoutState',
    'Principal',
    'User',
    'UserRole',
    'UserStatus',
    # Errors
    'AuthFailure',
    'AuthError',
    'AccountDisabled',
    'AccountLocked',
    'MfaRequired',
    'InvalidMfaToken',
    'InvalidBackupCode',
    'MfaEnrollmentError',
    'UnknownUserError',
    # Store
    'UserStore',
    'InMemoryUserStore',
    # Orchestration
    'CredentialVerifier',
    'MfaEnrollment',
    'MfaSetup',
    'AccountAdministration',
]
