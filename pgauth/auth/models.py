"""
Account records used by credential verification.

The user record is owned by an external store; this module only defines
the shape the verifier reads and the lockout snapshot it writes back.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def as_utc(value: datetime) -> datetime:
    """
    Convert an aware datetime to UTC.

    Raises:
        ValueError: If ``value`` is naive, since its instant is ambiguous
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("Timestamps must be timezone-aware (UTC)")
    return value.astimezone(timezone.utc)


class UserStatus(Enum):
    """Account status. DISABLED is set and cleared by administrators only."""
    ACTIVE = "ACTIVE"
    LOCKED = "LOCKED"
    DISABLED = "DISABLED"


class UserRole(Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    VIEWER = "VIEWER"
    READ_ONLY = "READ_ONLY"


@dataclass(frozen=True)
class LockoutState:
    """Snapshot of the fields owned by the lockout policy."""
    status: UserStatus
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None


@dataclass
class User:
    """
    User record as seen by the credential verifier.

    ``mfa_backup_codes`` holds the unused recovery codes in issue order,
    stored uppercase.
    """
    id: str
    email: str
    password_hash: str
    role: UserRole = UserRole.VIEWER
    name: Optional[str] = None
    org_id: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None
    mfa_enabled: bool = False
    mfa_secret: Optional[str] = None
    mfa_backup_codes: List[str] = field(default_factory=list)
    mfa_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def lockout_state(self) -> LockoutState:
        return LockoutState(
            status=self.status,
            failed_attempts=self.failed_attempts,
            locked_until=self.locked_until,
        )

    @property
    def requires_mfa(self) -> bool:
        """True when a second factor must be checked at login."""
        return self.mfa_enabled and bool(self.mfa_secret)

    def copy(self) -> 'User':
        return replace(self, mfa_backup_codes=list(self.mfa_backup_codes))


@dataclass(frozen=True)
class Principal:
    """Authenticated identity handed to the session layer."""
    id: str
    email: str
    role: UserRole
    org_id: Optional[str]
    mfa_enabled: bool
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> 'Principal':
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            org_id=user.org_id,
            mfa_enabled=user.mfa_enabled,
            name=user.name,
        )
