"""
Single-use MFA recovery codes.

Codes are stored uppercase in issue order. Consuming a code removes
exactly one entry; nothing here ever adds codes back.
"""

import hmac
import secrets
from typing import List, Optional, Sequence, Tuple


BACKUP_CODE_BYTES = 4  # 8 hex characters
DEFAULT_BACKUP_CODE_COUNT = 10


def normalize(code: str) -> str:
    """Canonical form used for storage and comparison."""
    return code.strip().upper()


def generate_backup_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> List[str]:
    """
    Generate a fresh set of recovery codes.

    Args:
        count: Number of codes to issue

    Returns:
        List of 8-character uppercase hex codes
    """
    return [secrets.token_hex(BACKUP_CODE_BYTES).upper() for _ in range(count)]


def find_code(codes: Sequence[str], submitted: str) -> Optional[int]:
    """Index of the first stored code equal to ``submitted``, if any."""
    candidate = normalize(submitted).encode()
    for index, stored in enumerate(codes):
        if hmac.compare_digest(stored.encode(), candidate):
            return index
    return None


def consume(codes: Sequence[str], submitted: str) -> Tuple[bool, List[str]]:
    """
    Match and remove a recovery code.

    Args:
        codes: Unused codes, uppercase, in issue order
        submitted: Code typed by the user (any case)

    Returns:
        (matched, remaining). On a miss ``remaining`` is an unchanged copy
        of ``codes``.
    """
    remaining = list(codes)
    if not submitted:
        return False, remaining

    index = find_code(remaining, submitted)
    if index is None:
        return False, remaining

    del remaining[index]
    return True, remaining
