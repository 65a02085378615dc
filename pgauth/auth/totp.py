"""
TOTP (Time-based One-Time Password) Implementation

Implements RFC 4226 HOTP and RFC 6238 TOTP for the second login factor.

Fixed profile (what Google Authenticator, Authy and Microsoft
Authenticator use by default):
- HMAC-SHA1
- 6 digits
- 30 second time step
- +/- 1 step of clock drift accepted at login

Time is always passed in by the caller; nothing in this module samples
the wall clock.
"""

import hmac
import hashlib
import io
import secrets
import struct
from typing import Union
from urllib.parse import quote

import qrcode
from qrcode.constants import ERROR_CORRECT_L

from . import base32
from ..config import TOTP_DIGITS, TOTP_TIME_STEP


TOTP_SECRET_BYTES = 20    # 160 bits, the SHA-1 block-friendly size
TOTP_DRIFT_TOLERANCE = 1  # Accept codes from +/- this many time steps

Timestamp = Union[int, float]


def generate_secret(length: int = TOTP_SECRET_BYTES) -> bytes:
    """Generate a random shared secret."""
    return secrets.token_bytes(length)


def get_time_counter(timestamp: Timestamp, time_step: int = TOTP_TIME_STEP) -> int:
    """
    Get the TOTP counter for a Unix timestamp.

    Args:
        timestamp: Unix time in seconds
        time_step: Time step in seconds

    Returns:
        floor(timestamp / time_step)
    """
    return int(timestamp // time_step)


def hotp(secret: bytes, counter: int) -> str:
    """
    Generate an HOTP value (RFC 4226).

    Args:
        secret: Shared secret key
        counter: Counter value, 0 <= counter < 2**64

    Returns:
        6-digit code, zero padded
    """
    # Pack counter as 8-byte big-endian integer
    counter_bytes = struct.pack('>Q', counter)

    mac = hmac.new(secret, counter_bytes, hashlib.sha1).digest()

    # Dynamic truncation: low nibble of the last byte selects 4 bytes
    offset = mac[19] & 0x0F
    binary = struct.unpack('>I', mac[offset:offset + 4])[0] & 0x7FFFFFFF

    return str(binary % (10 ** TOTP_DIGITS)).zfill(TOTP_DIGITS)


def totp(secret: bytes, timestamp: Timestamp) -> str:
    """
    Generate the TOTP value for a point in time (RFC 6238).

    Args:
        secret: Shared secret key
        timestamp: Unix time in seconds

    Returns:
        6-digit code for the step containing ``timestamp``
    """
    return hotp(secret, get_time_counter(timestamp))


def verify_totp(secret: bytes, code: str, timestamp: Timestamp,
                window: int = TOTP_DRIFT_TOLERANCE) -> bool:
    """
    Verify a TOTP code with drift tolerance.

    The code is accepted if it equals the HOTP value of any counter in
    ``[T - window, T + window]`` where T is the counter for ``timestamp``.
    Codes are compared as zero-padded strings, never as integers. Spaces
    are removed first so a code copied in the "123 456" display form still
    matches; nothing else is normalized. Used codes are not remembered, so
    a code stays valid for its whole window.

    Args:
        secret: Shared secret key
        code: Code submitted by the user
        timestamp: Unix time in seconds
        window: Number of time steps to check in each direction

    Returns:
        True if code is valid
    """
    if code is None:
        return False

    # Authenticator apps display codes as "123 456"
    code = str(code).replace(' ', '').strip()
    if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
        return False

    current_counter = get_time_counter(timestamp)

    for offset in range(-window, window + 1):
        counter = current_counter + offset
        if counter < 0:
            continue
        if hmac.compare_digest(code, hotp(secret, counter)):
            return True

    return False


def get_remaining_seconds(timestamp: Timestamp) -> int:
    """Seconds until the step containing ``timestamp`` ends."""
    return TOTP_TIME_STEP - (int(timestamp) % TOTP_TIME_STEP)


def build_provisioning_uri(secret_b32: str, account_name: str, issuer: str) -> str:
    """
    Build the otpauth:// URI that authenticator apps scan.

    Args:
        secret_b32: Base32 shared secret
        account_name: Account label (usually the email)
        issuer: Service name shown in the app

    Returns:
        otpauth://totp/... URI
    """
    label = f"{quote(issuer)}:{quote(account_name)}"
    return (
        f"otpauth://totp/{label}"
        f"?secret={secret_b32}"
        f"&issuer={quote(issuer)}"
        f"&algorithm=SHA1"
        f"&digits={TOTP_DIGITS}"
        f"&period={TOTP_TIME_STEP}"
    )


def render_qr_ascii(data: str) -> str:
    """Render ``data`` as an ASCII QR code for terminals."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_L,
        box_size=1,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    out = io.StringIO()
    qr.print_ascii(out=out)
    return out.getvalue()


class TOTPGenerator:
    """
    TOTP generator and verifier bound to one base32 secret.

    Example:
        >>> gen = TOTPGenerator("JBSWY3DPEHPK3PXP", account_name="alice@example.com")
        >>> code = gen.generate(1_700_000_000)
        >>> gen.verify(code, 1_700_000_000)
        True
    """

    def __init__(self, secret_b32: str,
                 issuer: str = "PG-Control-Plane",
                 account_name: str = "user",
                 window: int = TOTP_DRIFT_TOLERANCE):
        self._secret_b32 = secret_b32
        self._secret = base32.decode(secret_b32)
        self._issuer = issuer
        self._account_name = account_name
        self._window = window

    @classmethod
    def random(cls, **kwargs) -> 'TOTPGenerator':
        """Create a generator around a fresh random secret."""
        return cls(base32.encode(generate_secret()), **kwargs)

    @property
    def secret(self) -> bytes:
        """Raw secret bytes."""
        return self._secret

    @property
    def secret_base32(self) -> str:
        """Base32-encoded secret for authenticator apps."""
        return self._secret_b32

    def generate(self, timestamp: Timestamp) -> str:
        return totp(self._secret, timestamp)

    def verify(self, code: str, timestamp: Timestamp) -> bool:
        return verify_totp(self._secret, code, timestamp, self._window)

    def get_provisioning_uri(self) -> str:
        return build_provisioning_uri(
            self._secret_b32, self._account_name, self._issuer
        )

    def generate_qr_code(self) -> str:
        """ASCII QR code of the provisioning URI."""
        return render_qr_ascii(self.get_provisioning_uri())

    def __repr__(self) -> str:
        return f"TOTPGenerator(issuer='{self._issuer}', account='{self._account_name}')"
