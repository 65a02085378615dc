"""
pgauth - credential verification for the PG control plane.

Password authentication with a TOTP second factor, single-use backup
codes, account lockout and a tamper-evident audit trail.
"""

__version__ = "0.1.0"
