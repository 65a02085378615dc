# pgauth Test Suite
"""
Test suite including:
- Unit tests (base32, HOTP/TOTP, lockout, backup codes, audit ledger)
- Verifier scenario tests
- Security tests (brute force, replay, malformed input, concurrency)
- Integration tests

Run with: pytest
Coverage: coverage run -m pytest && coverage report
"""
