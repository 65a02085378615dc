#!/usr/bin/env python
"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                           PGAUTH LIVE DEMO                                   ║
║              Password + TOTP Authentication with Account Lockout             ║
╚══════════════════════════════════════════════════════════════════════════════╝

Scripted walkthrough of pgauth:
- Password login against Argon2id hashes
- TOTP enrollment (Google Authenticator compatible)
- Login with TOTP and with single-use backup codes
- Account lockout after repeated wrong passwords, and admin unlock
- Hash-chained audit trail

Run with --step to pause between parts.
"""

import argparse
import logging
import time
from datetime import datetime, timedelta, timezone

from pgauth.audit import AuditRecorder
from pgauth.auth import (
    AccountAdministration,
    AccountLocked,
    CredentialVerifier,
    InMemoryUserStore,
    InvalidBackupCode,
    MfaEnrollment,
    MfaRequired,
    PasswordHasher_,
    User,
    UserRole,
    decode_base32,
    totp,
)
from pgauth.config import get_settings


def print_header(title):
    """Print a formatted section header"""
    print("\n" + "═" * 70)
    print(f"  {title}")
    print("═" * 70)


def print_step(step_num, description):
    """Print a numbered step"""
    print(f"\n  [{step_num}] {description}")


class Demo:
    """Holds the wired-up components and a clock the script can move forward."""

    def __init__(self, step: bool):
        self.step = step
        self.now = datetime.now(timezone.utc)
        self.settings = get_settings()
        self.hasher = PasswordHasher_()
        self.store = InMemoryUserStore()
        self.recorder = AuditRecorder(clock=self.clock)
        self.verifier = CredentialVerifier(
            self.store, self.recorder, settings=self.settings,
            password_verifier=self.hasher.verify_password, clock=self.clock,
        )
        self.enrollment = MfaEnrollment(self.store, self.recorder, settings=self.settings)
        self.admin = AccountAdministration(self.store, self.recorder, self.verifier.policy)

    def clock(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)

    def pause(self, message="Press ENTER to continue..."):
        if self.step:
            print(f"\n  [PAUSE] {message}")
            input()

    def current_code(self, secret):
        return totp(decode_base32(secret), self.now.timestamp())


def part_passwords(demo):
    print_header("PART 1: PASSWORD LOGIN")

    print_step("1.1", "Creating users 'alice' (admin) and 'bob' (operator)")
    start = time.perf_counter()
    demo.store.add(User(
        id="u-alice", email="alice@example.com", name="Alice",
        password_hash=demo.hasher.hash_password("Alice-Pass-2026"),
        role=UserRole.ADMIN, org_id="org-1",
    ))
    demo.store.add(User(
        id="u-bob", email="bob@example.com", name="Bob",
        password_hash=demo.hasher.hash_password("Bob-Pass-2026"),
        role=UserRole.OPERATOR, org_id="org-1",
    ))
    elapsed = (time.perf_counter() - start) * 1000
    print(f"  Argon2id hashing of two passwords took {elapsed:.0f} ms")
    print(f"  Stored hash: {demo.store.find_by_id('u-alice').password_hash[:40]}...")

    print_step("1.2", "Alice logs in with her password")
    principal = demo.verifier.authorize("alice@example.com", "Alice-Pass-2026")
    print(f"  [OK] Principal: id={principal.id} role={principal.role.value} org={principal.org_id}")

    print_step("1.3", "Wrong password and unknown email")
    print(f"  Wrong password   -> {demo.verifier.authorize('alice@example.com', 'guess')}")
    print(f"  Unknown email    -> {demo.verifier.authorize('eve@example.com', 'guess')}")

    demo.pause()


def part_enrollment(demo):
    print_header("PART 2: TOTP ENROLLMENT")

    print_step("2.1", "Generating TOTP secret and backup codes for Alice")
    setup = demo.enrollment.begin_setup("u-alice")
    print(f"  Secret (base32): {setup.secret}")
    print(f"  URI: {setup.provisioning_uri}")
    print(f"  Backup codes: {', '.join(setup.backup_codes[:3])}, ...")

    print_step("2.2", "QR code for the authenticator app")
    print(demo.enrollment.qr_code("u-alice"))

    print_step("2.3", "Confirming with the current code")
    code = demo.current_code(setup.secret)
    print(f"  Current code: {code}")
    print(f"  [OK] MFA enabled: {demo.enrollment.confirm('u-alice', code, now=demo.now)}")

    demo.pause()
    return setup


def part_mfa_login(demo, setup):
    print_header("PART 3: LOGIN WITH SECOND FACTOR")

    demo.advance(minutes=2)

    print_step("3.1", "Password alone is no longer enough")
    try:
        demo.verifier.authorize("alice@example.com", "Alice-Pass-2026")
    except MfaRequired as e:
        print(f"  [REJECTED] {e}")

    print_step("3.2", "Password + TOTP")
    code = demo.current_code(setup.secret)
    principal = demo.verifier.authorize("alice@example.com", "Alice-Pass-2026", mfa_code=code)
    print(f"  [OK] Logged in as {principal.email} with code {code}")

    print_step("3.3", "Password + backup code (phone lost)")
    backup = setup.backup_codes[0]
    demo.verifier.authorize("alice@example.com", "Alice-Pass-2026", backup_code=backup.lower())
    print(f"  [OK] Logged in with {backup}; "
          f"{demo.enrollment.status('u-alice')['backup_codes_remaining']} codes left")

    print_step("3.4", "Replaying the same backup code")
    try:
        demo.verifier.authorize("alice@example.com", "Alice-Pass-2026", backup_code=backup)
    except InvalidBackupCode as e:
        print(f"  [REJECTED] {e}")

    demo.pause()


def part_lockout(demo):
    print_header("PART 4: ACCOUNT LOCKOUT")

    threshold = demo.verifier.policy.threshold
    print_step("4.1", f"{threshold} wrong passwords for Bob")
    for i in range(threshold):
        demo.advance(seconds=5)
        demo.verifier.authorize("bob@example.com", f"guess-{i}")
        user = demo.store.find_by_id("u-bob")
        print(f"  attempt {i + 1}: status={user.status.value} failed={user.failed_attempts}")

    print_step("4.2", "Correct password while locked")
    try:
        demo.verifier.authorize("bob@example.com", "Bob-Pass-2026")
    except AccountLocked as e:
        minutes = e.retry_after(demo.now) // 60
        print(f"  [REJECTED] {e} (retry in {minutes} minutes)")

    print_step("4.3", "Alice (admin) unlocks Bob")
    state = demo.admin.unlock("u-bob", actor_id="u-alice")
    print(f"  New state: status={state.status.value} failed={state.failed_attempts}")
    principal = demo.verifier.authorize("bob@example.com", "Bob-Pass-2026")
    print(f"  [OK] Bob logged in as {principal.role.value}")

    demo.pause()


def part_audit(demo):
    print_header("PART 5: AUDIT TRAIL")

    print_step("5.1", "Login attempts")
    for attempt in demo.recorder.login_attempts():
        outcome = "OK " if attempt.success else "FAIL"
        print(f"  #{attempt.sequence:<3} {outcome} user={attempt.user_id or '-':<8} "
              f"mfa={attempt.mfa_used!s:<5} {attempt.reason or ''}")

    print_step("5.2", "Account events")
    for event in demo.recorder.events():
        print(f"  {event}")

    print_step("5.3", "Hash chain")
    ledger = demo.recorder.ledger
    print(f"  Entries: {len(ledger)}")
    print(f"  Head hash: {ledger.head_hash[:32]}...")
    print(f"  [OK] Integrity: {demo.recorder.verify_integrity()}")


def main():
    parser = argparse.ArgumentParser(description="pgauth live demo")
    parser.add_argument("--step", action="store_true", help="pause between parts")
    parser.add_argument("-v", "--verbose", action="store_true", help="show library logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="  %(levelname)-7s %(name)s: %(message)s",
    )

    demo = Demo(step=args.step)
    part_passwords(demo)
    setup = part_enrollment(demo)
    part_mfa_login(demo, setup)
    part_lockout(demo)
    part_audit(demo)
    print()


if __name__ == "__main__":
    main()
