"""Tests for the two-factor credential state machine."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from authlink.auth import totp
from authlink.auth.enrollment import TwoFactorManager
from authlink.errors import AlreadyActive, CodeMismatch, NotPending
from authlink.models import TwoFactorStatus, VerificationError
from authlink.store import MemoryCredentialStore

from conftest import wrong_code


def _enroll(manager, clock, account_id="acct1"):
    started = manager.start_enrollment(account_id)
    manager.confirm_enrollment(account_id, totp.current_code(started.secret, clock.now))
    return started.secret


def test_unknown_account_is_unenrolled(manager):
    assert manager.status("nobody") == TwoFactorStatus.UNENROLLED
    assert not manager.is_required("nobody")


def test_start_enrollment(manager, store, sink):
    started = manager.start_enrollment("acct1")
    assert len(started.secret) == 20
    assert started.provisioning_uri.startswith("otpauth://totp/MikroTik%20Auth%20Link:acct1?")
    assert f"secret={started.secret_base32}&" in started.provisioning_uri
    assert manager.status("acct1") == TwoFactorStatus.PENDING_CONFIRMATION
    assert not manager.is_required("acct1")
    assert store.load("acct1").secret == started.secret
    assert sink.types == ["enrollment_started"]


def test_start_enrollment_uses_label(manager):
    started = manager.start_enrollment("acct1", account_label="noc@isp")
    assert ":noc%40isp?" in started.provisioning_uri


def test_secret_never_in_repr_or_events(manager, sink):
    started = manager.start_enrollment("acct1")
    assert started.secret_base32 not in repr(started)
    assert started.secret_base32 not in repr(manager._store.load("acct1"))
    for event in sink.events:
        assert started.secret_base32 not in str(event)


def test_confirm_enrollment(manager, store, clock, sink):
    started = manager.start_enrollment("acct1")
    manager.confirm_enrollment("acct1", totp.current_code(started.secret, clock.now))
    record = store.load("acct1")
    assert record.status == TwoFactorStatus.ACTIVE
    assert record.confirmed_at is not None
    assert record.secret == started.secret
    assert manager.is_required("acct1")
    assert sink.types[-1] == "enrollment_confirmed"


def test_confirm_tolerates_one_step_drift(manager, clock):
    started = manager.start_enrollment("acct1")
    code = totp.current_code(started.secret, clock.now - totp.STEP_SECONDS)
    manager.confirm_enrollment("acct1", code)
    assert manager.is_required("acct1")


def test_confirm_mismatch_leaves_state(manager, clock, sink):
    started = manager.start_enrollment("acct1")
    with pytest.raises(CodeMismatch) as exc:
        manager.confirm_enrollment("acct1", wrong_code(started.secret, clock.now))
    assert exc.value.reason == VerificationError.NO_MATCH
    assert manager.status("acct1") == TwoFactorStatus.PENDING_CONFIRMATION
    assert sink.types[-1] == "enrollment_code_mismatch"

    # Retrying with the right code still works
    manager.confirm_enrollment("acct1", totp.current_code(started.secret, clock.now))
    assert manager.is_required("acct1")


def test_confirm_malformed_code(manager):
    manager.start_enrollment("acct1")
    with pytest.raises(CodeMismatch) as exc:
        manager.confirm_enrollment("acct1", "12ab56")
    assert exc.value.reason == VerificationError.MALFORMED_CODE


def test_confirm_without_enrollment(manager):
    with pytest.raises(NotPending):
        manager.confirm_enrollment("acct1", "123456")


def test_confirm_twice_reports_already_active(manager, clock):
    secret = _enroll(manager, clock)
    with pytest.raises(AlreadyActive):
        manager.confirm_enrollment("acct1", totp.current_code(secret, clock.now))


def test_start_enrollment_while_active(manager, clock):
    _enroll(manager, clock)
    with pytest.raises(AlreadyActive):
        manager.start_enrollment("acct1")
    assert manager.is_required("acct1")


def test_restart_pending_replaces_secret(manager, clock):
    first = manager.start_enrollment("acct1")
    second = manager.start_enrollment("acct1")
    assert first.secret != second.secret

    # Only the new secret can confirm
    with pytest.raises(CodeMismatch):
        manager.confirm_enrollment("acct1", wrong_code(second.secret, clock.now))
    manager.confirm_enrollment("acct1", totp.current_code(second.secret, clock.now))
    assert manager.is_required("acct1")


def test_disable_active(manager, store, clock, sink):
    _enroll(manager, clock)
    manager.disable("acct1")
    record = store.load("acct1")
    assert record.status == TwoFactorStatus.DISABLED
    assert record.secret is None
    assert not manager.is_required("acct1")
    assert sink.types[-1] == "two_factor_disabled"


def test_disable_is_idempotent(manager, clock, sink):
    _enroll(manager, clock)
    manager.disable("acct1")
    manager.disable("acct1")
    assert manager.status("acct1") == TwoFactorStatus.DISABLED
    assert sink.types.count("two_factor_disabled") == 1


def test_disable_unenrolled_is_noop(manager):
    manager.disable("nobody")
    manager.disable("nobody")
    assert manager.status("nobody") == TwoFactorStatus.UNENROLLED


def test_disable_cancels_pending(manager, store):
    manager.start_enrollment("acct1")
    manager.disable("acct1")
    assert manager.status("acct1") == TwoFactorStatus.UNENROLLED
    assert store.load("acct1") is None


def test_reenroll_after_disable(manager, clock):
    old = _enroll(manager, clock)
    manager.disable("acct1")
    started = manager.start_enrollment("acct1")
    assert started.secret != old
    assert manager.status("acct1") == TwoFactorStatus.PENDING_CONFIRMATION
    clock.advance(totp.STEP_SECONDS * 5)
    with pytest.raises(CodeMismatch):
        manager.confirm_enrollment("acct1", wrong_code(started.secret, clock.now))
    manager.confirm_enrollment("acct1", totp.current_code(started.secret, clock.now))
    assert manager.is_required("acct1")


def test_login_code_updates_replay_guard(manager, store, clock):
    secret = _enroll(manager, clock)
    code = totp.current_code(secret, clock.now)
    result = manager.verify_login_code("acct1", code)
    assert result.ok
    assert store.load("acct1").last_accepted_step == totp.time_step(clock.now)
    assert manager.verify_login_code("acct1", code).error == VerificationError.REPLAYED


def test_failed_login_code_leaves_guard(manager, store, clock):
    secret = _enroll(manager, clock)
    result = manager.verify_login_code("acct1", wrong_code(secret, clock.now))
    assert result.error == VerificationError.NO_MATCH
    assert store.load("acct1").last_accepted_step is None


def test_login_code_without_active_credential(manager):
    manager.start_enrollment("acct1")
    assert manager.verify_login_code("acct1", "123456").error == VerificationError.INVALID_SECRET


class SlowStore(MemoryCredentialStore):
    """Widens the read-modify-write window to expose missing locking."""

    def load(self, account_id):
        record = super().load(account_id)
        time.sleep(0.01)
        return record


def _race(fn, n=8):
    barrier = threading.Barrier(n)

    def run(_):
        barrier.wait()
        try:
            return fn()
        except Exception as e:
            return e

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(run, range(n)))


def test_concurrent_confirm_activates_once(clock, sink):
    manager = TwoFactorManager(SlowStore(), issuer="ISP", clock=clock, on_event=sink)
    started = manager.start_enrollment("acct1")
    code = totp.current_code(started.secret, clock.now)

    results = _race(lambda: manager.confirm_enrollment("acct1", code))

    assert results.count(None) == 1
    assert all(isinstance(r, AlreadyActive) for r in results if r is not None)
    assert sink.types.count("enrollment_confirmed") == 1
    assert manager.is_required("acct1")


def test_concurrent_login_code_accepted_once(clock):
    manager = TwoFactorManager(SlowStore(), issuer="ISP", clock=clock)
    secret = _enroll(manager, clock)
    code = totp.current_code(secret, clock.now)

    results = _race(lambda: manager.verify_login_code("acct1", code))

    assert sum(r.ok for r in results) == 1
    assert all(r.error == VerificationError.REPLAYED for r in results if not r.ok)


def test_accounts_do_not_block_each_other(clock):
    store = MemoryCredentialStore()
    manager = TwoFactorManager(store, issuer="ISP", clock=clock)
    manager.start_enrollment("acct2")
    with store.lock("acct1"):
        # acct1 is held; acct2 must still make progress
        manager.disable("acct2")
    assert manager.status("acct2") == TwoFactorStatus.UNENROLLED
