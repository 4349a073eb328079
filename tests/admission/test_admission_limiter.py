from __future__ import annotations

import asyncio

import pytest

from tutorpipe.admission.limiter import AdmissionLimiter
from tutorpipe.admission.policy import AUTH_POLICY, SOURCE_POLICY, AdmissionPolicy


class FakeClock:
    def __init__(self, now: float = 10_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_limiter(policy: AdmissionPolicy | None = None) -> tuple[AdmissionLimiter, FakeClock]:
    clock = FakeClock()
    if policy is None:
        return AdmissionLimiter(clock=clock), clock
    return AdmissionLimiter(policy, clock=clock), clock


def test_allows_max_attempts_then_denies_with_backoff():
    limiter, _ = make_limiter()

    decisions = [limiter.check_limit("alice", "login") for _ in range(5)]

    assert all(d.allowed for d in decisions)
    assert [d.attempts_remaining for d in decisions] == [4, 3, 2, 1, 0]

    denied = limiter.check_limit("alice", "login")
    assert denied.allowed is False
    assert denied.wait_time_s == 2
    assert denied.attempts_remaining == 0


def test_denial_during_backoff_does_not_count_an_attempt():
    limiter, clock = make_limiter()
    for _ in range(6):
        limiter.check_limit("alice")
    attempts = limiter.get_status("alice").attempts

    clock.advance(0.5)
    again = limiter.check_limit("alice")

    assert again.allowed is False
    assert again.wait_time_s == 2
    assert limiter.get_status("alice").attempts == attempts


def test_backoff_grows_monotonically_up_to_the_cap():
    limiter, clock = make_limiter(
        AdmissionPolicy(max_attempts=1, window_s=10_000, max_backoff_s=10)
    )
    limiter.check_limit("bob")

    waits = []
    for _ in range(5):
        decision = limiter.check_limit("bob")
        assert decision.allowed is False
        waits.append(decision.wait_time_s)
        clock.advance(decision.wait_time_s + 0.1)

    assert waits == [2, 4, 8, 10, 10]


def test_window_expiry_starts_a_fresh_window():
    limiter, clock = make_limiter()
    for _ in range(6):
        limiter.check_limit("carol")

    clock.advance(15 * 60 + 1)
    decision = limiter.check_limit("carol")

    assert decision.allowed is True
    assert decision.attempts_remaining == 4


def test_record_success_clears_history():
    limiter, _ = make_limiter()
    for _ in range(4):
        limiter.check_limit("dave")

    limiter.record_success("dave")

    assert limiter.get_status("dave").attempts == 0
    assert limiter.check_limit("dave").attempts_remaining == 4


def test_record_failure_signals_lock_at_threshold():
    limiter, _ = make_limiter(AdmissionPolicy(backoff_base_s=0))

    outcomes = [limiter.record_failure("erin", "login") for _ in range(15)]

    assert [o.should_lock_account for o in outcomes[:14]] == [False] * 14
    assert outcomes[14].should_lock_account is True


def test_status_reports_block_while_window_is_exhausted():
    limiter, clock = make_limiter()
    for _ in range(4):
        limiter.check_limit("frank")
    assert limiter.get_status("frank").is_blocked is False

    limiter.check_limit("frank")
    status = limiter.get_status("frank")
    assert status.attempts == 5
    assert status.is_blocked is True
    assert status.next_reset_at == pytest.approx(clock.now + 15 * 60)


def test_actions_are_tracked_independently_and_reset_clears_all():
    limiter, _ = make_limiter()
    for _ in range(6):
        limiter.check_limit("gina", "login")
    assert limiter.check_limit("gina", "chat").allowed is True

    limiter.reset("gina", "login")
    assert limiter.get_status("gina", "login").attempts == 0
    assert limiter.get_status("gina", "chat").attempts == 1

    limiter.check_limit("gina", "login")
    limiter.reset("gina")
    assert len(limiter) == 0


def test_sweep_removes_only_expired_records():
    limiter, clock = make_limiter(SOURCE_POLICY)
    limiter.check_limit("10.0.0.1")
    clock.advance(30)
    limiter.check_limit("10.0.0.2")
    clock.advance(31)

    assert limiter.sweep() == 1
    assert limiter.get_status("10.0.0.1").attempts == 0
    assert limiter.get_status("10.0.0.2").attempts == 1


def test_source_policy_allows_ten_then_backs_off_by_three():
    limiter, _ = make_limiter(SOURCE_POLICY)

    for _ in range(10):
        assert limiter.check_limit("10.0.0.9").allowed

    assert limiter.check_limit("10.0.0.9").wait_time_s == 3


def test_auth_policy_caps_backoff_at_thirty_minutes():
    assert AUTH_POLICY.backoff_for(50) == 30 * 60.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_attempts": 0},
        {"window_s": 0},
        {"backoff_multiplier": 0.5},
        {"sweep_interval_s": 0},
    ],
)
def test_invalid_policy_is_rejected(overrides):
    with pytest.raises(ValueError):
        AdmissionPolicy(**overrides)


def test_background_sweep_runs_until_stopped():
    async def _run():
        clock = FakeClock()
        limiter = AdmissionLimiter(
            AdmissionPolicy(window_s=1, sweep_interval_s=0.01), clock=clock
        )
        limiter.check_limit("henry")
        async with limiter:
            assert limiter.running is True
            clock.advance(5)
            await asyncio.sleep(0.05)
            assert len(limiter) == 0
        assert limiter.running is False

    asyncio.run(_run())
