# tests/test_state_machine.py
"""
Tests for the per-target state machine.

Covers:
- Optimistic Foreground default and first observations
- Transition side effects (switch counter, background timer, attempts)
- Idempotence of repeated identical probe results
- Kill eligibility (foreground, sticky, protected, grace period)
- Kill re-arm and the protected-after-max-attempts safeguard
"""

import pytest

from deep_suppressor.models import TargetState
from deep_suppressor.state_machine import TargetStateMachine


@pytest.fixture
def machine():
    return TargetStateMachine()


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestObserve:
    def test_initial_state_is_foreground(self, make_target):
        target = make_target()
        assert target.state == TargetState.FOREGROUND
        assert not target.observed

    def test_first_foreground_observation_is_not_a_transition(self, machine, make_target):
        target = make_target()
        assert machine.observe(target, True, now=5.0) is None
        assert target.observed
        assert target.last_switch_time == 5.0
        assert target.switch_count == 0

    def test_foreground_to_background(self, machine, make_target):
        target = make_target()
        machine.observe(target, True, now=0.0)

        transition = machine.observe(target, False, now=600.0)

        assert transition is not None
        assert transition.previous == TargetState.FOREGROUND
        assert transition.current == TargetState.BACKGROUND
        assert transition.duration == 600.0
        assert not transition.now_foreground
        assert target.is_background
        assert target.last_background_time == 600.0
        assert target.switch_count == 1

    def test_first_observation_background_has_no_duration(self, machine, make_target):
        target = make_target()
        transition = machine.observe(target, False, now=10.0)
        assert transition is not None
        assert transition.duration is None
        assert target.last_background_time == 10.0

    def test_background_does_not_reset_kill_attempts(self, machine, make_target):
        target = make_target(kill_attempts=3)
        machine.observe(target, False, now=0.0)
        assert target.kill_attempts == 3

    def test_background_to_foreground_resets_kill_attempts(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)
        target.kill_attempts = 4

        transition = machine.observe(target, True, now=30.0)

        assert transition.now_foreground
        assert transition.duration == 30.0
        assert target.kill_attempts == 0
        assert target.switch_count == 2

    def test_repeated_foreground_never_increments_switch_count(self, machine, make_target):
        target = make_target()
        for second in range(20):
            assert machine.observe(target, True, now=float(second)) is None
        assert target.switch_count == 0

    def test_repeated_background_keeps_background_timer(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=100.0)
        machine.observe(target, False, now=200.0)
        assert target.last_background_time == 100.0
        assert target.switch_count == 1


# ---------------------------------------------------------------------------
# Kill evaluation
# ---------------------------------------------------------------------------


class TestEvaluateKill:
    def test_foreground_is_never_eligible(self, machine, make_target):
        target = make_target()
        machine.observe(target, True, now=0.0)
        decision = machine.evaluate_kill(target, now=10_000.0, threshold=1.0)
        assert not decision.should_kill
        assert decision.reason == "foreground"

    def test_within_grace_period(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)
        decision = machine.evaluate_kill(target, now=599.0, threshold=600.0)
        assert not decision.should_kill
        assert decision.elapsed == 599.0

    def test_at_threshold_is_eligible(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)
        assert machine.evaluate_kill(target, now=600.0, threshold=600.0).should_kill

    @pytest.mark.parametrize("flag", ["sticky", "protected"])
    def test_exempt_targets(self, machine, make_target, flag):
        target = make_target(**{flag: True})
        machine.observe(target, False, now=0.0)
        decision = machine.evaluate_kill(target, now=10_000.0, threshold=1.0)
        assert not decision.should_kill
        assert decision.reason == flag


# ---------------------------------------------------------------------------
# Kill attempts
# ---------------------------------------------------------------------------


class TestKillAttempts:
    def test_rearm_resets_background_timer(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)

        machine.record_kill_attempt(target, now=600.0)

        assert target.last_background_time == 600.0
        assert not machine.evaluate_kill(target, now=601.0, threshold=600.0).should_kill
        assert machine.evaluate_kill(target, now=1200.0, threshold=600.0).should_kill

    def test_without_rearm_target_stays_eligible(self, make_target):
        machine = TargetStateMachine(rearm_kill_timer=False)
        target = make_target()
        machine.observe(target, False, now=0.0)

        machine.record_kill_attempt(target, now=600.0)

        assert target.last_background_time == 0.0
        assert machine.evaluate_kill(target, now=601.0, threshold=600.0).should_kill

    def test_protected_on_reaching_bound(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)

        results = [machine.record_kill_attempt(target, now=600.0 * (i + 1)) for i in range(10)]

        assert results == [False] * 9 + [True]
        assert target.kill_attempts == 10
        assert target.protected
        assert not machine.evaluate_kill(target, now=1e9, threshold=1.0).should_kill

    def test_protected_is_permanent(self, machine, make_target):
        target = make_target()
        machine.observe(target, False, now=0.0)
        for i in range(10):
            machine.record_kill_attempt(target, now=float(i))

        machine.observe(target, True, now=100.0)

        assert target.kill_attempts == 0
        assert target.protected

    def test_invalid_bound(self):
        with pytest.raises(ValueError):
            TargetStateMachine(max_kill_attempts=0)
