"""Unit tests for browsercheck.health, driven by a fake clock."""

from __future__ import annotations

import pytest


class _ScriptedSource:
    """Reports a status computed from the current fake time."""

    def __init__(self, clock, healthy_at=None, exited_at=None):
        self.clock = clock
        self.healthy_at = healthy_at
        self.exited_at = exited_at
        self.polls = 0

    def inspect_status(self, name):
        from browsercheck.container import ContainerStatus, HealthStatus, RuntimeState

        self.polls += 1
        t = self.clock()
        if self.exited_at is not None and t >= self.exited_at:
            return ContainerStatus(RuntimeState.EXITED, HealthStatus.UNHEALTHY)
        if self.healthy_at is not None and t >= self.healthy_at:
            return ContainerStatus(RuntimeState.RUNNING, HealthStatus.HEALTHY)
        return ContainerStatus(RuntimeState.RUNNING, HealthStatus.STARTING)


def _wait(clock, source, **kwargs):
    from browsercheck.health import wait_for_healthy

    return wait_for_healthy(source, "chrome-test", clock=clock, sleep=clock.sleep, **kwargs)


class TestNextState:
    """Transition rules, evaluated healthy → exited → deadline."""

    def _status(self, runtime, health):
        from browsercheck.container import ContainerStatus, HealthStatus, RuntimeState

        return ContainerStatus(RuntimeState(runtime), HealthStatus(health))

    def test_pending(self):
        from browsercheck.health import HealthWaitState, next_state

        assert next_state(self._status("running", "starting"), 10, 120) == HealthWaitState.PENDING

    def test_healthy_wins_over_deadline(self):
        from browsercheck.health import HealthWaitState, next_state

        assert next_state(self._status("running", "healthy"), 130, 120) == HealthWaitState.HEALTHY

    @pytest.mark.parametrize("runtime", ["exited", "dead"])
    def test_terminal_runtime(self, runtime):
        from browsercheck.health import HealthWaitState, next_state

        assert next_state(self._status(runtime, "unhealthy"), 4, 120) == HealthWaitState.EXITED

    def test_deadline_inclusive(self):
        from browsercheck.health import HealthWaitState, next_state

        status = self._status("running", "starting")
        assert next_state(status, 119.9, 120) == HealthWaitState.PENDING
        assert next_state(status, 120, 120) == HealthWaitState.TIMED_OUT

    def test_unhealthy_running_keeps_waiting(self):
        from browsercheck.health import HealthWaitState, next_state

        assert next_state(self._status("running", "unhealthy"), 30, 120) == HealthWaitState.PENDING


class TestWaitForHealthy:
    def test_healthy_on_first_poll_at_or_after(self, clock):
        from browsercheck.health import HealthWaitState

        source = _ScriptedSource(clock, healthy_at=15)
        outcome = _wait(clock, source, deadline=120, poll_interval=2)

        assert outcome.state == HealthWaitState.HEALTHY
        assert outcome.elapsed == 16
        assert outcome.polls == 9
        assert clock.sleeps == [2] * 8

    def test_immediately_healthy_does_not_sleep(self, clock):
        from browsercheck.health import HealthWaitState

        outcome = _wait(clock, _ScriptedSource(clock, healthy_at=0))

        assert outcome.state == HealthWaitState.HEALTHY
        assert outcome.polls == 1
        assert clock.sleeps == []

    def test_exited_before_deadline(self, clock):
        from browsercheck.health import HealthWaitState

        source = _ScriptedSource(clock, exited_at=5)
        outcome = _wait(clock, source, deadline=120, poll_interval=2)

        assert outcome.state == HealthWaitState.EXITED
        assert outcome.elapsed == 6
        assert outcome.last_status.runtime_state.value == "exited"

    def test_timeout_never_early(self, clock):
        from browsercheck.health import HealthWaitState

        outcome = _wait(clock, _ScriptedSource(clock), deadline=120, poll_interval=2)

        assert outcome.state == HealthWaitState.TIMED_OUT
        assert outcome.elapsed == 120
        assert outcome.polls == 61

    def test_timeout_with_coarse_interval(self, clock):
        from browsercheck.health import HealthWaitState

        outcome = _wait(clock, _ScriptedSource(clock), deadline=120, poll_interval=7)

        assert outcome.state == HealthWaitState.TIMED_OUT
        assert outcome.elapsed == 126

    def test_on_poll_called_for_pending_polls(self, clock):
        seen = []
        source = _ScriptedSource(clock, healthy_at=4)

        _wait(clock, source, on_poll=lambda status, elapsed: seen.append(elapsed))

        assert seen == [0, 2]

    def test_start_time_offset(self, clock):
        from browsercheck.health import HealthWaitState

        clock.now = 1000.0
        outcome = _wait(clock, _ScriptedSource(clock, healthy_at=1003), poll_interval=2)

        assert outcome.state == HealthWaitState.HEALTHY
        assert outcome.elapsed == 4
