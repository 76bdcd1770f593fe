"""Composite health wait for browsercheck.

The in-container supervisor reports readiness asynchronously, through the
image's ``HEALTHCHECK``. This module polls that signal at a fixed interval
until one of three terminal states is reached::

    PENDING ──healthy──────────▶ HEALTHY     (success)
       │────runtime exited─────▶ EXITED      (fatal)
       └────elapsed ≥ deadline─▶ TIMED_OUT   (fatal)

Rules are evaluated in that order on every poll, so a container that turns
healthy on the same poll the deadline passes still counts as HEALTHY, and a
timeout is never declared before the deadline has elapsed.

Clock and sleep are injectable so the state machine can be driven by a fake
clock in tests.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from browsercheck.container import ContainerStatus, HealthStatus

logger = logging.getLogger(__name__)


class HealthWaitState(str, Enum):
    PENDING = "PENDING"
    HEALTHY = "HEALTHY"
    EXITED = "EXITED"
    TIMED_OUT = "TIMED_OUT"


class StatusSource(Protocol):
    def inspect_status(self, name: str) -> ContainerStatus: ...


@dataclass(frozen=True)
class HealthWaitOutcome:
    """Terminal state of the health wait."""

    state: HealthWaitState
    elapsed: float
    polls: int
    last_status: ContainerStatus | None = None


def next_state(status: ContainerStatus, elapsed: float, deadline: float) -> HealthWaitState:
    """Apply one transition of the health-wait state machine."""
    if status.health_status == HealthStatus.HEALTHY:
        return HealthWaitState.HEALTHY
    if status.runtime_state.is_terminal:
        return HealthWaitState.EXITED
    if elapsed >= deadline:
        return HealthWaitState.TIMED_OUT
    return HealthWaitState.PENDING


def wait_for_healthy(
    source: StatusSource,
    name: str,
    deadline: float = 120.0,
    poll_interval: float = 2.0,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    on_poll: Callable[[ContainerStatus, float], None] | None = None,
) -> HealthWaitOutcome:
    """Poll *name* until it is healthy, has exited, or *deadline* elapses.

    Parameters
    ----------
    source
        Anything with ``inspect_status(name)``; normally a ContainerManager.
    name
        Container name.
    deadline
        Seconds after which the wait gives up.
    poll_interval
        Seconds between polls.
    on_poll
        Called with the status and elapsed time after every PENDING poll
        (the reporter uses it to print progress dots).
    """
    started = clock()
    polls = 0
    while True:
        status = source.inspect_status(name)
        polls += 1
        elapsed = clock() - started
        state = next_state(status, elapsed, deadline)
        if state != HealthWaitState.PENDING:
            logger.info(
                "health.terminal",
                extra={
                    "container": name,
                    "state": state.value,
                    "elapsed": f"{elapsed:.1f}",
                    "polls": polls,
                },
            )
            return HealthWaitOutcome(state=state, elapsed=elapsed, polls=polls, last_status=status)

        logger.debug(
            "health.pending",
            extra={"container": name, "status": str(status), "elapsed": f"{elapsed:.1f}"},
        )
        if on_poll is not None:
            on_poll(status, elapsed)
        sleep(poll_interval)
