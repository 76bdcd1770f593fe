"""
Shared pytest fixtures for browsercheck tests.

This module provides:
- FakeClock: a monotonic clock advanced only by its own sleep()
- FakeContainerManager: a ContainerManager whose docker calls are scripted
  against the fake clock, recording every lifecycle call
- make_transport: an httpx.MockTransport answering per port

No Docker daemon and no network access are needed.
"""

import sys
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# Ensure browsercheck package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from browsercheck.config import PortBinding, ResourceGrants, SmokeConfig
from browsercheck.container import (
    ContainerHandle,
    ContainerManager,
    ContainerStatus,
    HealthStatus,
    RuntimeState,
)
from browsercheck.errors import ContainerStartError
from browsercheck.reporter import Reporter


class FakeClock:
    """Callable clock; ``sleep()`` advances it and records the delay."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeContainerManager(ContainerManager):
    """ContainerManager with scripted docker behaviour.

    ``teardown()`` is inherited, so stop/remove go through the real
    sequencing and are recorded here.
    """

    def __init__(
        self,
        clock: FakeClock,
        *,
        image_present: bool = True,
        healthy_at: float | None = 0.0,
        exited_at: float | None = None,
        start_error: str | None = None,
        exec_codes: dict[str, int] | None = None,
        on_inspect: Callable[[int], None] | None = None,
    ) -> None:
        self.clock = clock
        self.image_present = image_present
        self.healthy_at = healthy_at
        self.exited_at = exited_at
        self.start_error = start_error
        self.exec_codes = exec_codes or {}
        self.on_inspect = on_inspect
        self.calls: list[str] = []
        self.exec_calls: list[list[str]] = []
        self.log_tails: list[int] = []
        self.inspections = 0

    def image_exists(self, image: str) -> bool:
        self.calls.append("image_exists")
        return self.image_present

    def start(self, image, name, grants, ports, run_id=""):
        self.calls.append("start")
        if self.start_error:
            raise ContainerStartError(self.start_error)
        return ContainerHandle(
            container_id="abc123def456",
            container_name=name,
            image=image,
            resource_grants=grants,
            ports=list(ports),
            created_at=1.0,
        )

    def inspect_status(self, name: str) -> ContainerStatus:
        self.inspections += 1
        if self.on_inspect is not None:
            self.on_inspect(self.inspections)
        t = self.clock()
        if self.exited_at is not None and t >= self.exited_at:
            return ContainerStatus(RuntimeState.EXITED, HealthStatus.UNHEALTHY)
        if self.healthy_at is not None and t >= self.healthy_at:
            return ContainerStatus(RuntimeState.RUNNING, HealthStatus.HEALTHY)
        return ContainerStatus(RuntimeState.RUNNING, HealthStatus.STARTING)

    def logs(self, name: str, tail: int = 100) -> str:
        self.log_tails.append(tail)
        return "Xvfb started\nchrome: crashed\n"

    def exec_check(self, name: str, argv: list[str]) -> int:
        self.exec_calls.append(list(argv))
        key = argv[-1] if argv[0] == "pgrep" else argv[0]
        return self.exec_codes.get(key, 0)

    def stop(self, name: str, timeout: int = 10) -> None:
        self.calls.append("stop")

    def remove(self, name: str) -> None:
        self.calls.append("remove")


def make_transport(routes: dict[int, list]) -> httpx.MockTransport:
    """MockTransport answering per port from a list of outcomes.

    Each outcome is an int status code or an exception class to raise. The
    last outcome repeats once the list is exhausted.
    """
    seen: dict[int, int] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        port = request.url.port
        outcomes = routes.get(port, [404])
        index = seen.get(port, 0)
        seen[port] = index + 1
        outcome = outcomes[min(index, len(outcomes) - 1)]
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("connection refused", request=request)
        return httpx.Response(outcome, text="[]")

    transport = httpx.MockTransport(handler)
    transport.seen = seen  # type: ignore[attr-defined]
    return transport


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> SmokeConfig:
    return SmokeConfig(
        image="chrome-cdp-novnc:test",
        container_name="chrome-test",
        grants=ResourceGrants(shm_size="2g", cap_add=["SYS_ADMIN"]),
        control_port=PortBinding(container_port=9222, host_port=9222),
        bridge_port=PortBinding(container_port=6080, host_port=6080),
        run_id="run123456789",
    )


@pytest.fixture
def quiet_reporter() -> Reporter:
    return Reporter(quiet=True)


@pytest.fixture
def make_manager(clock: FakeClock) -> Callable[..., FakeContainerManager]:
    """Factory for FakeContainerManager bound to the test clock."""

    def _make(**kwargs) -> FakeContainerManager:
        return FakeContainerManager(clock, **kwargs)

    return _make


@pytest.fixture
def transport_for() -> Callable[[dict[int, list]], httpx.MockTransport]:
    return make_transport


@pytest.fixture
def healthy_transport() -> httpx.MockTransport:
    return make_transport({9222: [200], 6080: [200]})
