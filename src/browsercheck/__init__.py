"""browsercheck: readiness verification for remote-debuggable browser containers.

Starts a container that exposes Chrome's DevTools Protocol (CDP) and a noVNC
viewer, waits for its composite health status, probes each subsystem
independently, and turns the results into a deterministic exit code. The
container is always torn down, whatever the outcome.

Key Concepts:
    SmokeConfig: Pydantic config with ``from_env()`` (``IMAGE_TAG``,
        ``BROWSERCHECK_*``).
    SmokeRunner: Config in, ``RunResult`` out. Owns teardown.
    ContainerManager: ``docker`` CLI wrapper (start, inspect, exec, logs,
        stop, remove).
    wait_for_healthy: PENDING → HEALTHY | EXITED | TIMED_OUT state machine.
    Probe / run_probe: Named read-only checks with per-probe retry.
    RunSummary: Append-only pass/fail aggregator.

Example:
    >>> from browsercheck import SmokeConfig
    >>> SmokeConfig(image="chrome-cdp-novnc:dev").container_name
    'chrome-test'
"""

from __future__ import annotations

__version__ = "0.1.0"

from browsercheck.config import PortBinding, ResourceGrants, SmokeConfig  # noqa: E402
from browsercheck.results import (  # noqa: E402
    FatalError,
    FatalStage,
    OverallStatus,
    ProbeResult,
    RunResult,
    RunSummary,
)
from browsercheck.runner import SmokeRunner  # noqa: E402

__all__ = [
    "FatalError",
    "FatalStage",
    "OverallStatus",
    "PortBinding",
    "ProbeResult",
    "ResourceGrants",
    "RunResult",
    "RunSummary",
    "SmokeConfig",
    "SmokeRunner",
    "__version__",
]
