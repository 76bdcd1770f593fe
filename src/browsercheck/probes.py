"""Probe primitives for browsercheck.

A probe is a named, read-only check with its own retry policy. Running a
probe never raises for ordinary errors: a transport failure, a non-zero exec
exit code, or an exception inside the check all become a failed
:class:`~browsercheck.results.ProbeResult`. This keeps subsystems siloed, so
a dead noVNC bridge never hides whether the CDP endpoint is up.

Probes:
    chrome_binary   exec ``<chrome> --version``        single attempt
    cdp_endpoint    GET ``/json/list`` on 9222         3 attempts, 2s apart,
                                                       verbose trace on failure
    novnc_endpoint  GET ``/`` on 6080                  single attempt
    chrome_process  exec ``pgrep chrome``              single attempt
    xvfb_process    exec ``pgrep Xvfb``                single attempt

``image_present`` is built with :func:`image_probe` as well, but the runner
treats its failure as fatal.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from browsercheck.results import ProbeResult

if TYPE_CHECKING:
    from browsercheck.config import SmokeConfig
    from browsercheck.container import ContainerHandle, ContainerManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Probe:
    """A named, idempotent check.

    Parameters
    ----------
    name
        Stable identifier used in the summary.
    check
        Zero-arg callable; truthy return means pass.
    attempts
        Total attempts allowed (1 = no retry).
    retry_delay
        Seconds slept between attempts.
    diagnose
        Optional zero-arg callable returning text, invoked only on failure.
    """

    name: str
    check: Callable[[], bool]
    description: str = ""
    attempts: int = 1
    retry_delay: float = 0.0
    diagnose: Callable[[], str] | None = None


def run_probe(
    probe: Probe,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ProbeResult:
    """Execute *probe* under its retry policy and return the result.

    ``elapsed`` is measured on *clock*, the same source that paces retries.
    """
    start = clock()
    attempts = max(1, probe.attempts)
    passed = False
    used = 0
    last_error: str | None = None

    for attempt in range(1, attempts + 1):
        used = attempt
        try:
            passed = bool(probe.check())
            last_error = None
        except Exception as exc:
            passed = False
            last_error = f"{type(exc).__name__}: {exc}"
            logger.debug(
                "probe.attempt_error",
                extra={"probe": probe.name, "attempt": attempt, "error": last_error},
            )
        if passed:
            break
        if attempt < attempts:
            sleep(probe.retry_delay)

    diagnostic = None
    if not passed:
        diagnostic = last_error
        if probe.diagnose is not None:
            try:
                diagnostic = probe.diagnose()
            except Exception as exc:
                diagnostic = f"diagnostic capture failed: {type(exc).__name__}: {exc}"

    elapsed = clock() - start
    logger.info(
        "probe.passed" if passed else "probe.failed",
        extra={"probe": probe.name, "attempts": used, "elapsed": f"{elapsed:.2f}"},
    )
    return ProbeResult(
        name=probe.name,
        passed=passed,
        elapsed=elapsed,
        attempts=used,
        diagnostic=diagnostic,
        description=probe.description,
    )


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def http_get_ok(url: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> bool:
    """``GET`` *url* and report whether the response was 2xx (after redirects)."""
    with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
        resp = client.get(url)
        return resp.is_success


def http_trace(url: str, timeout: float = 5.0, transport: httpx.BaseTransport | None = None) -> str:
    """Return a ``curl -v`` style trace of a ``GET`` to *url*.

    Request and response lines are captured through httpx event hooks; a
    transport error ends the trace with the exception text.
    """
    lines: list[str] = []

    def on_request(request: httpx.Request) -> None:
        lines.append(f"> {request.method} {request.url.raw_path.decode()} HTTP/1.1")
        lines.extend(f"> {k}: {v}" for k, v in request.headers.items())
        lines.append(">")

    def on_response(response: httpx.Response) -> None:
        lines.append(f"< {response.http_version} {response.status_code} {response.reason_phrase}")
        lines.extend(f"< {k}: {v}" for k, v in response.headers.items())
        lines.append("<")

    lines.append(f"* Trying {url} ...")
    try:
        with httpx.Client(
            timeout=timeout,
            transport=transport,
            event_hooks={"request": [on_request], "response": [on_response]},
        ) as client:
            resp = client.get(url)
            body = resp.text
            if body:
                lines.append(body[:500])
    except httpx.HTTPError as exc:
        lines.append(f"* {type(exc).__name__}: {exc}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Probe factories
# ---------------------------------------------------------------------------


def image_probe(manager: ContainerManager, image: str) -> Probe:
    return Probe(
        name="image_present",
        description="Docker image exists",
        check=lambda: manager.image_exists(image),
    )


def exec_probe(
    manager: ContainerManager,
    container: str,
    name: str,
    argv: list[str],
    description: str = "",
) -> Probe:
    """Pass iff *argv* exits 0 inside *container*."""
    return Probe(
        name=name,
        description=description or " ".join(argv),
        check=lambda: manager.exec_check(container, argv) == 0,
    )


def process_probe(manager: ContainerManager, container: str, name: str, process: str) -> Probe:
    """Pass iff ``pgrep <process>`` finds a match inside *container*."""
    return exec_probe(
        manager,
        container,
        name,
        ["pgrep", process],
        description=f"{process} process is running",
    )


def http_probe(
    name: str,
    url: str,
    description: str = "",
    attempts: int = 1,
    retry_delay: float = 0.0,
    timeout: float = 5.0,
    trace_on_failure: bool = False,
    transport: httpx.BaseTransport | None = None,
) -> Probe:
    """Pass iff ``GET url`` returns 2xx within the allowed attempts."""
    diagnose = None
    if trace_on_failure:
        diagnose = lambda: http_trace(url, timeout=timeout, transport=transport)  # noqa: E731
    return Probe(
        name=name,
        description=description or f"GET {url}",
        check=lambda: http_get_ok(url, timeout=timeout, transport=transport),
        attempts=attempts,
        retry_delay=retry_delay,
        diagnose=diagnose,
    )


def build_probes(
    config: SmokeConfig,
    manager: ContainerManager,
    handle: ContainerHandle,
    transport: httpx.BaseTransport | None = None,
) -> list[Probe]:
    """The five independent probes, in reporting order."""
    name = handle.container_name
    return [
        exec_probe(
            manager,
            name,
            "chrome_binary",
            [config.chrome_binary, "--version"],
            description="Chrome binary is working",
        ),
        http_probe(
            "cdp_endpoint",
            config.cdp_url,
            description="CDP endpoint responds",
            attempts=config.cdp_attempts,
            retry_delay=config.cdp_retry_delay,
            timeout=config.http_timeout,
            trace_on_failure=True,
            transport=transport,
        ),
        http_probe(
            "novnc_endpoint",
            config.novnc_url,
            description="noVNC is accessible",
            timeout=config.http_timeout,
            transport=transport,
        ),
        process_probe(manager, name, "chrome_process", config.chrome_process),
        process_probe(manager, name, "xvfb_process", config.display_process),
    ]
