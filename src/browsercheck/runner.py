"""Run orchestrator for browsercheck.

Sequences one smoke run against the container under test::

    register teardown ─▶ image present? ─▶ start ─▶ health wait ─▶ grace
        ─▶ chrome_binary, cdp_endpoint, novnc_endpoint,
           chrome_process, xvfb_process ─▶ summary ─▶ teardown

Steps up to and including the health wait are fatal gates: a failure there
records a :class:`~browsercheck.results.FatalError`, dumps diagnostics, and
skips every later step except the summary and teardown. Probe failures are
recorded and the run carries on.

Teardown is registered on an :class:`~contextlib.ExitStack` before anything
else and runs exactly once on every exit path: normal completion, fatal
abort, unexpected error, ``KeyboardInterrupt`` and SIGTERM (translated into
:class:`~browsercheck.errors.RunInterrupted`).
"""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager

import httpx

from browsercheck.config import SmokeConfig
from browsercheck.container import ContainerHandle, ContainerManager
from browsercheck.errors import ContainerStartError, ImageNotFoundError, RunInterrupted
from browsercheck.health import HealthWaitState, wait_for_healthy
from browsercheck.log_collector import LogCollector
from browsercheck.probes import build_probes, image_probe, run_probe
from browsercheck.reporter import Reporter
from browsercheck.results import FatalStage, RunResult

logger = logging.getLogger(__name__)


class SmokeRunner:
    """Orchestrates a single smoke run.

    Parameters
    ----------
    config
        Run configuration.
    manager
        Lifecycle manager. Created on first use when omitted, so a missing
        Docker CLI is reported as a run error rather than a crash.
    reporter
        Console reporter.
    clock, sleep
        Time sources for the health wait, grace delay and probe retries.
    transport
        Optional httpx transport for the HTTP probes.
    handle_signals
        Translate SIGTERM into :class:`RunInterrupted` while running.

    Example::

        runner = SmokeRunner(SmokeConfig.from_env())
        result = runner.run()
        raise SystemExit(result.exit_code)
    """

    def __init__(
        self,
        config: SmokeConfig,
        manager: ContainerManager | None = None,
        reporter: Reporter | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        transport: httpx.BaseTransport | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.config = config
        self.manager = manager
        self.reporter = reporter or Reporter()
        self._clock = clock
        self._sleep = sleep
        self._transport = transport
        self._handle_signals = handle_signals
        self._handle: ContainerHandle | None = None
        self._torn_down = False

    def run(self) -> RunResult:
        """Execute the run and return its result. Never raises for run failures."""
        result = RunResult(
            run_id=self.config.run_id,
            image=self.config.image,
            container_name=self.config.container_name,
        )
        self._handle = None
        self._torn_down = False

        with ExitStack() as stack:
            stack.callback(self._teardown)
            stack.enter_context(self._sigterm_guard())
            try:
                self._execute(result)
            except KeyboardInterrupt as exc:
                reason = str(exc) if isinstance(exc, RunInterrupted) else "Interrupted by user"
                self.reporter.fail(f"Run interrupted: {reason}")
                result.abort(FatalStage.INTERRUPTED, reason)
                logger.warning("run.interrupted", extra={"run_id": result.run_id})
            except Exception as e:
                self.reporter.fail(f"Harness error: {e}")
                result.abort(FatalStage.ERROR, str(e))
                logger.error("run.failed", extra={"run_id": result.run_id, "error": str(e)})
            finally:
                result.mark_complete()
                self._collect_artifacts(result)
                self.reporter.summary(result)

        logger.info(
            "run.complete",
            extra={
                "run_id": result.run_id,
                "status": result.overall_status.value,
                "passed": result.summary.passed,
                "failed": result.summary.failed,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _execute(self, result: RunResult) -> None:
        config = self.config
        report = self.reporter
        report.banner(config)

        if self.manager is None:
            self.manager = ContainerManager()
        manager = self.manager

        # 1. Image present
        report.info("Checking Docker image...")
        image = result.summary.record(
            run_probe(image_probe(manager, config.image), sleep=self._sleep, clock=self._clock)
        )
        if not image.passed:
            report.fail(f"Docker image not found: {config.image}")
            result.abort(FatalStage.IMAGE, f"Docker image not found: {config.image}", image.diagnostic)
            return
        report.success("Docker image exists")

        # 2. Start
        report.info("Starting container...")
        try:
            self._handle = manager.start(
                config.image,
                config.container_name,
                config.grants,
                config.ports,
                run_id=config.run_id,
            )
        except ImageNotFoundError as exc:
            report.fail(str(exc))
            result.abort(FatalStage.IMAGE, str(exc))
            return
        except ContainerStartError as exc:
            report.fail("Failed to start container")
            report.block("docker run output:", str(exc))
            result.abort(FatalStage.START, "Failed to start container", str(exc))
            return
        report.success("Container started")

        # 3. Composite health
        if not self._wait_for_health(manager, result):
            return

        # 4. Grace
        if config.grace_seconds > 0:
            report.info(f"Waiting {config.grace_seconds:g}s for services to finish binding...")
            self._sleep(config.grace_seconds)

        # 5. Independent probes
        for probe in build_probes(config, manager, self._handle, transport=self._transport):
            report.info(f"Checking {probe.name}...")
            outcome = run_probe(probe, sleep=self._sleep, clock=self._clock)
            report.probe(result.summary.record(outcome))

    def _wait_for_health(self, manager: ContainerManager, result: RunResult) -> bool:
        config = self.config
        report = self.reporter

        report.info(f"Waiting for health check (timeout: {config.timeout_seconds:g}s)...")
        outcome = wait_for_healthy(
            manager,
            config.container_name,
            deadline=config.timeout_seconds,
            poll_interval=config.poll_interval,
            clock=self._clock,
            sleep=self._sleep,
            on_poll=lambda status, elapsed: report.dot(),
        )
        result.health_state = outcome.state.value
        result.health_elapsed = outcome.elapsed

        if outcome.state == HealthWaitState.HEALTHY:
            report.success(f"Health check passed after {outcome.elapsed:.0f}s")
            return True

        if outcome.state == HealthWaitState.EXITED:
            reason = "Container exited unexpectedly"
            tail = config.exited_log_tail
        else:
            reason = f"Health check timed out after {config.timeout_seconds:g}s"
            tail = config.timeout_log_tail

        report.fail(reason)
        logs = manager.logs(config.container_name, tail=tail)
        report.block("Container logs:", logs)
        stage = FatalStage.EXITED if outcome.state == HealthWaitState.EXITED else FatalStage.TIMEOUT
        result.abort(stage, reason, logs)
        return False

    # ------------------------------------------------------------------
    # Teardown and artifacts
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        """Stop and remove the container. Runs once per run; never raises."""
        if self._torn_down:
            return
        self._torn_down = True
        if self.manager is None:
            return
        if self.config.keep_container:
            self.reporter.warn(f"Keeping container {self.config.container_name} (--keep)")
            return
        self.reporter.info("Cleaning up test environment...")
        try:
            self.manager.teardown(self.config.container_name)
        except (Exception, KeyboardInterrupt) as e:
            logger.warning(
                "teardown.failed",
                extra={"container": self.config.container_name, "error": str(e)},
            )

    def _collect_artifacts(self, result: RunResult) -> None:
        if self.config.output_dir is None:
            return
        try:
            collector = LogCollector(self.config.output_dir, result.run_id)
            if self._handle is not None and self.manager is not None:
                collector.save_container_logs(
                    self.manager.logs(self.config.container_name, tail=self.config.timeout_log_tail)
                )
            collector.write_summary(result)
        except OSError as e:
            logger.warning("artifacts.failed", extra={"error": str(e)})

    @contextmanager
    def _sigterm_guard(self) -> Iterator[None]:
        """Raise RunInterrupted on SIGTERM so the ExitStack unwinds."""
        if not self._handle_signals:
            yield
            return

        def _raise(signum: int, frame: object) -> None:
            raise RunInterrupted(signum)

        try:
            previous = signal.signal(signal.SIGTERM, _raise)
        except (ValueError, OSError):
            yield  # Not in main thread; skip signal registration
            return
        try:
            yield
        finally:
            signal.signal(signal.SIGTERM, previous)
