"""Console reporter for browsercheck.

Leveled lines (``[INFO]``, ``[PASS]``, ``[FAIL]``, ``[WARN]``) written as a
run progresses, plus a final summary table. Purely presentational: nothing
here influences the outcome of a run.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from browsercheck.config import SmokeConfig
from browsercheck.results import OverallStatus, ProbeResult, RunResult

_LEVELS = {
    "info": ("INFO", "blue"),
    "pass": ("PASS", "green"),
    "fail": ("FAIL", "red"),
    "warn": ("WARN", "yellow"),
}


class Reporter:
    """Renders run progress to a rich console.

    Parameters
    ----------
    console
        Target console. Defaults to stdout.
    quiet
        Suppress all output (used with ``--json``).
    """

    def __init__(self, console: Console | None = None, quiet: bool = False) -> None:
        self.console = console or Console(highlight=False)
        self.quiet = quiet
        self._dots = False

    # ── Leveled lines ────────────────────────────────────────────────────

    def _line(self, level: str, message: str) -> None:
        if self.quiet:
            return
        self._end_dots()
        tag, style = _LEVELS[level]
        self.console.print(f"[{style}]\\[{tag}][/{style}] {escape(message)}")

    def info(self, message: str) -> None:
        self._line("info", message)

    def success(self, message: str) -> None:
        self._line("pass", message)

    def fail(self, message: str) -> None:
        self._line("fail", message)

    def warn(self, message: str) -> None:
        self._line("warn", message)

    def block(self, title: str, text: str) -> None:
        """Print a diagnostic block (container logs, request traces)."""
        if self.quiet:
            return
        self.info(title)
        self.console.print(escape(text.rstrip()) or "(empty)", markup=True, soft_wrap=True)

    def dot(self) -> None:
        """Progress marker for one health poll."""
        if self.quiet:
            return
        self._dots = True
        self.console.print(".", end="")

    def _end_dots(self) -> None:
        if self._dots:
            self._dots = False
            self.console.print()

    # ── Run-level output ─────────────────────────────────────────────────

    def banner(self, config: SmokeConfig) -> None:
        if self.quiet:
            return
        self.info("Smoke Test Configuration:")
        self.console.print(f"  IMAGE_TAG: {escape(config.image)}")
        self.console.print(f"  TEST_TIMEOUT: {config.timeout_seconds:g}s")
        self.console.print(f"  CONTAINER: {escape(config.container_name)}")
        self.console.print(f"  RUN_ID: {config.run_id}")
        self.console.print()
        for cap in config.grants.broad_capabilities:
            self.warn(f"Container is granted broad capability {cap}; review whether it is required")

    def probe(self, result: ProbeResult) -> None:
        label = result.description or result.name
        if result.passed:
            suffix = f" (attempt {result.attempts})" if result.attempts > 1 else ""
            self.success(f"{label}{suffix}")
        else:
            self.fail(f"{label} failed")
            if result.diagnostic:
                self.block("Trying to get more info...", result.diagnostic)

    def summary(self, result: RunResult) -> None:
        if self.quiet:
            return
        self._end_dots()
        s = result.summary

        table = Table(title="Smoke Test Summary")
        table.add_column("Probe", style="bold")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Time", justify="right")
        for r in s.results:
            status = "[green]PASS[/green]" if r.passed else "[red]FAIL[/red]"
            table.add_row(r.name, status, str(r.attempts), f"{r.elapsed:.2f}s")
        self.console.print()
        self.console.print(table)

        self.console.print(f"Image: {escape(result.image)}")
        self.console.print(f"Tests Passed: [green]{s.passed}[/green]")
        self.console.print(f"Tests Failed: [red]{s.failed}[/red]")
        if s.failed_names:
            self.console.print(f"Failed: {', '.join(s.failed_names)}")
        if result.fatal is not None:
            self.console.print(
                f"Aborted at [bold]{result.fatal.stage.value}[/bold]: {escape(result.fatal.reason)}"
            )

        if result.overall_status == OverallStatus.PASSED:
            self.success("All smoke tests passed!")
        else:
            self.fail("Some smoke tests failed")
