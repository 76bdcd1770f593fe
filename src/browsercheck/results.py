"""Result models for browsercheck.

Pydantic v2 models that capture the outcome of a smoke run. Individual
probe results roll up into a :class:`RunSummary`, which together with the
fatal-gate outcome rolls up into a :class:`RunResult`.

Key Concepts:
    ProbeResult: Immutable outcome of one probe (name, passed, elapsed,
        attempts, optional diagnostic).
    RunSummary: Append-only aggregator. ``passed + failed == total`` always.
    FatalError: Which gate aborted the run and why.
    RunResult: The whole run. ``mark_complete()`` finalises timestamps,
        status and the exit code.

The exit code is ``0`` iff no probe failed and no fatal gate tripped.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OverallStatus(str, Enum):
    """Overall status of a smoke run."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


class FatalStage(str, Enum):
    """Gate at which a run was aborted."""

    IMAGE = "image"  # image not present locally
    START = "start"  # docker run failed
    EXITED = "exited"  # container exited before healthy
    TIMEOUT = "timeout"  # never became healthy
    INTERRUPTED = "interrupted"  # SIGINT / SIGTERM
    ERROR = "error"  # unexpected harness error


class ProbeResult(BaseModel):
    """Outcome of a single probe. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    elapsed: float = 0.0
    attempts: int = 1
    diagnostic: str | None = None
    description: str = ""


class RunSummary(BaseModel):
    """Pass/fail counts plus the names of failed probes, in probe order."""

    passed: int = 0
    failed: int = 0
    failed_names: list[str] = Field(default_factory=list)
    results: list[ProbeResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def all_passed(self) -> bool:
        return self.failed == 0

    def record(self, result: ProbeResult) -> ProbeResult:
        """Append a probe result and update the counters."""
        self.results.append(result)
        if result.passed:
            self.passed += 1
        else:
            self.failed += 1
            self.failed_names.append(result.name)
        return result

    def get(self, name: str) -> ProbeResult | None:
        for result in self.results:
            if result.name == name:
                return result
        return None


class FatalError(BaseModel):
    """Why a run was aborted before all probes could execute."""

    stage: FatalStage
    reason: str
    diagnostic: str | None = None


class RunResult(BaseModel):
    """Result of a full smoke run."""

    run_id: str
    image: str
    container_name: str
    started_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    completed_at: str | None = None
    duration_seconds: float = 0.0
    summary: RunSummary = Field(default_factory=RunSummary)
    health_state: str | None = None
    health_elapsed: float | None = None
    fatal: FatalError | None = None
    overall_status: OverallStatus = OverallStatus.PENDING
    exit_code: int | None = None

    def abort(self, stage: FatalStage, reason: str, diagnostic: str | None = None) -> None:
        """Record a fatal gate failure. The first abort wins."""
        if self.fatal is None:
            self.fatal = FatalError(stage=stage, reason=reason, diagnostic=diagnostic)

    def mark_complete(self) -> int:
        """Finalize run: compute duration, status and exit code."""
        self.completed_at = datetime.now(UTC).isoformat()
        start = datetime.fromisoformat(self.started_at)
        end = datetime.fromisoformat(self.completed_at)
        self.duration_seconds = (end - start).total_seconds()

        if self.fatal is None:
            self.overall_status = (
                OverallStatus.PASSED if self.summary.all_passed else OverallStatus.FAILED
            )
        elif self.fatal.stage == FatalStage.INTERRUPTED:
            self.overall_status = OverallStatus.CANCELLED
        elif self.fatal.stage == FatalStage.ERROR:
            self.overall_status = OverallStatus.ERROR
        else:
            self.overall_status = OverallStatus.FAILED

        self.exit_code = 0 if self.overall_status == OverallStatus.PASSED else 1
        return self.exit_code
