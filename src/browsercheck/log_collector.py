"""Structured artifact collection for browsercheck.

Every run that is given an output directory produces a self-contained
``{run_id}/`` folder that CI can upload as an artifact::

    {output_dir}/{run_id}/
    ├── summary.json     RunResult.model_dump_json()
    └── container.log    last lines of container output
"""

from __future__ import annotations

import logging
from pathlib import Path

from browsercheck.results import RunResult

logger = logging.getLogger(__name__)


class LogCollector:
    """Writes run artifacts under ``{output_dir}/{run_id}/``."""

    def __init__(self, output_dir: Path, run_id: str) -> None:
        self.run_dir = Path(output_dir) / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id

    def save_container_logs(self, logs: str) -> Path:
        path = self.run_dir / "container.log"
        path.write_text(logs, encoding="utf-8")
        logger.debug("logs.captured", extra={"path": str(path)})
        return path

    def write_summary(self, result: RunResult) -> Path:
        """Serialise the run result as JSON."""
        path = self.run_dir / "summary.json"
        path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info("summary.written", extra={"path": str(path)})
        return path
