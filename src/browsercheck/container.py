"""Container lifecycle management for browsercheck.

Drives the container under test through the ``docker`` CLI (subprocess).
This is the only component that mutates external state: it creates the
container, reads its state, execs into it, and destroys it.

Key Concepts:
    ContainerManager: ``image_exists()``, ``start()``, ``inspect_status()``,
        ``logs()``, ``exec_check()``, ``stop()``, ``remove()``,
        ``teardown()``, ``cleanup_orphans()``.
    ContainerHandle: The one running instance under test.
    ContainerStatus: Point-in-time ``RuntimeState`` + ``HealthStatus`` read.

Architecture Decisions:
    - subprocess, not docker-py: works with any runtime exposing a
      ``docker`` CLI.
    - Typed status enums: the health state machine never matches on raw
      CLI output.
    - Label-based tracking: every container gets ``browsercheck.*`` labels
      so ``cleanup_orphans()`` can find leftovers from killed runs.
    - Teardown always removes: ``stop()`` and ``remove()`` log and swallow
      errors, and ``teardown()`` issues the remove even if the stop is
      interrupted.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from browsercheck.config import PortBinding, ResourceGrants
from browsercheck.errors import (
    ContainerError,
    ContainerStartError,
    DockerNotFoundError,
    ImageNotFoundError,
)

logger = logging.getLogger(__name__)

LABEL_PREFIX = "browsercheck"


# ---------------------------------------------------------------------------
# Status enums
# ---------------------------------------------------------------------------


class RuntimeState(str, Enum):
    """``.State.Status`` as reported by ``docker inspect``."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    REMOVING = "removing"
    EXITED = "exited"
    DEAD = "dead"
    NOT_FOUND = "not_found"

    @classmethod
    def parse(cls, raw: str) -> RuntimeState:
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.NOT_FOUND

    @property
    def is_terminal(self) -> bool:
        return self in (RuntimeState.EXITED, RuntimeState.DEAD)


class HealthStatus(str, Enum):
    """``.State.Health.Status``; ``NONE`` when the image has no healthcheck."""

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    NONE = "none"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> HealthStatus:
        value = raw.strip().lower()
        if value in ("", "<no value>", "<nil>"):
            return cls.NONE
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContainerStatus:
    """Point-in-time read of a container's runtime and health state."""

    runtime_state: RuntimeState
    health_status: HealthStatus

    def __str__(self) -> str:
        return f"{self.runtime_state.value}/{self.health_status.value}"


@dataclass
class ContainerHandle:
    """The running instance under test."""

    container_id: str
    container_name: str
    image: str
    resource_grants: ResourceGrants
    ports: list[PortBinding] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    created_at: float = 0.0


class ContainerManager:
    """Manages the container under test via the ``docker`` CLI.

    Parameters
    ----------
    command_timeout
        Timeout in seconds for each docker CLI invocation.
    exec_timeout
        Timeout in seconds for ``docker exec`` checks.

    Example::

        mgr = ContainerManager()
        handle = mgr.start("chrome-cdp-novnc:latest", "chrome-test", grants, ports)
        try:
            status = mgr.inspect_status(handle.container_name)
        finally:
            mgr.teardown(handle.container_name)
    """

    def __init__(self, command_timeout: int = 60, exec_timeout: int = 30) -> None:
        self.command_timeout = command_timeout
        self.exec_timeout = exec_timeout
        self._docker_cmd = self._find_docker()

    # ------------------------------------------------------------------
    # Docker CLI discovery
    # ------------------------------------------------------------------

    @staticmethod
    def _find_docker() -> str:
        """Resolve the docker executable, failing fast when absent."""
        docker = shutil.which("docker")
        if docker is None:
            raise DockerNotFoundError(
                "docker not found on PATH; the browser container cannot be started. "
                "See https://docs.docker.com/engine/install/"
            )
        return docker

    @staticmethod
    def is_docker_available() -> bool:
        """True when a docker CLI exists and `docker info` succeeds."""
        docker = shutil.which("docker")
        if docker is None:
            return False
        try:
            result = subprocess.run(
                [docker, "info"],
                capture_output=True,
                timeout=10,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, OSError):
            return False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def image_exists(self, image: str) -> bool:
        """Return True if *image* is present in the local image store."""
        result = self._run_docker(["image", "inspect", image], check=False)
        return result.returncode == 0

    def start(
        self,
        image: str,
        name: str,
        grants: ResourceGrants,
        ports: list[PortBinding],
        run_id: str = "",
    ) -> ContainerHandle:
        """Launch the container in the background.

        No retry: a missing image or a failed launch is fatal to the run.

        Raises
        ------
        ImageNotFoundError
            If *image* is not present locally.
        ContainerStartError
            If ``docker run`` fails.
        """
        if not self.image_exists(image):
            raise ImageNotFoundError(image)

        labels = {
            f"{LABEL_PREFIX}.role": "under-test",
            f"{LABEL_PREFIX}.run_id": run_id,
        }

        cmd = [
            "run", "--detach",
            "--name", name,
            "--shm-size", grants.shm_size,
        ]
        for cap in grants.cap_add:
            cmd.extend(["--cap-add", cap])
        for port in ports:
            cmd.extend(["-p", port.publish_arg])
        for key, value in labels.items():
            cmd.extend(["--label", f"{key}={value}"])
        cmd.append(image)

        created_at = time.time()
        try:
            result = self._run_docker(cmd)
        except ContainerError as exc:
            raise ContainerStartError(str(exc)) from exc
        container_id = result.stdout.strip()[:12]

        logger.info(
            "container.started",
            extra={"container": name, "image": image, "container_id": container_id},
        )
        return ContainerHandle(
            container_id=container_id,
            container_name=name,
            image=image,
            resource_grants=grants,
            ports=list(ports),
            labels=labels,
            created_at=created_at,
        )

    def inspect_status(self, name: str) -> ContainerStatus:
        """Read runtime state and health status in a single ``docker inspect``."""
        try:
            result = self._run_docker(
                [
                    "inspect",
                    "--format",
                    "{{.State.Status}}|{{if .State.Health}}{{.State.Health.Status}}{{end}}",
                    name,
                ],
                check=False,
            )
        except ContainerError as exc:
            logger.debug("container.inspect_failed", extra={"container": name, "error": str(exc)})
            return ContainerStatus(RuntimeState.NOT_FOUND, HealthStatus.UNKNOWN)

        if result.returncode != 0:
            return ContainerStatus(RuntimeState.NOT_FOUND, HealthStatus.UNKNOWN)

        state, _, health = result.stdout.strip().partition("|")
        return ContainerStatus(RuntimeState.parse(state), HealthStatus.parse(health))

    def logs(self, name: str, tail: int = 100) -> str:
        """Capture the last *tail* lines of container output (stdout + stderr)."""
        try:
            result = self._run_docker(["logs", "--tail", str(tail), name], check=False)
        except ContainerError as exc:
            return f"Failed to collect logs: {exc}"
        return result.stdout + result.stderr

    def exec_check(self, name: str, argv: list[str]) -> int:
        """Run *argv* inside the container and return its exit code.

        Transport failures (timeout, missing CLI) are reported as ``-1``.
        """
        try:
            result = self._run_docker(
                ["exec", name, *argv],
                check=False,
                timeout=self.exec_timeout,
            )
        except ContainerError as exc:
            logger.warning("container.exec_failed", extra={"container": name, "error": str(exc)})
            return -1
        return result.returncode

    def stop(self, name: str, timeout: int = 10) -> None:
        """Stop a container. Never raises."""
        try:
            self._run_docker(["stop", "--time", str(timeout), name], check=False)
        except Exception as exc:
            logger.debug("container.stop_failed", extra={"container": name, "error": str(exc)})

    def remove(self, name: str) -> None:
        """Force-remove a container. Never raises."""
        try:
            self._run_docker(["rm", "--force", name], check=False)
        except Exception as exc:
            logger.debug("container.remove_failed", extra={"container": name, "error": str(exc)})

    def teardown(self, name: str) -> None:
        """Stop and remove a container.

        Removal is issued even if the stop is interrupted, so a second Ctrl-C
        never leaves the fixed-name container behind.
        """
        try:
            self.stop(name)
        finally:
            self.remove(name)
        logger.info("container.removed", extra={"container": name})

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    def list_containers(self) -> list[dict[str, Any]]:
        """List containers created by browsercheck (running or not)."""
        result = self._run_docker(
            [
                "ps", "--all",
                "--filter", f"label={LABEL_PREFIX}.role",
                "--format", "{{json .}}",
            ],
            check=False,
        )
        containers = []
        for line in result.stdout.strip().splitlines():
            if line.strip():
                try:
                    containers.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.debug("container.list_unparsable", extra={"line": line})
        return containers

    def cleanup_orphans(self) -> int:
        """Remove every browsercheck container. Returns the number removed."""
        removed = 0
        for c in self.list_containers():
            name = c.get("Names", "")
            if name:
                self.remove(name)
                removed += 1
        if removed:
            logger.info("cleanup.complete", extra={"containers_removed": removed})
        return removed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run_docker(
        self,
        args: list[str],
        check: bool = True,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Invoke docker with *args*; map timeouts and OS errors to ContainerError."""
        timeout = timeout or self.command_timeout
        cmd = [self._docker_cmd, *args]
        logger.debug("docker.exec", extra={"cmd": " ".join(cmd)})
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ContainerError(
                f"Docker command timed out after {timeout}s: {' '.join(args)}"
            ) from exc
        except OSError as exc:
            raise ContainerError(f"Docker command could not run: {exc}") from exc
        if check and result.returncode != 0:
            raise ContainerError(
                f"Docker command failed (exit {result.returncode}): "
                f"{' '.join(args)}\n{result.stderr}"
            )
        return result
