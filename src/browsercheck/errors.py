"""Exception types for browsercheck.

Three failure classes exist during a smoke run:

- **Fatal**: the image is missing, the container cannot be launched, or it
  never becomes healthy. These abort the run. Only the first two are raised
  as exceptions; the health gate reports its terminal state as a value.
- **Probe failure**: never raised. Probes convert every error into a
  failed :class:`~browsercheck.results.ProbeResult`.
- **Teardown failure**: suppressed inside
  :class:`~browsercheck.container.ContainerManager`.

Hierarchy::

    BrowsercheckError
    ├── DockerNotFoundError
    └── ContainerError
        ├── ImageNotFoundError
        └── ContainerStartError

    RunInterrupted (KeyboardInterrupt)
"""

from __future__ import annotations


class BrowsercheckError(RuntimeError):
    """Base class for all browsercheck errors."""


class DockerNotFoundError(BrowsercheckError):
    """Raised when the Docker CLI is not available."""


class ContainerError(BrowsercheckError):
    """Raised when a docker command needed to drive the run fails."""


class ImageNotFoundError(ContainerError):
    """Raised when the image under test is not present locally."""

    def __init__(self, image: str) -> None:
        super().__init__(f"Docker image not found: {image}")
        self.image = image


class ContainerStartError(ContainerError):
    """Raised when the container fails to launch."""


class RunInterrupted(KeyboardInterrupt):
    """Raised from the SIGTERM handler so that teardown still runs."""

    def __init__(self, signum: int) -> None:
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum
