"""Configuration models for browsercheck.

Provides the Pydantic v2 model that controls a smoke run against a
remote-debuggable browser container. Every field can be overridden from the
environment, so the same defaults work from a developer shell and from CI.

Key Concepts:
    SmokeConfig: Image, container name, timeouts, resource grants, port
        bindings, probe targets and output options. ``from_env()`` reads
        ``IMAGE_TAG`` and ``BROWSERCHECK_*`` variables.
    ResourceGrants: Shared-memory size and Linux capabilities handed to the
        container at launch.
    PortBinding: One host-to-container TCP port mapping.

Override precedence: kwargs > env vars > field defaults.

Example:
    >>> config = SmokeConfig(image="chrome-cdp-novnc:dev")
    >>> config.control_port.host_port
    9222
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_IMAGE = "chrome-cdp-novnc:smoke-test"
DEFAULT_CONTAINER_NAME = "chrome-test"
DEFAULT_TIMEOUT_SECONDS = 120

# Capabilities broad enough to deserve a second look whenever they are granted.
BROAD_CAPABILITIES = frozenset({"SYS_ADMIN", "ALL", "NET_ADMIN", "SYS_PTRACE"})


class PortBinding(BaseModel):
    """A published TCP port (``-p host_port:container_port``)."""

    container_port: int = Field(gt=0, lt=65536)
    host_port: int = Field(gt=0, lt=65536)
    host: str = "localhost"

    @property
    def publish_arg(self) -> str:
        return f"{self.host_port}:{self.container_port}"

    def url(self, path: str = "/") -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"http://{self.host}:{self.host_port}{path}"


class ResourceGrants(BaseModel):
    """Resources granted to the container under test.

    ``SYS_ADMIN`` mirrors what the browser image has historically been run
    with. No single subsystem has been shown to need it; it stays here so it
    can be reviewed and dropped in one place.
    """

    shm_size: str = Field(
        default="2g",
        min_length=1,
        description="Shared memory size (--shm-size)",
    )
    cap_add: list[str] = Field(
        default_factory=lambda: ["SYS_ADMIN"],
        description="Linux capabilities to add (--cap-add)",
    )

    @field_validator("cap_add")
    @classmethod
    def _normalise_caps(cls, value: list[str]) -> list[str]:
        return [c.strip().upper() for c in value if c.strip()]

    @property
    def broad_capabilities(self) -> list[str]:
        return [c for c in self.cap_add if c in BROAD_CAPABILITIES]


class SmokeConfig(BaseModel):
    """Configuration for a single smoke run.

    Example::

        config = SmokeConfig.from_env(timeout_seconds=60)
        runner = SmokeRunner(config)
        result = runner.run()
    """

    # What to test
    image: str = Field(default=DEFAULT_IMAGE, description="Image under test")
    container_name: str = Field(
        default=DEFAULT_CONTAINER_NAME,
        description="Fixed name of the container created for the run",
    )
    grants: ResourceGrants = Field(default_factory=ResourceGrants)
    control_port: PortBinding = Field(
        default_factory=lambda: PortBinding(container_port=9222, host_port=9222),
        description="Chrome DevTools Protocol port",
    )
    bridge_port: PortBinding = Field(
        default_factory=lambda: PortBinding(container_port=6080, host_port=6080),
        description="noVNC / websockify port",
    )

    # Timing
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Deadline for the composite health wait",
    )
    poll_interval: float = Field(default=2.0, gt=0, description="Health poll interval")
    grace_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Delay after HEALTHY so secondary listeners can bind",
    )
    http_timeout: float = Field(default=5.0, gt=0, description="Per-request HTTP timeout")
    cdp_attempts: int = Field(default=3, ge=1, description="Attempts for the CDP probe")
    cdp_retry_delay: float = Field(default=2.0, ge=0, description="Delay between CDP attempts")

    # Probe targets
    cdp_path: str = "/json/list"
    novnc_path: str = "/"
    chrome_binary: str = "/usr/bin/chrome"
    chrome_process: str = "chrome"
    display_process: str = "Xvfb"

    # Diagnostics
    exited_log_tail: int = Field(default=50, ge=1)
    timeout_log_tail: int = Field(default=100, ge=1)

    # Output
    output_dir: Path | None = Field(
        default=None,
        description="Directory for summary.json and container.log (disabled if unset)",
    )
    keep_container: bool = Field(
        default=False,
        description="Skip teardown (for debugging a failed run)",
    )
    verbose: bool = False

    # Internal
    run_id: str = Field(default="", description="Unique run identifier (auto-generated)")

    @model_validator(mode="after")
    def _set_defaults(self) -> SmokeConfig:
        if not self.run_id:
            self.run_id = uuid.uuid4().hex[:12]
        return self

    @property
    def ports(self) -> list[PortBinding]:
        return [self.control_port, self.bridge_port]

    @property
    def cdp_url(self) -> str:
        return self.control_port.url(self.cdp_path)

    @property
    def novnc_url(self) -> str:
        return self.bridge_port.url(self.novnc_path)

    @classmethod
    def from_env(cls, **overrides: Any) -> SmokeConfig:
        """Create config from ``IMAGE_TAG`` and ``BROWSERCHECK_*`` variables."""
        env_map = {
            "image": "IMAGE_TAG",
            "container_name": "BROWSERCHECK_CONTAINER_NAME",
            "timeout_seconds": "BROWSERCHECK_TIMEOUT_SECONDS",
            "poll_interval": "BROWSERCHECK_POLL_INTERVAL",
            "grace_seconds": "BROWSERCHECK_GRACE_SECONDS",
            "output_dir": "BROWSERCHECK_OUTPUT_DIR",
            "keep_container": "BROWSERCHECK_KEEP_CONTAINER",
            "verbose": "BROWSERCHECK_VERBOSE",
        }
        values: dict[str, Any] = {}
        for field_name, env_var in env_map.items():
            env_val = os.environ.get(env_var)
            if env_val is None or env_val == "":
                continue
            if field_name in ("timeout_seconds", "poll_interval", "grace_seconds"):
                values[field_name] = float(env_val)
            elif field_name in ("keep_container", "verbose"):
                values[field_name] = env_val.lower() in ("true", "1", "yes")
            else:
                values[field_name] = env_val

        grants: dict[str, Any] = {}
        if shm := os.environ.get("BROWSERCHECK_SHM_SIZE"):
            grants["shm_size"] = shm
        # Empty means no added capabilities, unlike the other variables
        if (caps := os.environ.get("BROWSERCHECK_CAP_ADD")) is not None:
            grants["cap_add"] = [c for c in caps.split(",") if c.strip()]
        if grants:
            values["grants"] = ResourceGrants(**grants)

        for field_name, env_var, internal in (
            ("control_port", "BROWSERCHECK_CONTROL_PORT", 9222),
            ("bridge_port", "BROWSERCHECK_BRIDGE_PORT", 6080),
        ):
            env_val = os.environ.get(env_var)
            if env_val:
                values[field_name] = PortBinding(container_port=internal, host_port=int(env_val))

        values.update(overrides)
        return cls(**values)
