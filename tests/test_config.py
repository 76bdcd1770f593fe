"""Unit tests for browsercheck.config."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest


class TestSmokeConfig:
    """Tests for SmokeConfig defaults and validation."""

    def test_defaults(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig()
        assert config.image == "chrome-cdp-novnc:smoke-test"
        assert config.container_name == "chrome-test"
        assert config.timeout_seconds == 120
        assert config.poll_interval == 2
        assert config.grace_seconds == 10
        assert config.cdp_attempts == 3
        assert config.cdp_retry_delay == 2
        assert config.output_dir is None
        assert config.keep_container is False
        assert config.run_id  # auto-generated

    def test_run_id_auto_generated(self):
        from browsercheck.config import SmokeConfig

        c1 = SmokeConfig()
        c2 = SmokeConfig()
        assert c1.run_id != c2.run_id
        assert len(c1.run_id) == 12

    def test_explicit_run_id_kept(self):
        from browsercheck.config import SmokeConfig

        assert SmokeConfig(run_id="fixed").run_id == "fixed"

    def test_probe_urls(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig()
        assert config.cdp_url == "http://localhost:9222/json/list"
        assert config.novnc_url == "http://localhost:6080/"
        assert [p.publish_arg for p in config.ports] == ["9222:9222", "6080:6080"]

    def test_rejects_non_positive_timeout(self):
        from pydantic import ValidationError

        from browsercheck.config import SmokeConfig

        with pytest.raises(ValidationError):
            SmokeConfig(timeout_seconds=0)

    def test_rejects_zero_cdp_attempts(self):
        from pydantic import ValidationError

        from browsercheck.config import SmokeConfig

        with pytest.raises(ValidationError):
            SmokeConfig(cdp_attempts=0)


class TestPortBinding:
    def test_url_adds_leading_slash(self):
        from browsercheck.config import PortBinding

        port = PortBinding(container_port=9222, host_port=19222)
        assert port.url("json/version") == "http://localhost:19222/json/version"
        assert port.publish_arg == "19222:9222"

    def test_rejects_out_of_range(self):
        from pydantic import ValidationError

        from browsercheck.config import PortBinding

        with pytest.raises(ValidationError):
            PortBinding(container_port=70000, host_port=9222)


class TestResourceGrants:
    def test_defaults(self):
        from browsercheck.config import ResourceGrants

        grants = ResourceGrants()
        assert grants.shm_size == "2g"
        assert grants.cap_add == ["SYS_ADMIN"]
        assert grants.broad_capabilities == ["SYS_ADMIN"]

    def test_caps_normalised(self):
        from browsercheck.config import ResourceGrants

        grants = ResourceGrants(cap_add=[" sys_admin", "net_bind_service", " "])
        assert grants.cap_add == ["SYS_ADMIN", "NET_BIND_SERVICE"]
        assert grants.broad_capabilities == ["SYS_ADMIN"]

    def test_no_caps(self):
        from browsercheck.config import ResourceGrants

        assert ResourceGrants(cap_add=[]).broad_capabilities == []

    def test_rejects_empty_shm_size(self):
        from pydantic import ValidationError

        from browsercheck.config import ResourceGrants

        with pytest.raises(ValidationError):
            ResourceGrants(shm_size="")


class TestFromEnv:
    """Tests for SmokeConfig.from_env()."""

    @patch.dict(os.environ, {}, clear=True)
    def test_from_env_defaults(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig.from_env()
        assert config.image == "chrome-cdp-novnc:smoke-test"
        assert config.grants.cap_add == ["SYS_ADMIN"]

    @patch.dict(
        os.environ,
        {
            "IMAGE_TAG": "chrome-cdp-novnc:ci",
            "BROWSERCHECK_CONTAINER_NAME": "chrome-ci",
            "BROWSERCHECK_TIMEOUT_SECONDS": "60",
            "BROWSERCHECK_GRACE_SECONDS": "0",
            "BROWSERCHECK_KEEP_CONTAINER": "yes",
            "BROWSERCHECK_OUTPUT_DIR": "/tmp/results",
        },
        clear=True,
    )
    def test_from_env_custom(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig.from_env()
        assert config.image == "chrome-cdp-novnc:ci"
        assert config.container_name == "chrome-ci"
        assert config.timeout_seconds == 60
        assert config.grace_seconds == 0
        assert config.keep_container is True
        assert config.output_dir == Path("/tmp/results")

    @patch.dict(os.environ, {"IMAGE_TAG": ""}, clear=True)
    def test_empty_image_tag_ignored(self):
        from browsercheck.config import SmokeConfig

        assert SmokeConfig.from_env().image == "chrome-cdp-novnc:smoke-test"

    @patch.dict(os.environ, {"BROWSERCHECK_SHM_SIZE": ""}, clear=True)
    def test_empty_shm_size_ignored(self):
        from browsercheck.config import SmokeConfig

        grants = SmokeConfig.from_env().grants
        assert grants.shm_size == "2g"
        assert grants.cap_add == ["SYS_ADMIN"]

    @patch.dict(
        os.environ,
        {
            "BROWSERCHECK_SHM_SIZE": "1g",
            "BROWSERCHECK_CAP_ADD": "",
            "BROWSERCHECK_CONTROL_PORT": "19222",
            "BROWSERCHECK_BRIDGE_PORT": "16080",
        },
        clear=True,
    )
    def test_grants_and_ports_from_env(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig.from_env()
        assert config.grants.shm_size == "1g"
        assert config.grants.cap_add == []
        assert config.control_port.container_port == 9222
        assert config.control_port.host_port == 19222
        assert config.novnc_url == "http://localhost:16080/"

    @patch.dict(os.environ, {"IMAGE_TAG": "from-env:1"}, clear=True)
    def test_overrides_win(self):
        from browsercheck.config import SmokeConfig

        config = SmokeConfig.from_env(image="from-kwargs:2")
        assert config.image == "from-kwargs:2"
