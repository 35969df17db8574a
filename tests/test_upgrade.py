"""
Tests for update orchestration (gobin_update/upgrade.py).
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gobin_update.artefact import TOOLCHAIN_MODULE
from gobin_update.buildinfo import BuildMetadata
from gobin_update.collectors import CommandVersionSource, ProxyVersionSource, ToolchainVersionSource
from gobin_update.config import Config
from gobin_update.environment import GoEnvironment
from gobin_update.errors import InstallError, NetworkError
from gobin_update.gocmd import GoCommand
from gobin_update.installer import Installer
from gobin_update.upgrade import (
    FAILED,
    MODE_LIST,
    MODE_UPDATE,
    OUTDATED,
    REJECTED,
    SKIPPED,
    UP_TO_DATE,
    UPDATED,
    ArtefactOutcome,
    RunResult,
    UpdateOrchestrator,
)


def metadata(name="tool", version="v1.0.0", go_version="go1.21.0"):
    return BuildMetadata(
        binary_path=f"/home/user/go/bin/{name}",
        module_path=f"example.com/{name}",
        install_path=f"example.com/{name}/cmd/{name}",
        installed_version=version,
        go_version=go_version,
    )


def orchestrator(latest="v1.0.0", config=None, toolchain_source=None, bin_dir=Path("/home/user/go/bin")):
    version_source = MagicMock()
    if isinstance(latest, dict):
        version_source.resolve.side_effect = lambda module: latest[module]
    else:
        version_source.resolve.return_value = latest
    return UpdateOrchestrator(
        config=config or Config(),
        installer=MagicMock(),
        version_source=version_source,
        toolchain_source=toolchain_source or MagicMock(),
        bin_dir=bin_dir,
    )


class TestScenarios:
    """End-to-end behavior with stubbed sources and installer."""

    def test_up_to_date_not_installed(self):
        orch = orchestrator(latest="v1.0.0")

        result = orch.run([metadata()], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [UP_TO_DATE]
        assert result.artefacts[0].needs_update() is False
        orch.installer.install.assert_not_called()

    def test_outdated_is_updated(self):
        orch = orchestrator(latest="v1.2.0")

        result = orch.run([metadata()], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [UPDATED]
        orch.installer.install.assert_called_once_with("example.com/tool/cmd/tool", "v1.2.0", ())

    def test_outdated_is_listed(self):
        orch = orchestrator(latest="v1.2.0")

        result = orch.run([metadata()], MODE_LIST)

        assert [o.status for o in result.outcomes] == [OUTDATED]
        assert result.rows() == [("example.com/tool/cmd/tool", "v1.0.0", "v1.2.0")]
        orch.installer.install.assert_not_called()

    def test_toolchain_target_from_release_endpoint(self, tmp_path):
        toolchain_source = ToolchainVersionSource(
            "https://go.dev/VERSION?m=text",
            http_get=lambda url, timeout=None: b"go1.22.0\nrelease notes...",
        )
        orch = orchestrator(toolchain_source=toolchain_source, bin_dir=tmp_path)
        wrapper = BuildMetadata(
            binary_path=str(tmp_path / "go1.21.0"),
            module_path=TOOLCHAIN_MODULE,
            install_path="golang.org/dl/go1.21.0",
            installed_version="v0.0.0-20230808212800-a7db6ad9d07a",
            go_version="go1.21.0",
        )

        result = orch.run([wrapper], MODE_LIST)

        artefact = result.artefacts[0]
        assert artefact.installed_version == "go1.21.0"
        assert artefact.target_version == "go1.22.0"
        assert result.rows() == [("golang.org/dl/go1.22.0", "go1.21.0", "go1.22.0")]


class TestPartialFailure:
    """Tests for per-candidate failure isolation."""

    def test_install_failure_does_not_stop_run(self):
        orch = orchestrator(latest="v1.2.0")
        orch.installer.install.side_effect = [InstallError("go install failed"), None]

        result = orch.run([metadata("first"), metadata("second")], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [FAILED, UPDATED]
        assert result.failures[0].error_message == "go install failed"
        assert orch.installer.install.call_count == 2

    def test_old_toolchain_rejected(self):
        orch = orchestrator(latest="v1.2.0", config=Config(min_go_version="go1.18"))

        result = orch.run([metadata("old", go_version="go1.16"), metadata("new")], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [REJECTED, UPDATED]
        orch.version_source.resolve.assert_called_once_with("example.com/new")

    def test_resolution_failure_skipped(self):
        orch = orchestrator(latest="v1.2.0")
        orch.version_source.resolve.side_effect = [NetworkError("proxy down", status=502), "v1.2.0"]

        result = orch.run([metadata("first"), metadata("second")], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [SKIPPED, UPDATED]
        assert "proxy down" in result.skipped[0].error_message
        assert result.failures == ()

    def test_unexecutable_go_does_not_stop_run(self, tmp_path):
        """Test an OS-level launch failure is recorded per candidate."""
        go = tmp_path / "go"
        go.write_text("#!/bin/sh\nexit 0\n")
        go.chmod(0o644)
        orch = orchestrator(latest="v1.2.0", bin_dir=tmp_path)
        orch.installer = Installer(GoCommand(str(go), bin_dir=tmp_path))

        result = orch.run([metadata("first"), metadata("second")], MODE_UPDATE)

        assert [o.status for o in result.outcomes] == [FAILED, FAILED]
        assert all(o.error_message.startswith("go install example.com/") for o in result.failures)


class TestDryRun:
    """Tests for dry-run updates."""

    def test_nothing_installed(self):
        orch = orchestrator(latest="v1.2.0", config=Config(dry_run=True))
        orch.installer.install_command.return_value = ("go", "install", "example.com/tool/cmd/tool@v1.2.0")

        result = orch.run([metadata()], MODE_UPDATE)

        assert result.dry_run is True
        assert [o.status for o in result.outcomes] == [OUTDATED]
        orch.installer.install.assert_not_called()

    def test_list_mode_is_not_dry_run(self):
        orch = orchestrator(latest="v1.2.0", config=Config(dry_run=True))
        assert orch.run([metadata()], MODE_LIST).dry_run is False


class TestRunResult:
    """Tests for RunResult aggregation."""

    def test_empty_run(self):
        result = orchestrator().run([], MODE_UPDATE)
        assert result.outcomes == ()
        assert result.rows() == []

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="Invalid mode"):
            orchestrator().run([], "upgrade")

    def test_summary_and_dict(self):
        result = RunResult(
            mode=MODE_UPDATE,
            outcomes=(
                ArtefactOutcome("/bin/a", UPDATED),
                ArtefactOutcome("/bin/b", FAILED, error_message="boom"),
                ArtefactOutcome("/bin/c", REJECTED, error_message="too old"),
            ),
            duration_seconds=1.25,
        )
        summary = result.summary()
        assert "Updated: 1" in summary
        assert "Failed: 1" in summary
        assert "Skipped: 1" in summary

        data = result.to_dict()
        assert data["mode"] == "update"
        assert [o["status"] for o in data["outcomes"]] == [UPDATED, FAILED, REJECTED]
        assert data["outcomes"][1]["error_message"] == "boom"


class TestFromEnvironment:
    """Tests for production wiring."""

    def test_proxy_wiring(self, tmp_path):
        config = Config(log_level="INFO", timeout_seconds=20)
        orch = UpdateOrchestrator.from_environment(config, GoEnvironment(tmp_path, "/usr/bin/go"))

        assert isinstance(orch.version_source, ProxyVersionSource)
        assert orch.version_source.timeout == 20
        assert orch.installer.log_level == "INFO"
        assert orch.installer.gocmd.env()["GOBIN"] == str(tmp_path)
        assert orch.toolchain_source.url == config.toolchain_version_url
        assert orch.bin_dir == tmp_path

    def test_list_wiring(self, tmp_path):
        orch = UpdateOrchestrator.from_environment(
            Config(version_source="list"), GoEnvironment(tmp_path, "/usr/bin/go"),
        )
        assert isinstance(orch.version_source, CommandVersionSource)
