"""Tests for the command-line interface."""

from unittest import mock

import pytest
from typer.testing import CliRunner

from kvm_deploy.cli import app
from kvm_deploy.deployer import Deployer
from kvm_deploy.exceptions import CommandError
from kvm_deploy.fakes import FakeHostProbe, FakeHypervisor, FakeMedium
from kvm_deploy.models import DomainState

runner = CliRunner()


@pytest.fixture
def fake_host_env(monkeypatch, tmp_path, hypervisor):
    """Route the CLI's deployer onto in-memory collaborators."""
    monkeypatch.chdir(tmp_path)
    built = {}

    def from_settings(settings, run_config, prompt):
        built["settings"] = settings
        built["run_config"] = run_config
        return Deployer(
            settings,
            run_config,
            hypervisor=hypervisor,
            medium=FakeMedium(),
            host=FakeHostProbe(),
            prompt=prompt,
        )

    with mock.patch("kvm_deploy.cli.Deployer.from_settings", side_effect=from_settings):
        yield built


def _args(definition_file, appliance_image, work_dir, *extra):
    return [
        "--config", str(definition_file),
        "--image", str(appliance_image),
        "--work-dir", str(work_dir),
        *extra,
    ]


def test_help_exits_zero():
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "--force" in result.output
    assert "--cleanup" in result.output


def test_force_deploy(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--force"))

    assert result.exit_code == 0, result.output
    assert sorted(hypervisor.list_domains()) == ["hs-anvil1", "hs-dsx1"]
    assert "Deployment complete" in result.output
    assert fake_host_env["run_config"].force is True
    assert fake_host_env["settings"].installer_source == definition_file


def test_cleanup_only(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    hypervisor.add_domain("hs-dsx1", DomainState.RUNNING)

    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--cleanup"), input="y\n")

    assert result.exit_code == 0, result.output
    assert hypervisor.list_domains() == []
    assert not any(op == "install_domain" for op, _ in hypervisor.calls)


def test_cleanup_with_force_does_not_prompt(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    """Test --cleanup and --force combine instead of one winning."""
    hypervisor.add_domain("hs-dsx1", DomainState.RUNNING)

    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--cleanup", "--force"))

    assert result.exit_code == 0, result.output
    assert "[PROMPT]" not in result.output
    assert hypervisor.list_domains() == []
    assert fake_host_env["run_config"].cleanup_only and fake_host_env["run_config"].force


def test_cleanup_without_vms(fake_host_env, definition_file, appliance_image, work_dir):
    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--cleanup"))

    assert result.exit_code == 0, result.output


def test_cleanup_with_leftover_workspace_and_no_vms(fake_host_env, definition_file, appliance_image, work_dir):
    """Test a workspace without a VM neither prompts nor fails the cleanup."""
    leftover = work_dir / "hs-dsx1"
    leftover.mkdir(parents=True)

    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--cleanup"))

    assert result.exit_code == 0, result.output
    assert "[PROMPT]" not in result.output
    assert leftover.is_dir()


def test_declined_prompt_exits_one(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    hypervisor.add_domain("hs-dsx1", DomainState.RUNNING)

    result = runner.invoke(app, _args(definition_file, appliance_image, work_dir), input="n\n")

    assert result.exit_code == 1
    assert hypervisor.domain_exists("hs-dsx1")


def test_missing_definition_exits_one(fake_host_env, tmp_path, appliance_image, work_dir):
    result = runner.invoke(app, _args(tmp_path / "missing.yaml", appliance_image, work_dir, "--force"))

    assert result.exit_code == 1


def test_isolated_failure_exits_one(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    hypervisor.fail("install_domain", "hs-dsx1")

    result = runner.invoke(
        app, _args(definition_file, appliance_image, work_dir, "--force", "--isolate-failures")
    )

    assert result.exit_code == 1
    assert hypervisor.domain_exists("hs-anvil1")
    assert "Deployment complete" not in result.output


def test_missing_host_tool_exits_one(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    """Test an unavailable ``ip`` is logged and exits 1 instead of escaping."""
    with mock.patch.object(FakeHostProbe, "bridge_exists", side_effect=CommandError("ip: command not found")):
        result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--force"))

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert hypervisor.list_domains() == []


def test_hypervisor_timeout_exits_one(fake_host_env, hypervisor, definition_file, appliance_image, work_dir):
    with mock.patch.object(hypervisor, "domain_exists", side_effect=CommandError("virsh: timed out")):
        result = runner.invoke(app, _args(definition_file, appliance_image, work_dir, "--cleanup"))

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
