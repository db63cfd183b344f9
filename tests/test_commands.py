"""Tests for commands module."""

import logging
import subprocess
from unittest import mock

import pytest

from kvm_deploy.commands import run_command, which
from kvm_deploy.exceptions import CommandError


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@mock.patch("kvm_deploy.commands.subprocess.run")
def test_run_command_success(mock_run):
    """Test stdout is captured and the call is made without a shell."""
    mock_run.return_value = _completed(stdout="Network bridge defined\n")

    result = run_command(["virsh", "net-define", "/tmp/x.xml"], timeout=30)

    assert result.ok
    assert result.stdout == "Network bridge defined\n"
    mock_run.assert_called_once_with(
        ["virsh", "net-define", "/tmp/x.xml"], capture_output=True, text=True, timeout=30
    )


@mock.patch("kvm_deploy.commands.subprocess.run")
def test_run_command_logs_each_line(mock_run, caplog):
    """Test every non-empty output line is re-logged at INFO."""
    mock_run.return_value = _completed(stdout="line one\n\nline two\n", stderr="warn line\n")

    with caplog.at_level(logging.INFO, logger="kvm_deploy.commands"):
        run_command(["qemu-img", "create"])

    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert messages == ["line one", "line two", "warn line"]


@mock.patch("kvm_deploy.commands.subprocess.run")
def test_run_command_quiet(mock_run, caplog):
    """Test echo=False keeps output out of the log."""
    mock_run.return_value = _completed(stdout="secret\n")

    with caplog.at_level(logging.INFO, logger="kvm_deploy.commands"):
        run_command(["virsh", "list"], echo=False)

    assert "secret" not in caplog.text


@mock.patch("kvm_deploy.commands.subprocess.run")
def test_run_command_failure_raises(mock_run):
    """Test non-zero exit raises CommandError with return code and stderr."""
    mock_run.return_value = _completed(returncode=1, stderr="error: failed to get domain 'x'\n")

    with pytest.raises(CommandError) as exc_info:
        run_command(["virsh", "dominfo", "x"])

    assert exc_info.value.return_code == 1
    assert "failed to get domain" in exc_info.value.stderr


@mock.patch("kvm_deploy.commands.subprocess.run")
def test_run_command_failure_unchecked(mock_run):
    """Test check=False returns the failed result."""
    mock_run.return_value = _completed(returncode=1)

    result = run_command(["virsh", "dominfo", "x"], check=False)

    assert not result.ok
    assert result.returncode == 1


@mock.patch("kvm_deploy.commands.subprocess.run", side_effect=FileNotFoundError)
def test_run_command_missing_executable(mock_run):
    """Test a missing binary becomes a CommandError."""
    with pytest.raises(CommandError, match="command not found"):
        run_command(["virt-install", "--version"])


@mock.patch(
    "kvm_deploy.commands.subprocess.run",
    side_effect=subprocess.TimeoutExpired(cmd="virt-install", timeout=5),
)
def test_run_command_timeout(mock_run):
    """Test a timeout becomes a CommandError."""
    with pytest.raises(CommandError, match="timed out"):
        run_command(["virt-install"], timeout=5)


@mock.patch("kvm_deploy.commands.shutil.which", return_value="/usr/bin/virsh")
def test_which(mock_which):
    assert which("virsh") == "/usr/bin/virsh"
    mock_which.assert_called_once_with("virsh")
