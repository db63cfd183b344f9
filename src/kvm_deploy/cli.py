#!/usr/bin/env python3
"""
Command-line entry point.

    sudo kvm-deploy                  # deploy, prompting before destructive steps
    sudo kvm-deploy --force          # deploy unattended
    sudo kvm-deploy --cleanup        # only remove existing VMs and workspaces

Flags are independent: ``--cleanup --force`` removes everything without
prompting. Exit code is 0 on success and 1 on any failure or declined prompt.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from kvm_deploy.config import RunConfig, Settings
from kvm_deploy.deployer import Deployer, format_duration
from kvm_deploy.exceptions import CommandError, DeployError
from kvm_deploy.models import DeploymentReport

app = typer.Typer(
    name="kvm-deploy",
    help="Deploy a multi-node appliance cluster on a local KVM host",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"


def confirm(question: str) -> bool:
    """Ask a yes/no question on the terminal; anything but yes declines."""
    try:
        return typer.confirm(f"[PROMPT] {question}", default=False)
    except typer.Abort:
        return False


def print_summary(report: DeploymentReport) -> None:
    table = Table(title="Deployed VMs")
    table.add_column("Hostname", style="cyan")
    table.add_column("VNC Port", style="green")
    ports = {e.hostname: e.port for e in report.endpoints}
    for hostname in report.provisioned:
        port = ports.get(hostname)
        table.add_row(hostname, str(port) if port is not None else "-")
    console.print(table)
    console.print(f"✅ Deployment complete in {format_duration(report.elapsed_seconds)}")


@app.command()
def main(
    force: bool = typer.Option(False, "--force", help="Skip all interactive prompts (non-interactive mode)"),
    cleanup: bool = typer.Option(False, "--cleanup", help="Only remove existing VMs and directories"),
    isolate_failures: bool = typer.Option(
        False, "--isolate-failures", help="Keep deploying remaining nodes when one VM fails"
    ),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Cluster definition file"),
    image: Optional[Path] = typer.Option(None, "--image", help="Appliance base disk image"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Parent directory for node workspaces"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Deploy the cluster described by the definition file."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)

    overrides: Dict[str, Any] = {}
    if config_file is not None:
        overrides["installer_source"] = config_file
    if image is not None:
        overrides["appliance_image"] = image
    if work_dir is not None:
        overrides["work_dir"] = work_dir

    run_config = RunConfig(force=force, cleanup_only=cleanup, isolate_failures=isolate_failures)

    try:
        settings = Settings(**overrides)
        deployer = Deployer.from_settings(settings, run_config, prompt=confirm)
        if run_config.cleanup_only:
            deployer.cleanup()
            return
        report = deployer.deploy()
    except (DeployError, CommandError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    if not report.success:
        for hostname, reason in report.failures.items():
            logger.error(f"{hostname}: {reason}")
        raise typer.Exit(1)

    print_summary(report)


if __name__ == "__main__":
    app()
