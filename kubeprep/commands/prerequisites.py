"""Prerequisite installation commands.

Examples:
    kubeprep prereqs install cluster.yaml
    kubeprep prereqs install cluster.yaml --force-install --reboot-grace-period 90
    kubeprep prereqs render cluster.yaml --output-dir ./bundle
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import Config
from ..modules.cluster import load_cluster_spec
from ..modules.errors import KubeprepError
from ..modules.hosts import HostRegistry, ssh_connector
from ..modules.prerequisites import PipelineError, generate_configuration_files, install_prerequisites
from ..modules.probe import probe_hosts
from ..modules.runner import AggregateTaskError, HostTaskError
from ..modules.state import RunContext

logger = logging.getLogger("kubeprep.commands.prerequisites")
console = Console()

app = typer.Typer(help="Install kubeadm prerequisites on cluster hosts")


def build_context(
    manifest: Path,
    force_install: bool = False,
    work_dir: Optional[str] = None,
    reboot_grace_period: Optional[int] = None,
) -> RunContext:
    """Create the run context for a manifest. No connection is opened here."""
    cluster = load_cluster_spec(manifest)
    registry = HostRegistry(
        cluster.build_hosts(),
        ssh_connector(connect_timeout=Config.SSH_TIMEOUT, command_timeout=Config.COMMAND_TIMEOUT),
    )
    return RunContext(
        cluster=cluster,
        registry=registry,
        force_install=force_install,
        work_dir=work_dir or Config.WORK_DIR,
        manifest_path=manifest,
        reboot_grace_period=Config.REBOOT_GRACE_PERIOD if reboot_grace_period is None else reboot_grace_period,
        max_workers=Config.MAX_WORKERS or None,
        logger=logging.getLogger("kubeprep"),
    )


def print_failures(step: str, error: BaseException) -> None:
    """Show every failing host of a step in a table."""
    if isinstance(error, AggregateTaskError):
        failures = error.errors
    elif isinstance(error, HostTaskError):
        failures = [error]
    else:
        console.print(f"[red]❌ {step} failed:[/red] {escape(str(error))}")
        return

    table = Table(title=f"❌ {step}: {len(failures)} host(s) failed")
    table.add_column("Host", style="cyan")
    table.add_column("Address")
    table.add_column("OS")
    table.add_column("Error", style="red")
    for failure in failures:
        table.add_row(str(failure.host.id), failure.host.address, failure.host.os.value, escape(str(failure.cause)))
    console.print(table)


@app.command("install")
def install_cmd(
    manifest: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cluster manifest (YAML)"),
    force_install: bool = typer.Option(False, "--force-install", help="Reinstall packages even if already present"),
    work_dir: str = typer.Option(None, "--work-dir", help="Remote staging directory for configuration files"),
    reboot_grace_period: int = typer.Option(None, "--reboot-grace-period", help="Seconds to wait for rebooted hosts"),
    probe: bool = typer.Option(True, "--probe/--no-probe", help="Detect OS and cluster membership before installing"),
):
    """Prepare every host of the manifest for kubeadm."""
    try:
        Config.validate()
        ctx = build_context(manifest, force_install, work_dir, reboot_grace_period)
    except (KubeprepError, ValueError) as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    logger.info(f"🚀 Preparing {len(ctx.registry)} host(s) of cluster {ctx.cluster.name}")
    try:
        if probe:
            try:
                probe_hosts(ctx)
            except KubeprepError as e:
                raise PipelineError("probe", e) from e
        install_prerequisites(ctx)
    except PipelineError as e:
        print_failures(e.step, e.cause)
        raise typer.Exit(code=1)
    finally:
        ctx.registry.close_all()

    console.print(f"[green]✅ Prerequisites installed on {len(ctx.registry)} host(s)[/green]")


@app.command("render")
def render_cmd(
    manifest: Path = typer.Argument(..., exists=True, dir_okay=False, help="Cluster manifest (YAML)"),
    output_dir: Path = typer.Option(..., "--output-dir", "-o", help="Local directory to write the bundle to"),
    encryption_enabled: bool = typer.Option(False, "--encryption-enabled", help="Treat encryption at rest as already enabled"),
):
    """Generate the configuration bundle locally without contacting any host."""
    try:
        ctx = build_context(manifest)
        ctx.live_encryption_enabled = encryption_enabled
        bundle = generate_configuration_files(ctx)
        written = bundle.write_to(output_dir)
    except (KubeprepError, ValueError) as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    for path in written:
        console.print(f"📄 {path}")
