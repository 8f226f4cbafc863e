import logging
import sys

import typer

from kubeprep import __version__
from kubeprep.commands import prerequisites
from kubeprep.logging import setup_logging

app = typer.Typer(
    help="Prepare hosts for a kubeadm-based Kubernetes cluster.",
    no_args_is_help=True,
)
app.add_typer(prerequisites.app, name="prereqs")

# Set by the callback so the __main__ guard knows how much to print
debug_mode = False


def _print_version(value: bool):
    if value:
        typer.echo(f"kubeprep {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show the version and exit"
    ),
):
    """kubeprep - install kubeadm prerequisites across a fleet of hosts."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    logging.getLogger("kubeprep").debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            logging.exception(f"Unhandled exception: {e}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
