"""Version command."""

import platform
import subprocess
import sys

import click
from rich.markup import escape

from manuscript import __version__
from manuscript.deployment.runtime_helper import PROBE_TIMEOUT, get_runtime_binary
from manuscript.errors import ManuscriptError

from .styles import Messages, console


def container_runtime_version(config: dict | None = None) -> str:
    """``<runtime> --version`` output, or a short reason it is unavailable."""
    try:
        binary = get_runtime_binary(config)
        result = subprocess.run(
            [binary, "--version"], capture_output=True, text=True, timeout=PROBE_TIMEOUT
        )
    except (ManuscriptError, OSError, subprocess.TimeoutExpired) as e:
        return f"not available ({e})"
    if result.returncode != 0:
        return "not available"
    return result.stdout.strip()


@click.command()
@click.option("--verbose", "-v", is_flag=True, help="Display detailed version information")
def version(verbose: bool):
    """Show the version of manuscript-cli.

    With -v, also shows Python, platform and container engine details.
    """
    console.print(f"manuscript-cli [job]{__version__}[/job]")
    if not verbose:
        return

    console.print(Messages.label_value("Python", sys.version.split()[0]))
    console.print(Messages.label_value("Platform", f"{platform.system()} {platform.machine()}"))
    console.print(Messages.label_value("OS release", platform.release()))
    console.print(Messages.label_value("Container engine", escape(container_runtime_version())))
