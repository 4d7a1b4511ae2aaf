"""Job listing command."""

import click
from rich.table import Table

from manuscript.deployment.container_manager import JobState, job_statuses, list_containers
from manuscript.deployment.loader import find_descriptors
from manuscript.errors import ManuscriptError
from manuscript.models import Manuscript
from manuscript.utils.config import ManuscriptSettings

from .project_utils import report_error, settings_from_context
from .styles import Styles, console

STATE_ICONS = {
    JobState.RUNNING: "🟢",
    JobState.WARNING: "🟡",
    JobState.FAILED: "🔴",
    JobState.STOPPED: "⚫",
    JobState.OTHER: "⚪️",
}


def collect_manuscripts(settings: ManuscriptSettings, directory: str | None) -> list[Manuscript]:
    """Jobs from ``directory``, or from the store plus the default jobs directory."""
    if directory is not None:
        return find_descriptors(directory)

    manuscripts = settings.open_store().manuscripts
    known = {ms.name for ms in manuscripts}
    if settings.jobs_dir.is_dir():
        manuscripts.extend(ms for ms in find_descriptors(settings.jobs_dir) if ms.name not in known)
    return manuscripts


@click.command("list")
@click.argument("directory", required=False, type=click.Path(file_okay=False))
@click.pass_context
def list_jobs(ctx, directory: str | None):
    """List all manuscript jobs.

    Without DIRECTORY, jobs come from the configuration store and
    <base_dir>/manuscript. With DIRECTORY, every DIRECTORY/<job>/manuscript.yaml
    is listed.

    Status indicators:

    \b
      🟢 Running - Job is active and processing data
      🟡 Warning - Job needs attention
      🔴 Failed  - Job encountered an error
      ⚫ Stopped - Job was stopped
      ⚪️ Other   - Various other states

    Examples:

    \b
      $ manuscript-cli ls
      $ manuscript-cli list /path/to/manuscripts
    """
    try:
        settings = settings_from_context(ctx)
        manuscripts = collect_manuscripts(settings, directory)
        if not manuscripts:
            console.print("No manuscript jobs found.", style=Styles.WARNING)
            console.print("Create one with [command]manuscript-cli init[/command]")
            return
        containers = list_containers(settings.runtime_config(), all_containers=True)
    except ManuscriptError as e:
        report_error(f"Failed to list jobs: {e}")
        raise click.Abort() from None

    table = Table(show_header=True, header_style="bold cyan", border_style="dim")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("State")
    table.add_column("Status / Uptime", style="white")
    table.add_column("GraphQL Endpoint", style=Styles.ENDPOINT)

    for index, row in enumerate(job_statuses(manuscripts, containers), start=1):
        table.add_row(
            str(index),
            row.name,
            f"{STATE_ICONS[row.state]} {row.state.value}",
            row.status or "-",
            row.endpoint or "-",
        )

    console.print(table)


if __name__ == "__main__":
    list_jobs()
