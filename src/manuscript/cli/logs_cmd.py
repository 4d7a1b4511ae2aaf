"""Job logs command."""

import click

from manuscript.deployment.container_manager import show_job_logs
from manuscript.errors import ManuscriptError

from .project_utils import report_error, resolve_job, settings_from_context


@click.command()
@click.argument("job_name")
@click.option("--tail", type=click.IntRange(min=0), help="Only show the last N lines")
@click.option("--no-follow", is_flag=True, help="Print the current logs and exit")
@click.pass_context
def logs(ctx, job_name: str, tail: int | None, no_follow: bool):
    """View logs of a manuscript job in real time.

    Streams the job manager container's output until interrupted.

    Examples:

    \b
      $ manuscript-cli logs my-manuscript
      $ manuscript-cli logs my-manuscript --tail 100 --no-follow
    """
    try:
        settings = settings_from_context(ctx)
        manuscript = resolve_job(settings, job_name)
        show_job_logs(manuscript, settings.runtime_config(), follow=not no_follow, tail=tail)
    except (ManuscriptError, OSError) as e:
        report_error(f"Failed to show logs: {e}")
        raise click.Abort() from None
