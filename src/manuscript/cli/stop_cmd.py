"""Job stop command."""

import click
from rich.markup import escape

from manuscript.deployment.container_manager import stop_job
from manuscript.errors import ManuscriptError

from .project_utils import report_error, settings_from_context
from .styles import Messages, console


@click.command()
@click.argument("job_name")
@click.pass_context
def stop(ctx, job_name: str):
    """Stop a running manuscript job.

    Removes the job's containers. Its directory, descriptor, data volume and
    configuration entry are kept, so it can be started again with 'deploy'.

    Examples:

    \b
      $ manuscript-cli stop my-manuscript
    """
    try:
        settings = settings_from_context(ctx)
        with console.status(f"[dim]Stopping {escape(job_name)}...[/dim]", spinner="dots"):
            stop_job(job_name, settings.job_dir(job_name), settings.runtime_config())
    except ManuscriptError as e:
        report_error(f"Failed to stop job: {e}")
        raise click.Abort() from None

    console.print(Messages.success(f"Job {escape(job_name)} stopped"))
