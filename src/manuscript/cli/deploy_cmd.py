"""Manuscript deployment command.

This module provides the 'manuscript-cli deploy' command, a thin wrapper around
:func:`manuscript.deployment.pipeline.deploy_manuscript` that shows a spinner
while each step runs and a check mark once it finishes.
"""

import click
from rich.markup import escape

from manuscript.deployment.pipeline import DeploymentState, Step, deploy_manuscript
from manuscript.errors import ManuscriptError, StepFailedError
from manuscript.models import Manuscript
from manuscript.utils.config import ManuscriptSettings

from .project_utils import report_error, settings_from_context
from .styles import Messages, Styles, console


def _run_step_with_spinner(step: Step, state: DeploymentState) -> DeploymentState:
    with console.status(f"[dim]{step.name}...[/dim]", spinner="dots"):
        new_state = step.fn(state)
    console.print(Messages.step(step.name))
    return new_state


def print_deployment_summary(manuscript: Manuscript) -> None:
    console.print(f"\n🎉 Manuscript {Messages.job(escape(manuscript.name))} deployed successfully")
    console.print(f"   {Messages.endpoint('GraphQL endpoint', manuscript.graphql_endpoint)}")
    console.print(
        f"   {Messages.endpoint('Job manager UI', f'http://localhost:{manuscript.port}')}"
    )
    console.print(f"   {Messages.label_value('Postgres', f'localhost:{manuscript.db_port}')}")
    console.print("\nNext steps:", style=Styles.BOLD)
    console.print(f"   • {Messages.command(f'manuscript-cli logs {manuscript.name}')}")
    console.print(f"   • {Messages.command(f'manuscript-cli chat {manuscript.name}')}")
    console.print(f"   • {Messages.command('manuscript-cli list')}\n")


def deploy_with_progress(descriptor_path: str, settings: ManuscriptSettings) -> Manuscript:
    """Run the deployment pipeline with console progress.

    Raises:
        click.Abort: After printing the failed step and its cause
    """
    try:
        state = deploy_manuscript(descriptor_path, settings, step_runner=_run_step_with_spinner)
    except StepFailedError as e:
        report_error(f"{e.step_name} failed: {e.cause}")
        raise click.Abort() from None
    except ManuscriptError as e:
        report_error(f"Deployment failed: {e}")
        raise click.Abort() from None
    except KeyboardInterrupt:
        console.print(Messages.warning("Operation cancelled by user"))
        raise click.Abort() from None

    manuscript = state.require_manuscript()
    print_deployment_summary(manuscript)
    return manuscript


@click.command()
@click.argument("manuscript_file", type=click.Path(dir_okay=False))
@click.option(
    "--env",
    type=click.Choice(["local", "chainbase"]),
    default="local",
    show_default=True,
    help="Environment to deploy to",
)
@click.pass_context
def deploy(ctx, manuscript_file: str, env: str):
    """Deploy a manuscript locally or to the Chainbase network.

    Validates the descriptor, assigns free ports to the job, renders its
    compose file under <base_dir>/manuscript/<name> and starts the containers.

    MANUSCRIPT_FILE: Path to a manuscript.yaml descriptor

    Examples:

    \b
      $ manuscript-cli deploy manuscript.yaml
      $ manuscript-cli d manuscript.yaml --env local
    """
    if env == "chainbase":
        console.print("Deploying to Chainbase network...coming soon!", style=Styles.INFO)
        return

    try:
        settings = settings_from_context(ctx, env=env)
    except ManuscriptError as e:
        report_error(f"Failed to load configuration: {e}")
        raise click.Abort() from None

    console.print(f"🚀 Deploying [path]{escape(manuscript_file)}[/path]\n")
    deploy_with_progress(manuscript_file, settings)


if __name__ == "__main__":
    deploy()
