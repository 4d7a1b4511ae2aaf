"""Manuscript initialization command.

This module provides the 'manuscript-cli init' command which writes a new
manuscript.yaml from the bundled template and deploys it. Values not given
as options are asked for interactively with questionary.
"""

from pathlib import Path

import click
import questionary
from rich.markup import escape

from manuscript.deployment.container_manager import DESCRIPTOR_TEMPLATE_FILENAME, render_template
from manuscript.deployment.loader import DESCRIPTOR_FILENAME
from manuscript.errors import ManuscriptError
from manuscript.models import JOB_NAME_RE

from .deploy_cmd import deploy_with_progress
from .project_utils import report_error, settings_from_context
from .styles import Messages, console, get_questionary_style

CHAINS = [
    "ethereum",
    "bsc",
    "polygon",
    "arbitrum",
    "optimism",
    "base",
    "avalanche",
    "zksync",
]

# table -> primary key of the sink table
TABLES = {
    "blocks": "block_number",
    "transactions": "hash",
    "transaction_logs": "transaction_hash,log_index",
}

SINKS = ["postgres", "print"]


def validate_job_name(name: str) -> bool | str:
    """Questionary validator; compose project names are lowercase."""
    if not name:
        return "Name cannot be empty"
    if not JOB_NAME_RE.match(name):
        return "Use lowercase letters, digits, '-' and '_', starting with a letter or digit"
    return True


def _ask(question) -> str:
    answer = question.ask()
    if answer is None:
        raise KeyboardInterrupt
    return answer


def build_descriptor_context(
    name: str, chain: str, table: str, sink: str, primary_key: str | None, parallelism: int
) -> dict:
    return {
        "name": name,
        "parallelism": parallelism,
        "source_name": f"{chain}_{table}",
        "chain": chain,
        "table": table,
        "transform_name": f"{chain}_{table}_transform",
        "sink_name": f"{chain}_{table}_sink",
        "sink": sink,
        "primary_key": primary_key or TABLES.get(table, "block_number"),
    }


@click.command()
@click.option("--name", "-n", help="Job name (also the compose project name)")
@click.option("--chain", type=click.Choice(CHAINS), help="Source chain")
@click.option("--table", type=click.Choice(list(TABLES)), help="Source table")
@click.option("--sink", type=click.Choice(SINKS), help="Output sink")
@click.option("--primary-key", help="Primary key of the sink table (default depends on table)")
@click.option("--parallelism", type=click.IntRange(min=1), default=1, show_default=True)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False),
    help="Directory for manuscript.yaml (default: <base_dir>/manuscript/<name>)",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing manuscript.yaml")
@click.option("--no-deploy", is_flag=True, help="Only write manuscript.yaml, do not deploy it")
@click.pass_context
def init(
    ctx,
    name: str | None,
    chain: str | None,
    table: str | None,
    sink: str | None,
    primary_key: str | None,
    parallelism: int,
    output_dir: str | None,
    force: bool,
    no_deploy: bool,
):
    """Initialize and start a new manuscript job.

    You'll be prompted for anything not given as an option:

    \b
      - Job name
      - Chain
      - Table
      - Output sink

    Examples:

    \b
      $ manuscript-cli init
      $ manuscript-cli i --name eth-blocks --chain ethereum --table blocks --sink postgres
      $ manuscript-cli init -n eth-blocks --chain ethereum --table blocks --sink print --no-deploy
    """
    try:
        settings = settings_from_context(ctx)
    except ManuscriptError as e:
        report_error(f"Failed to load configuration: {e}")
        raise click.Abort() from None

    style = get_questionary_style()
    try:
        if name is None:
            name = _ask(
                questionary.text(
                    "Job name:", default="demo", validate=validate_job_name, style=style
                )
            )
        elif validate_job_name(name) is not True:
            raise click.BadParameter(str(validate_job_name(name)), param_hint="--name")

        if chain is None:
            chain = _ask(questionary.select("Chain:", choices=CHAINS, style=style))
        if table is None:
            table = _ask(questionary.select("Table:", choices=list(TABLES), style=style))
        if sink is None:
            sink = _ask(questionary.select("Output sink:", choices=SINKS, style=style))
    except KeyboardInterrupt:
        console.print(Messages.warning("Initialization cancelled"))
        raise click.Abort() from None

    target_dir = Path(output_dir) if output_dir else settings.job_dir(name)
    descriptor = target_dir / DESCRIPTOR_FILENAME
    if descriptor.exists() and not force:
        report_error(f"{descriptor} already exists, use --force to overwrite it")
        raise click.Abort()

    context = build_descriptor_context(name, chain, table, sink, primary_key, parallelism)
    try:
        descriptor = render_template(DESCRIPTOR_TEMPLATE_FILENAME, context, target_dir)
    except OSError as e:
        report_error(f"Failed to write {descriptor}: {e}")
        raise click.Abort() from None

    console.print(Messages.success(f"Created {escape(str(descriptor))}"))

    if no_deploy:
        console.print(
            f"\nDeploy it with: {Messages.command(f'manuscript-cli deploy {escape(str(descriptor))}')}"
        )
        return

    console.print()
    deploy_with_progress(str(descriptor), settings)


if __name__ == "__main__":
    init()
