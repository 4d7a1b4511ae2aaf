"""Main CLI entry point for manuscript-cli.

Commands are imported only when invoked so that ``manuscript-cli --help``
does not pay for loading the OpenAI SDK or Jinja2.
"""

import importlib
import logging
import sys

import click

from manuscript import __version__
from manuscript.utils.logger import set_log_level

# Fix Windows console encoding to support Unicode characters (✓, ✗, ⚠️, etc.)
if sys.platform == "win32":
    try:
        import io

        if sys.stdout.encoding.lower() != "utf-8":
            sys.stdout = io.TextIOWrapper(
                sys.stdout.buffer, encoding="utf-8", errors="replace", line_buffering=True
            )
        if sys.stderr.encoding.lower() != "utf-8":
            sys.stderr = io.TextIOWrapper(
                sys.stderr.buffer, encoding="utf-8", errors="replace", line_buffering=True
            )
    except (AttributeError, OSError):
        pass


# command name -> (module, attribute)
COMMANDS = {
    "init": ("manuscript.cli.init_cmd", "init"),
    "deploy": ("manuscript.cli.deploy_cmd", "deploy"),
    "list": ("manuscript.cli.list_cmd", "list_jobs"),
    "stop": ("manuscript.cli.stop_cmd", "stop"),
    "logs": ("manuscript.cli.logs_cmd", "logs"),
    "chat": ("manuscript.cli.chat_cmd", "chat"),
    "version": ("manuscript.cli.version_cmd", "version"),
}

ALIASES = {
    "ini": "init",
    "in": "init",
    "i": "init",
    "d": "deploy",
    "ls": "list",
    "c": "chat",
}


class LazyGroup(click.Group):
    """Click group that lazily loads subcommands only when invoked."""

    def get_command(self, ctx, cmd_name):
        cmd_name = ALIASES.get(cmd_name, cmd_name)
        if cmd_name not in COMMANDS:
            return None

        module_path, attr = COMMANDS[cmd_name]
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)

    def list_commands(self, ctx):
        return list(COMMANDS)

    def resolve_command(self, ctx, args):
        # Report the canonical name so ctx.invoked_subcommand never holds an alias
        _, cmd, args = super().resolve_command(ctx, args)
        return (cmd.name if cmd else None), cmd, args


@click.group(cls=LazyGroup)
@click.version_option(version=__version__, prog_name="manuscript-cli")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="MANUSCRIPT_CONFIG",
    help="Configuration store (default: ~/.manuscript_config.yml or MANUSCRIPT_CONFIG)",
)
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """manuscript-cli - deploy and query Manuscript data jobs locally.

    Use 'manuscript-cli COMMAND --help' for more information on a command.

    Examples:

    \b
      manuscript-cli init                      Create and deploy a new job
      manuscript-cli deploy manuscript.yaml    Deploy an existing descriptor
      manuscript-cli list                      Show jobs and their status
      manuscript-cli logs my-job               Follow a job's logs
      manuscript-cli chat my-job               Ask questions about a job's data
      manuscript-cli stop my-job               Stop a job
    """
    if verbose:
        set_log_level(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def main():
    """Entry point for the manuscript-cli command."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nGoodbye!", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
