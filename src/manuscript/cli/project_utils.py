"""Helpers shared by CLI commands.

Settings are resolved per command from the global ``--config`` option so
that a malformed configuration store only breaks the commands that read it.
"""

import logging
import os
import traceback

import click
from rich.markup import escape

from manuscript.deployment.loader import DESCRIPTOR_FILENAME, load_manuscript
from manuscript.errors import JobNotFoundError
from manuscript.models import Manuscript
from manuscript.utils.config import ManuscriptSettings, load_settings
from manuscript.utils.logger import set_log_level

from .styles import Messages, Styles, console


def settings_from_context(ctx: click.Context, env: str = "local") -> ManuscriptSettings:
    """Build :class:`ManuscriptSettings` from the root command's options.

    Args:
        ctx: Click context of the running command
        env: Deployment environment selected on the command line

    Raises:
        ConfigurationError: If the configuration store is malformed
    """
    obj = ctx.find_root().obj or {}
    settings = load_settings(obj.get("config_path"), env=env)
    if settings.log_level and not obj.get("verbose") and not os.environ.get("MANUSCRIPT_LOG_LEVEL"):
        level = logging.getLevelName(str(settings.log_level).upper())
        if isinstance(level, int):
            set_log_level(level)
    return settings


def resolve_job(settings: ManuscriptSettings, name: str) -> Manuscript:
    """Find a job by name in the store, falling back to its job directory.

    Raises:
        JobNotFoundError: If neither the store nor ``<jobs_dir>/<name>`` knows the job
    """
    manuscript = settings.open_store().find_manuscript(name)
    if manuscript is not None:
        return manuscript

    descriptor = settings.job_dir(name) / DESCRIPTOR_FILENAME
    if descriptor.is_file():
        return load_manuscript(descriptor)

    raise JobNotFoundError(name)


def report_error(message: str) -> None:
    """Print a failure line, plus the traceback when DEBUG is set."""
    console.print(Messages.error(escape(message)))
    if os.environ.get("DEBUG"):
        console.print(traceback.format_exc(), style=Styles.DIM)
