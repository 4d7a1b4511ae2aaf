"""Container management for manuscript jobs.

Each deployed job owns a directory ``<base_dir>/manuscript/<name>`` holding its
descriptor and a compose file rendered from ``docker-compose.yml.j2``. The
compose project is named after the job, so its containers are
``<name>-jobmanager-1``, ``<name>-taskmanager-1``, ``<name>-postgres-1`` and
``<name>-hasura-1``.

Key Features:
    - Jinja2 rendering of bundled templates with the manuscript as context
    - Container listing that understands Docker (JSON lines) and Podman (JSON array)
    - Start, status polling, stop and logs for a single job
    - Job status summaries for ``manuscript-cli list``

Examples:
    Render and start a job::

        >>> compose_file = render_compose_file(ms, job_dir)
        >>> start_containers(compose_file, settings.runtime_config())
        >>> check_container_status(ms, settings.runtime_config(), timeout=60)

.. seealso::
   :mod:`manuscript.deployment.runtime_helper` : Engine detection used here
   :mod:`manuscript.deployment.pipeline` : Deployment steps built on these functions
"""

import json
import os
import re
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from manuscript.deployment.runtime_helper import (
    get_ps_command,
    get_runtime_binary,
    get_runtime_command,
)
from manuscript.errors import ContainerRuntimeError, JobNotFoundError
from manuscript.models import Manuscript
from manuscript.utils.logger import get_logger

logger = get_logger("containers")

TEMPLATE_FILENAME = "docker-compose.yml.j2"
COMPOSE_FILE_NAME = "docker-compose.yml"
DESCRIPTOR_TEMPLATE_FILENAME = "manuscript.yaml.j2"

DEFAULT_IMAGES = {
    "node": "repository.chainbase.com/manuscript-node/manuscript-node:latest",
    "postgres": "postgres:16.4",
    "graphql": "hasura/graphql-engine:latest",
}

_EXIT_CODE_RE = re.compile(r"Exited \((\d+)\)")


def _get_template_root() -> Path:
    """Locate the bundled templates directory."""
    import manuscript.templates

    return Path(manuscript.templates.__file__).parent


def render_template(template_name: str, context: dict[str, Any], out_dir: str | Path) -> Path:
    """Render a bundled Jinja2 template into ``out_dir``.

    The output filename is the template name without its ``.j2`` extension.

    :param template_name: Template file name inside the templates directory
    :param context: Template context
    :param out_dir: Output directory, created if missing
    :return: Path to the rendered file
    """
    env = Environment(
        loader=FileSystemLoader(str(_get_template_root())),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    rendered_content = env.get_template(template_name).render(context)

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    output_filepath = out_dir / template_name[: -len(".j2")]
    output_filepath.write_text(rendered_content)
    return output_filepath


def render_compose_file(
    manuscript: Manuscript, job_dir: str | Path, images: dict[str, str] | None = None
) -> Path:
    """Render the job's compose file into its directory.

    :param manuscript: Job with all three ports assigned
    :param job_dir: Job directory
    :param images: Optional overrides for the 'node', 'postgres' and 'graphql' images
    :return: Path to ``docker-compose.yml``
    """
    context = manuscript.model_dump()
    context["images"] = {**DEFAULT_IMAGES, **(images or {})}
    compose_file = render_template(TEMPLATE_FILENAME, context, job_dir)
    logger.debug(f"Rendered compose file {compose_file}")
    return compose_file


def compose_file_for(job_dir: str | Path) -> Path:
    return Path(job_dir) / COMPOSE_FILE_NAME


# =============================================================================
# Container queries
# =============================================================================


def _parse_ps_output(stdout: str) -> list[dict[str, Any]]:
    """Parse ``ps --format json`` from either engine.

    Podman prints one JSON array; Docker prints one JSON object per line.
    """
    if not stdout.strip():
        return []
    try:
        parsed = json.loads(stdout)
        return parsed if isinstance(parsed, list) else [parsed]
    except json.JSONDecodeError:
        return [json.loads(line) for line in stdout.strip().split("\n") if line.strip()]


def list_containers(config: dict | None = None, all_containers: bool = False) -> list[dict]:
    """List containers known to the engine.

    :param config: Mapping with a 'container_runtime' key
    :param all_containers: Include stopped containers
    :raises ContainerRuntimeError: If the engine query fails or prints invalid JSON
    """
    cmd = get_ps_command(config, all_containers=all_containers)
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise ContainerRuntimeError(
            f"could not query container status (exit status {result.returncode})",
            cmd,
            result.stderr,
        )
    try:
        return _parse_ps_output(result.stdout)
    except json.JSONDecodeError as e:
        raise ContainerRuntimeError(f"could not parse container data: {e}", cmd) from e


def container_names(container: dict) -> list[str]:
    names = container.get("Names", [])
    if isinstance(names, str):
        return [name.strip() for name in names.split(",") if name.strip()]
    return [str(name) for name in names]


def find_container(containers: list[dict], name: str) -> dict | None:
    for container in containers:
        if name in container_names(container):
            return container
    return None


def is_job_deployed(manuscript: Manuscript, config: dict | None = None) -> bool:
    """True when the job's job manager container is currently running."""
    return find_container(list_containers(config), manuscript.jobmanager_container) is not None


# =============================================================================
# Lifecycle
# =============================================================================


def start_containers(compose_file: str | Path, config: dict | None = None) -> None:
    """Start the job's containers in the background.

    :raises ContainerRuntimeError: If ``compose up`` fails
    """
    cmd = get_runtime_command(config)
    cmd.extend(["-f", str(compose_file), "up", "-d"])

    logger.info(f"Running command:\n    {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise ContainerRuntimeError(
            f"failed to start containers: {result.stderr.strip() or result.returncode}",
            cmd,
            result.stderr,
        )


def check_container_status(
    manuscript: Manuscript,
    config: dict | None = None,
    timeout: float = 60.0,
    interval: float = 2.0,
    sleep=time.sleep,
    clock=time.monotonic,
) -> dict:
    """Wait for the job manager container to be running.

    :return: The job manager's container record
    :raises ContainerRuntimeError: If the container exits or is not running
        before ``timeout`` seconds
    """
    name = manuscript.jobmanager_container
    deadline = clock() + timeout

    while True:
        container = find_container(list_containers(config, all_containers=True), name)
        state = container.get("State", "") if container else ""

        if state == "running":
            return container
        if state in ("exited", "dead"):
            raise ContainerRuntimeError(
                f"container {name} is {state}: {container.get('Status', '')}. "
                f"Check the logs with 'manuscript-cli logs {manuscript.name}'"
            )
        if clock() >= deadline:
            found = f"state '{state}'" if container else "not found"
            raise ContainerRuntimeError(
                f"container {name} did not start within {timeout:g}s ({found})"
            )
        sleep(interval)


def stop_job(name: str, job_dir: str | Path, config: dict | None = None) -> None:
    """Stop and remove a job's containers; its directory and data are kept.

    :raises JobNotFoundError: If the job has no compose file
    :raises ContainerRuntimeError: If ``compose down`` fails
    """
    compose_file = compose_file_for(job_dir)
    if not compose_file.exists():
        raise JobNotFoundError(name)

    cmd = get_runtime_command(config)
    cmd.extend(["-f", str(compose_file), "down"])

    logger.info(f"Running command:\n    {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise ContainerRuntimeError(
            f"failed to stop {name}: {result.stderr.strip() or result.returncode}",
            cmd,
            result.stderr,
        )


def show_job_logs(
    manuscript: Manuscript, config: dict | None = None, follow: bool = True, tail: int | None = None
) -> None:
    """Replace the current process with the engine's log stream for the job manager."""
    cmd = [get_runtime_binary(config), "logs"]
    if follow:
        cmd.append("-f")
    if tail is not None:
        cmd.extend(["--tail", str(tail)])
    cmd.append(manuscript.jobmanager_container)

    logger.info(f"Running command:\n    {' '.join(cmd)}")
    os.execvp(cmd[0], cmd)


# =============================================================================
# Job status summaries
# =============================================================================


class JobState(Enum):
    RUNNING = "Running"
    WARNING = "Warning"
    FAILED = "Failed"
    STOPPED = "Stopped"
    OTHER = "Other"


@dataclass(frozen=True)
class JobStatus:
    """One row of ``manuscript-cli list``."""

    name: str
    state: JobState
    status: str
    endpoint: str


def job_state(container: dict | None) -> JobState:
    """Classify a job manager container record."""
    if container is None:
        return JobState.STOPPED

    state = str(container.get("State", "")).lower()
    if state == "running":
        return JobState.RUNNING
    if state in ("restarting", "paused"):
        return JobState.WARNING
    if state == "dead":
        return JobState.FAILED
    if state == "exited":
        match = _EXIT_CODE_RE.search(str(container.get("Status", "")))
        if match and match.group(1) != "0":
            return JobState.FAILED
        return JobState.STOPPED
    return JobState.OTHER


def job_statuses(manuscripts: list[Manuscript], containers: list[dict]) -> list[JobStatus]:
    """Combine configured jobs with container records into status rows."""
    rows = []
    for ms in manuscripts:
        container = find_container(containers, ms.jobmanager_container)
        rows.append(
            JobStatus(
                name=ms.name,
                state=job_state(container),
                status=str(container.get("Status", "")) if container else "",
                endpoint=ms.graphql_endpoint if ms.graphql_port else "",
            )
        )
    return rows
