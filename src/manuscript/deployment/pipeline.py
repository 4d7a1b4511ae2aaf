"""Deployment pipeline for a single manuscript job.

Deployment is a fixed, ordered list of named steps. Each step takes the current
:class:`DeploymentState` and returns a new one; nothing is shared between steps
except through that state. The first failing step stops the pipeline with a
:class:`~manuscript.errors.StepFailedError` naming the step. There is no retry
and no rollback: a half-created job directory is left for inspection.

Steps:
    1. Validating manuscript file
    2. Parsing manuscript yaml
    3. Verifying port initialization
    4. Checking manuscript is already deployed
    5. Creating job directory
    6. Copying manuscript file
    7. Rendering compose file
    8. Checking container engine
    9. Starting containers
    10. Checking container status

After the last step the fully populated manuscript, including newly allocated
ports, is saved to the configuration store.

Examples:
    Deploy with a progress callback::

        >>> def runner(step, state):
        ...     print(step.name)
        ...     return step.fn(state)
        >>> state = deploy_manuscript("manuscript.yaml", settings, step_runner=runner)
        >>> state.manuscript.port
        8081
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import NamedTuple

from manuscript.deployment import container_manager, loader, ports
from manuscript.deployment.runtime_helper import get_runtime_binary, verify_runtime_is_running
from manuscript.errors import (
    ContainerRuntimeError,
    DescriptorError,
    JobAlreadyDeployedError,
    StepFailedError,
)
from manuscript.models import Manuscript
from manuscript.utils.config import ManuscriptSettings
from manuscript.utils.logger import get_logger

logger = get_logger("pipeline")


@dataclass(frozen=True)
class DeploymentState:
    """Everything the deployment steps know about the job being deployed."""

    settings: ManuscriptSettings
    descriptor_path: Path
    manuscript: Manuscript | None = None
    job_dir: Path | None = None
    compose_file: Path | None = None

    def require_manuscript(self) -> Manuscript:
        if self.manuscript is None:
            raise RuntimeError("manuscript has not been parsed yet")
        return self.manuscript

    def require_job_dir(self) -> Path:
        if self.job_dir is None:
            raise RuntimeError("job directory has not been resolved yet")
        return self.job_dir


class Step(NamedTuple):
    name: str
    fn: Callable[[DeploymentState], DeploymentState]


StepRunner = Callable[[Step, DeploymentState], DeploymentState]


# =============================================================================
# Steps
# =============================================================================


def validate_manuscript_file(state: DeploymentState) -> DeploymentState:
    loader.validate_descriptor_file(state.descriptor_path)
    return state


def parse_manuscript(state: DeploymentState) -> DeploymentState:
    manuscript = loader.load_manuscript(state.descriptor_path)
    return replace(state, manuscript=manuscript, job_dir=state.settings.job_dir(manuscript.name))


def initialize_ports(state: DeploymentState) -> DeploymentState:
    runtime = get_runtime_binary(state.settings.runtime_config())
    listening = ports.get_listening_ports(runtime)
    configured = state.settings.open_store().manuscripts
    manuscript = ports.initialize_ports(state.require_manuscript(), configured, listening)
    logger.info(
        f"Ports for {manuscript.name}: service={manuscript.port} "
        f"query-endpoint={manuscript.graphql_port} database={manuscript.db_port}"
    )
    return replace(state, manuscript=manuscript)


def check_not_deployed(state: DeploymentState) -> DeploymentState:
    manuscript = state.require_manuscript()
    if container_manager.is_job_deployed(manuscript, state.settings.runtime_config()):
        raise JobAlreadyDeployedError(manuscript.name)
    return state


def create_job_directory(state: DeploymentState) -> DeploymentState:
    job_dir = state.require_job_dir()
    try:
        job_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DescriptorError(f"failed to create directory {job_dir}: {e}", str(job_dir)) from e
    return state


def copy_manuscript_file(state: DeploymentState) -> DeploymentState:
    loader.copy_descriptor_file(state.descriptor_path, state.require_job_dir())
    return state


def render_compose_file(state: DeploymentState) -> DeploymentState:
    compose_file = container_manager.render_compose_file(
        state.require_manuscript(), state.require_job_dir()
    )
    return replace(state, compose_file=compose_file)


def check_container_engine(state: DeploymentState) -> DeploymentState:
    is_running, error_msg = verify_runtime_is_running(state.settings.runtime_config())
    if not is_running:
        raise ContainerRuntimeError(error_msg)
    return state


def start_containers(state: DeploymentState) -> DeploymentState:
    if state.compose_file is None:
        raise RuntimeError("compose file has not been rendered yet")
    container_manager.start_containers(state.compose_file, state.settings.runtime_config())
    return state


def check_container_status(state: DeploymentState) -> DeploymentState:
    container_manager.check_container_status(
        state.require_manuscript(),
        state.settings.runtime_config(),
        timeout=state.settings.status_timeout,
        interval=state.settings.status_interval,
    )
    return state


DEPLOY_STEPS: list[Step] = [
    Step("Step 1: Validating manuscript file", validate_manuscript_file),
    Step("Step 2: Parsing manuscript yaml", parse_manuscript),
    Step("Step 3: Verifying port initialization", initialize_ports),
    Step("Step 4: Checking manuscript is already deployed", check_not_deployed),
    Step("Step 5: Creating job directory", create_job_directory),
    Step("Step 6: Copying manuscript file", copy_manuscript_file),
    Step("Step 7: Rendering compose file", render_compose_file),
    Step("Step 8: Checking container engine", check_container_engine),
    Step("Step 9: Starting containers", start_containers),
    Step("Step 10: Checking container status", check_container_status),
]


# =============================================================================
# Execution
# =============================================================================


def _run_step(step: Step, state: DeploymentState) -> DeploymentState:
    return step.fn(state)


def run_pipeline(
    steps: list[Step], state: DeploymentState, step_runner: StepRunner | None = None
) -> DeploymentState:
    """Run ``steps`` in order, stopping at the first failure.

    :param step_runner: Optional wrapper called as ``step_runner(step, state)``;
        it must return the state produced by ``step.fn``
    :raises StepFailedError: Naming the failed step, with the cause chained
    """
    step_runner = step_runner or _run_step
    for step in steps:
        logger.debug(f"Running {step.name}")
        try:
            state = step_runner(step, state)
        except Exception as e:
            logger.debug(f"{step.name} failed: {e}")
            raise StepFailedError(step.name, e) from e
    return state


def deploy_manuscript(
    descriptor_path: str | Path,
    settings: ManuscriptSettings,
    step_runner: StepRunner | None = None,
    steps: list[Step] | None = None,
) -> DeploymentState:
    """Deploy one job and record it in the configuration store.

    :return: Final state, with ``state.manuscript`` carrying the assigned ports
    :raises StepFailedError: If any step fails; nothing is saved in that case
    """
    state = DeploymentState(settings=settings, descriptor_path=Path(descriptor_path))
    state = run_pipeline(steps if steps is not None else DEPLOY_STEPS, state, step_runner)

    store = settings.open_store()
    store.save_manuscript(state.require_manuscript())
    logger.success(f"Manuscript '{state.require_manuscript().name}' saved to {store.config_path}")
    return state
