"""Container engine detection for Docker and Podman.

Resolves which engine drives manuscript containers and builds the command
prefixes used everywhere else. Requires an engine with the compose
subcommand: Docker Desktop 4.0+ / Docker Engine with the compose plugin, or
Podman 4.0+.

Examples:
    Basic usage::

        from manuscript.deployment.runtime_helper import get_runtime_command

        cmd = get_runtime_command(settings.runtime_config())
        # Returns: ['docker', 'compose'] or ['podman', 'compose']
"""

import os
import platform
import shutil
import subprocess

from manuscript.errors import ContainerRuntimeError
from manuscript.utils.logger import get_logger

logger = get_logger("runtime")

SUPPORTED_RUNTIMES = ("docker", "podman")
PROBE_TIMEOUT = 5

# Module-level cache for the detected compose command
_cached_runtime_cmd: list[str] | None = None


def _requested_runtime(config: dict | None) -> str | None:
    """Runtime requested by CONTAINER_RUNTIME or config, lower-cased; None for auto."""
    requested = None
    if config:
        requested = config.get("container_runtime", "auto")

    env_runtime = os.getenv("CONTAINER_RUNTIME")
    if env_runtime:
        requested = env_runtime

    if requested and requested.lower() in SUPPORTED_RUNTIMES:
        return requested.lower()
    return None


def get_runtime_command(config: dict | None = None) -> list[str]:
    """Get the container compose command.

    Checks CONTAINER_RUNTIME, then ``config['container_runtime']``, and
    auto-detects (Docker first, then Podman) when neither names a supported
    engine. The result is cached after the first successful detection.

    Args:
        config: Optional mapping with a 'container_runtime' key

    Returns:
        Command list: ['docker', 'compose'] or ['podman', 'compose']

    Raises:
        ContainerRuntimeError: If no engine with a working compose subcommand
            and a responsive daemon is found
    """
    global _cached_runtime_cmd

    if _cached_runtime_cmd is not None:
        return _cached_runtime_cmd.copy()

    requested = _requested_runtime(config)
    runtimes_to_try = [requested] if requested else list(SUPPORTED_RUNTIMES)

    for runtime in runtimes_to_try:
        if not shutil.which(runtime):
            continue

        try:
            result = subprocess.run(
                [runtime, "compose", "version"], capture_output=True, timeout=PROBE_TIMEOUT
            )
            if result.returncode != 0:
                logger.debug(f"{runtime} compose is not available")
                continue

            # The CLI can be installed while the daemon is down
            ps_result = subprocess.run([runtime, "ps"], capture_output=True, timeout=PROBE_TIMEOUT)
            if ps_result.returncode == 0:
                _cached_runtime_cmd = [runtime, "compose"]
                logger.debug(f"Using container runtime: {runtime}")
                return _cached_runtime_cmd.copy()

        except (subprocess.TimeoutExpired, FileNotFoundError):
            continue

    installed = [runtime for runtime in runtimes_to_try if shutil.which(runtime)]
    if installed:
        error_parts = ["Container runtime installed but not running:\n"]
        if "docker" in installed:
            error_parts.append("\n" + _get_docker_not_running_message())
        if "podman" in installed:
            error_parts.append("\n" + _get_podman_not_running_message())
        raise ContainerRuntimeError("".join(error_parts))

    raise ContainerRuntimeError(
        "No container runtime found. Install Docker Desktop 4.0+ or Podman 4.0+\n"
        "Docker: https://docs.docker.com/get-docker/\n"
        "Podman: https://podman.io/getting-started/installation"
    )


def get_runtime_binary(config: dict | None = None) -> str:
    """Engine binary ('docker' or 'podman') for plain, non-compose commands."""
    return get_runtime_command(config)[0]


def verify_runtime_is_running(config: dict | None = None) -> tuple[bool, str]:
    """Verify that the detected container engine is actually running.

    Args:
        config: Optional mapping with a 'container_runtime' key

    Returns:
        Tuple of (is_running, error_message); the message is empty when running
    """
    try:
        runtime = get_runtime_binary(config)
    except ContainerRuntimeError as e:
        return False, str(e)

    try:
        result = subprocess.run(
            [runtime, "ps"], capture_output=True, text=True, timeout=PROBE_TIMEOUT
        )
    except subprocess.TimeoutExpired:
        return False, f"{runtime.capitalize()} command timed out. The service may not be running."
    except OSError as e:
        return False, f"Error checking container runtime: {e}"

    if result.returncode == 0:
        return True, ""

    stderr = result.stderr.lower()
    if "cannot connect to the docker daemon" in stderr or "docker daemon" in stderr:
        return False, _get_docker_not_running_message()
    if "cannot connect to podman" in stderr or "connection refused" in stderr:
        return False, _get_podman_not_running_message()

    return False, f"{runtime.capitalize()} is installed but not responding:\n{result.stderr}"


def _get_docker_not_running_message() -> str:
    """Get platform-specific message for Docker not running."""
    system = platform.system()

    if system in ("Darwin", "Windows"):
        return (
            "Docker Desktop is not running.\n\n"
            "To fix this:\n"
            "1. Start Docker Desktop\n"
            "2. Wait until Docker reports it is running\n"
            "3. Try your command again\n\n"
            "If Docker Desktop is not installed:\n"
            "https://docs.docker.com/desktop/"
        )
    return (
        "Docker daemon is not running.\n\n"
        "To fix this:\n"
        "1. Start Docker: sudo systemctl start docker\n"
        "2. Check status: sudo systemctl status docker\n\n"
        "If permission issues, add user to docker group:\n"
        "sudo usermod -aG docker $USER\n"
        "(then log out and back in)"
    )


def _get_podman_not_running_message() -> str:
    """Get platform-specific message for Podman not running."""
    system = platform.system()

    if system in ("Darwin", "Windows"):
        return (
            "Podman machine is not running.\n\n"
            "To fix this:\n"
            "1. Start Podman: podman machine start\n"
            "2. Check status: podman machine list"
        )
    return (
        "Podman service is not responding.\n\n"
        "To fix this:\n"
        "1. Check status: systemctl --user status podman.socket\n"
        "2. Start if needed: systemctl --user start podman.socket"
    )


def get_ps_command(config: dict | None = None, all_containers: bool = False) -> list[str]:
    """Get the container ps command with JSON output.

    Args:
        config: Optional mapping with a 'container_runtime' key
        all_containers: Include stopped containers (-a flag)
    """
    ps_cmd = [get_runtime_binary(config), "ps"]
    if all_containers:
        ps_cmd.append("-a")
    ps_cmd.extend(["--format", "json"])
    return ps_cmd
