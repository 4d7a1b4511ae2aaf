"""Port reservation and allocation for manuscript jobs.

Every job publishes three ports, one per :class:`~manuscript.models.PortRole`:
the Flink job manager (service), the GraphQL engine (query-endpoint) and
Postgres (database). Ports are never shared between jobs:

1. Reservations are derived from the jobs recorded in the configuration store.
   Two jobs naming the same port is a configuration error.
2. A job being deployed may keep ports it already owns (same name), but may not
   take a port reserved by a different job.
3. Missing ports are allocated from fixed ranges, skipping ports that are
   listening on the host, published by running containers, or reserved.

Examples:
    Allocate ports for a new job::

        >>> listening = get_listening_ports("docker")
        >>> ms = initialize_ports(ms, store.manuscripts, listening)
        >>> ms.port, ms.graphql_port, ms.db_port
        (8081, 8082, 15432)
"""

import re
import subprocess
from collections.abc import Iterable

from manuscript.errors import ContainerRuntimeError, PortConflictError, PortExhaustedError
from manuscript.models import Manuscript, PortReservation, PortRole
from manuscript.utils.logger import get_logger

logger = get_logger("ports")

LSOF_COMMAND = ["lsof", "-nP", "-iTCP", "-sTCP:LISTEN"]

_LSOF_LISTEN_RE = re.compile(r":(\d+)\s+\(LISTEN\)")
_PUBLISHED_PORT_RE = re.compile(r"0\.0\.0\.0:(\d+)")


def find_reserved_ports(manuscripts: Iterable[Manuscript] | None) -> dict[int, PortReservation]:
    """Build the port → reservation index for all configured jobs.

    Roles are checked in fixed order (service, query-endpoint, database) for each
    job, jobs in list order. Ports set to 0 are ignored.

    :param manuscripts: Jobs from the configuration store
    :return: Mapping of port number to its reservation
    :raises PortConflictError: If two jobs claim the same port; the message names
        both jobs and the role held by the first claimant
    """
    reserved: dict[int, PortReservation] = {}
    if not manuscripts:
        return reserved

    for ms in manuscripts:
        for role in PortRole:
            port = getattr(ms, role.field_name)
            if not port:
                continue
            existing = reserved.get(port)
            if existing is not None:
                raise PortConflictError(
                    f"port conflict detected: {port} is reserved by both "
                    f"{existing.manuscript_name} and {ms.name} for {existing.role.value}",
                    port=port,
                    owner=existing.manuscript_name,
                    role=existing.role.value,
                )
            reserved[port] = PortReservation(port=port, manuscript_name=ms.name, role=role)

    return reserved


def validate_port_assignments(
    manuscript: Manuscript, manuscripts: Iterable[Manuscript] | None
) -> None:
    """Check the explicitly set ports of ``manuscript`` against other jobs.

    A reservation held by a job with the same name is not a conflict, so an
    already deployed job can be redeployed with its own ports.

    :raises PortConflictError: If a port is reserved by a different job, or if
        the reservation index itself contains a conflict
    """
    try:
        reserved = find_reserved_ports(manuscripts)
    except PortConflictError as e:
        raise PortConflictError(
            f"failed to check reserved ports: {e.message}", port=e.port, owner=e.owner, role=e.role
        ) from e

    for role in PortRole:
        port = getattr(manuscript, role.field_name)
        if not port:
            continue
        reservation = reserved.get(port)
        if reservation is not None and reservation.manuscript_name != manuscript.name:
            raise PortConflictError(
                f"port {port} is already reserved by manuscript "
                f"{reservation.manuscript_name} for {reservation.role.value}",
                port=port,
                owner=reservation.manuscript_name,
                role=reservation.role.value,
            )


def find_available_port(start: int, end: int, unavailable: set[int]) -> int:
    """Return the lowest port in ``[start, end]`` not in ``unavailable``.

    :raises PortExhaustedError: If every port in the range is unavailable
    """
    for port in range(start, end + 1):
        if port not in unavailable:
            return port
    raise PortExhaustedError(start, end)


def initialize_ports(
    manuscript: Manuscript,
    manuscripts: Iterable[Manuscript] | None,
    listening_ports: Iterable[int],
) -> Manuscript:
    """Validate explicit ports and allocate the missing ones.

    Each allocated port is added to the unavailable set before the next role is
    allocated, so one job never gets the same port for two roles.

    :param manuscript: Job being deployed
    :param manuscripts: Jobs from the configuration store
    :param listening_ports: Ports in use on the host or published by containers
    :return: Copy of ``manuscript`` with all three ports set
    :raises PortConflictError: If an explicit port belongs to another job
    :raises PortExhaustedError: If a range has no free port
    """
    manuscripts = list(manuscripts or [])
    validate_port_assignments(manuscript, manuscripts)

    unavailable = set(listening_ports)
    unavailable.update(find_reserved_ports(manuscripts))

    assigned = {}
    for role in PortRole:
        if getattr(manuscript, role.field_name):
            continue
        start, end = role.port_range
        port = find_available_port(start, end, unavailable)
        logger.debug(f"Allocated {role.value} port {port} for {manuscript.name}")
        assigned[role.field_name] = port
        unavailable.add(port)

    return manuscript.model_copy(update=assigned)


def _scan_lsof_output(output: str) -> set[int]:
    ports = set()
    for line in output.splitlines():
        match = _LSOF_LISTEN_RE.search(line)
        if match:
            ports.add(int(match.group(1)))
    return ports


def _scan_published_ports(output: str) -> set[int]:
    ports = set()
    for line in output.splitlines():
        for match in _PUBLISHED_PORT_RE.finditer(line):
            ports.add(int(match.group(1)))
    return ports


def get_host_listening_ports() -> set[int]:
    """TCP ports in LISTEN state on the host, via lsof.

    A failing or missing lsof is not fatal: a warning is logged and an empty set
    is returned.
    """
    try:
        result = subprocess.run(LSOF_COMMAND, capture_output=True, text=True)
    except OSError as e:
        logger.warning(f"Unable to check system ports: {e}")
        return set()

    if result.returncode != 0:
        logger.warning(
            f"Unable to check system ports: lsof exited with status {result.returncode}"
        )
        return set()

    return _scan_lsof_output(result.stdout)


def get_container_published_ports(runtime: str = "docker") -> set[int]:
    """Host ports published by running containers.

    :param runtime: Container engine binary ('docker' or 'podman')
    :raises ContainerRuntimeError: If the engine cannot be queried
    """
    cmd = [runtime, "ps", "--format", "{{.Ports}}"]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise ContainerRuntimeError(f"failed to check {runtime} ports: {e}", cmd) from e

    if result.returncode != 0:
        raise ContainerRuntimeError(
            f"failed to check {runtime} ports: exit status {result.returncode}",
            cmd,
            result.stderr or "",
        )

    return _scan_published_ports(result.stdout)


def get_listening_ports(runtime: str = "docker") -> set[int]:
    """Union of host LISTEN ports and container-published ports."""
    ports = get_host_listening_ports()
    ports |= get_container_published_ports(runtime)
    logger.debug(f"Ports in use: {sorted(ports)}")
    return ports
