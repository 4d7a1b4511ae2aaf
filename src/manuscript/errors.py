"""Manuscript exception hierarchy.

All errors raised by the deployment core inherit from ManuscriptError and carry
an ErrorCategory so the command layer can decide how to report them. Nothing in
the core terminates the process; the CLI decides on the exit code.
"""

from enum import Enum


class ErrorCategory(Enum):
    """Error category used for reporting.

    Attributes:
        CONFLICT: Two jobs claim the same port
        EXHAUSTION: No free port left in a fixed range
        RUNTIME: Container engine missing, not running, or a command failed
        FILE_IO: Descriptor missing, empty, unreadable or not copyable
        CONFIGURATION: Invalid configuration store or missing credentials
        DEPLOYMENT: Job-level lifecycle errors (already deployed, unknown job)
    """

    CONFLICT = "conflict"
    EXHAUSTION = "exhaustion"
    RUNTIME = "runtime"
    FILE_IO = "file_io"
    CONFIGURATION = "configuration"
    DEPLOYMENT = "deployment"


class ManuscriptError(Exception):
    """Base exception for all manuscript errors.

    Attributes:
        message: Human-readable error description
        category: Error category
        technical_details: Additional debugging information
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        technical_details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.technical_details = technical_details or {}


class PortConflictError(ManuscriptError):
    """A port is reserved by more than one job."""

    def __init__(self, message: str, port: int, owner: str, role: str) -> None:
        super().__init__(
            message,
            ErrorCategory.CONFLICT,
            {"port": port, "owner": owner, "role": role},
        )
        self.port = port
        self.owner = owner
        self.role = role


class PortExhaustedError(ManuscriptError):
    """Every port in a fixed allocation range is unavailable."""

    def __init__(self, start: int, end: int) -> None:
        super().__init__(
            f"no available ports in the range {start}-{end}",
            ErrorCategory.EXHAUSTION,
            {"start": start, "end": end},
        )
        self.start = start
        self.end = end


class ContainerRuntimeError(ManuscriptError):
    """The container engine is unavailable or one of its commands failed."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        details = {}
        if command:
            details["command"] = " ".join(command)
        if stderr:
            details["stderr"] = stderr
        super().__init__(message, ErrorCategory.RUNTIME, details)
        self.command = command or []
        self.stderr = stderr


class DescriptorError(ManuscriptError):
    """The job descriptor file is missing, empty or malformed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, ErrorCategory.FILE_IO, {"path": path} if path else None)
        self.path = path


class ConfigurationError(ManuscriptError):
    """The configuration store or the environment is invalid."""

    def __init__(self, message: str, technical_details: dict | None = None) -> None:
        super().__init__(message, ErrorCategory.CONFIGURATION, technical_details)


class JobAlreadyDeployedError(ManuscriptError):
    """A job with the same name already has a running job manager."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"manuscript [ {name} ] already deployed, "
            "please change the name in the manuscript yaml file",
            ErrorCategory.DEPLOYMENT,
            {"name": name},
        )
        self.name = name


class JobNotFoundError(ManuscriptError):
    """No job with the given name exists in the configuration store."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"manuscript '{name}' not found in the configuration store",
            ErrorCategory.DEPLOYMENT,
            {"name": name},
        )
        self.name = name


class StepFailedError(ManuscriptError):
    """A named deployment step failed; wraps the underlying cause."""

    def __init__(self, step_name: str, cause: Exception) -> None:
        super().__init__(
            f"{step_name} failed: {cause}",
            getattr(cause, "category", ErrorCategory.DEPLOYMENT),
            {"step": step_name},
        )
        self.step_name = step_name
        self.cause = cause
