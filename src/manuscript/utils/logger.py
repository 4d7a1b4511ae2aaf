"""
Component Logger

Provides colored logging for manuscript components with:
- One API for all components (ports, pipeline, runtime, config)
- Rich terminal output with component-specific colors
- Quiet defaults so command output is not interleaved with log noise

Usage:
    logger = get_logger("ports")
    logger.info("Allocating ports")
    logger.debug("Detailed trace")
    logger.success("Operation completed")
    logger.warning("Something to note")
    logger.error("Something went wrong")

    # Custom loggers with explicit parameters
    logger = get_logger(name="custom_component", color="blue")
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LEVEL = logging.WARNING

# Component colors; anything not listed logs in white
COMPONENT_COLORS = {
    "ports": "cyan",
    "pipeline": "magenta",
    "runtime": "blue",
    "containers": "blue",
    "loader": "green",
    "config": "yellow",
    "chat": "bright_magenta",
}


class ComponentLogger:
    """
    Rich-formatted logger for manuscript components with color coding.

    Message Types:
    - key_info: Important operational information
    - info: Normal operational messages
    - debug: Detailed tracing information
    - warning: Warning messages
    - error: Error messages
    - success: Success messages
    """

    def __init__(self, base_logger: logging.Logger, component_name: str, color: str = "white"):
        """
        Initialize component logger.

        Args:
            base_logger: Underlying Python logger
            component_name: Name of the component (e.g., 'ports', 'pipeline')
            color: Rich color name for this component
        """
        self.base_logger = base_logger
        self.component_name = component_name
        self.color = color

    def _format_message(self, message: str, style: str, emoji: str = "") -> str:
        """Format message with Rich markup and emoji prefix."""
        prefix = f"{emoji}{self.component_name.title()}: "
        if style:
            return f"[{style}]{prefix}{message}[/{style}]"
        return f"{prefix}{message}"

    def key_info(self, message: str) -> None:
        style = f"bold {self.color}" if self.color != "white" else "bold white"
        self.base_logger.info(self._format_message(message, style))

    def info(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, self.color))

    def debug(self, message: str) -> None:
        style = f"dim {self.color}" if self.color != "white" else "dim white"
        self.base_logger.debug(self._format_message(message, style, "🔍 "))

    def warning(self, message: str) -> None:
        self.base_logger.warning(self._format_message(message, "bold yellow", "⚠️  "))

    def error(self, message: str, exc_info: bool = False) -> None:
        self.base_logger.error(self._format_message(message, "bold red", "❌ "), exc_info=exc_info)

    def success(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, "bold green", "✅ "))

    def exception(self, message: str, *args, **kwargs) -> None:
        self.base_logger.exception(self._format_message(message, "bold red", "❌ "), *args, **kwargs)

    @property
    def level(self) -> int:
        return self.base_logger.level

    @property
    def name(self) -> str:
        return self.base_logger.name

    def setLevel(self, level: int) -> None:
        self.base_logger.setLevel(level)

    def isEnabledFor(self, level: int) -> bool:
        return self.base_logger.isEnabledFor(level)


def _level_from_env() -> int:
    """Resolve the root level from MANUSCRIPT_LOG_LEVEL (name or number)."""
    raw = os.environ.get("MANUSCRIPT_LOG_LEVEL")
    if not raw:
        return DEFAULT_LEVEL
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else DEFAULT_LEVEL


def _setup_rich_logging(level: int | None = None) -> None:
    """Configure Rich logging for the root logger (called once)."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            return

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.setLevel(level if level is not None else _level_from_env())

    console = Console(stderr=True)
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=True,
        show_path=False,
        show_time=True,
        show_level=True,
        tracebacks_show_locals=False,
    )
    root_logger.addHandler(handler)

    for lib in ["httpx", "httpcore", "openai", "urllib3"]:
        logging.getLogger(lib).setLevel(logging.WARNING)


def set_log_level(level: int) -> None:
    """Change the root log level, e.g. for a --verbose flag."""
    _setup_rich_logging()
    logging.getLogger().setLevel(level)


def get_logger(
    component_name: str | None = None,
    *,
    name: str | None = None,
    color: str | None = None,
) -> ComponentLogger:
    """
    Get a component logger.

    Args:
        component_name: Component name (e.g., 'ports', 'pipeline')
        name: Direct logger name (keyword-only, for custom loggers)
        color: Direct color specification (keyword-only)

    Returns:
        ComponentLogger instance

    Examples:
        logger = get_logger("pipeline")
        logger.info("Step started")

        logger = get_logger(name="test_logger", color="blue")
    """
    _setup_rich_logging()

    if name is not None:
        return ComponentLogger(logging.getLogger(name), name, color or "white")

    if component_name is None:
        raise ValueError(
            "Component name is required. Usage: get_logger('component_name') or "
            "get_logger(name='custom_name', color='blue')"
        )

    base_logger = logging.getLogger(f"manuscript.{component_name}")
    return ComponentLogger(
        base_logger, component_name, color or COMPONENT_COLORS.get(component_name, "white")
    )
