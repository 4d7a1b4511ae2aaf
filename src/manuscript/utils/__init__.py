"""Configuration and logging utilities.

Modules:
    config: Configuration store and the settings passed to commands
    logger: Rich component loggers
"""

from . import config, logger

__all__ = ["config", "logger"]
