"""Command-line interface for manuscript-cli.

Commands:
    - init: Create a manuscript descriptor interactively and deploy it
    - deploy: Deploy a descriptor to the local container engine
    - list: Show jobs and their container status
    - stop: Stop a job's containers
    - logs: Follow a job's logs
    - chat: Text-to-SQL chat over a job's database
    - version: Version and environment details

Commands are lazy-loaded by :class:`~manuscript.cli.main.LazyGroup`.
"""

from .main import cli, main

__all__ = ["cli", "main"]
