"""Manuscript CLI.

Provisions and manages local manuscript data-pipeline jobs:

- Job descriptor parsing
- Port reservation and allocation
- Compose file rendering
- Container lifecycle through Docker or Podman
"""

__version__ = "1.1.0"

__all__ = ["__version__"]
