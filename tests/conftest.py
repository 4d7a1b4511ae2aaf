"""
Pytest configuration and shared test utilities.

This module provides shared fixtures and factories for manuscript tests.
"""

import textwrap

import pytest

from manuscript.deployment import runtime_helper
from manuscript.models import Manuscript
from manuscript.utils.config import ManuscriptSettings

DESCRIPTOR_YAML = textwrap.dedent(
    """\
    name: demo
    specVersion: v1.0.0
    parallelism: 1

    sources:
      - name: ethereum_blocks
        type: dataset
        dataset: ethereum.blocks
        filter: "block_number > 100000"

    transforms:
      - name: ethereum_blocks_transform
        sql: >
          SELECT * FROM ethereum_blocks

    sinks:
      - name: ethereum_blocks_sink
        type: postgres
        from: ethereum_blocks_transform
        database: ethereum
        schema: public
        table: blocks
        primary_key: block_number
    """
)


def make_manuscript(name: str = "demo", **overrides) -> Manuscript:
    """Factory for Manuscript objects with sensible defaults.

    Examples:
        Job with explicit ports::

            ms = make_manuscript("a", port=8081, graphql_port=8082, db_port=15432)
    """
    return Manuscript(name=name, **overrides)


@pytest.fixture(autouse=True)
def reset_runtime_cache():
    """Reset the cached container runtime before each test."""
    runtime_helper._cached_runtime_cmd = None
    yield
    runtime_helper._cached_runtime_cmd = None


@pytest.fixture
def config_path(tmp_path):
    """Location of an isolated configuration store."""
    return tmp_path / "manuscript_config.yml"


@pytest.fixture
def settings(tmp_path, config_path):
    """Settings pointing at a temporary base directory and store."""
    return ManuscriptSettings(
        config_path=config_path,
        base_dir=tmp_path / "base",
        container_runtime="docker",
        status_timeout=1.0,
        status_interval=0.0,
    )


@pytest.fixture
def descriptor_file(tmp_path):
    """A valid manuscript.yaml outside any job directory."""
    path = tmp_path / "src" / "manuscript.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(DESCRIPTOR_YAML)
    return path
