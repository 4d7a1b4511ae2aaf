"""Tests for the list CLI command."""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from manuscript.cli.main import cli
from manuscript.errors import ContainerRuntimeError
from tests.conftest import DESCRIPTOR_YAML


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def store_with_jobs(config_path, tmp_path):
    config_path.write_text(
        yaml.safe_dump(
            {
                "base_dir": str(tmp_path / "base"),
                "manuscripts": [
                    {"name": "alpha", "port": 8081, "graphqlPort": 8082, "dbPort": 15432},
                    {"name": "beta", "port": 8083, "graphqlPort": 8084, "dbPort": 15433},
                ],
            }
        )
    )
    return config_path


class TestListCommand:
    """Test job listing from the store and from a directory."""

    @patch("manuscript.cli.list_cmd.list_containers")
    def test_lists_store_jobs_with_status(self, mock_list, cli_runner, store_with_jobs):
        mock_list.return_value = [
            {"Names": "alpha-jobmanager-1", "State": "running", "Status": "Up 3 hours"}
        ]

        result = cli_runner.invoke(cli, ["--config", str(store_with_jobs), "list"])

        assert result.exit_code == 0
        assert "alpha" in result.output
        assert "beta" in result.output
        assert "Running" in result.output
        assert "Stopped" in result.output
        assert "Up 3 hours" in result.output
        assert mock_list.call_args.kwargs["all_containers"] is True

    @patch("manuscript.cli.list_cmd.list_containers", return_value=[])
    def test_lists_directory_descriptors(self, mock_list, cli_runner, config_path, tmp_path):
        jobs = tmp_path / "jobs"
        (jobs / "demo").mkdir(parents=True)
        (jobs / "demo" / "manuscript.yaml").write_text(DESCRIPTOR_YAML)

        result = cli_runner.invoke(cli, ["--config", str(config_path), "ls", str(jobs)])

        assert result.exit_code == 0
        assert "demo" in result.output

    @patch("manuscript.cli.list_cmd.list_containers", return_value=[])
    def test_no_jobs(self, mock_list, cli_runner, config_path, tmp_path):
        config_path.write_text(yaml.safe_dump({"base_dir": str(tmp_path / "empty")}))

        result = cli_runner.invoke(cli, ["--config", str(config_path), "list"])

        assert result.exit_code == 0
        assert "No manuscript jobs found" in result.output
        mock_list.assert_not_called()

    @patch("manuscript.cli.list_cmd.list_containers")
    def test_engine_failure(self, mock_list, cli_runner, store_with_jobs):
        mock_list.side_effect = ContainerRuntimeError("No container runtime found")

        result = cli_runner.invoke(cli, ["--config", str(store_with_jobs), "list"])

        assert result.exit_code == 1
        assert "No container runtime found" in result.output
