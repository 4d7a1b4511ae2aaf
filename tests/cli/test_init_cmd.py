"""Tests for the init CLI command."""

from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from manuscript.cli.init_cmd import build_descriptor_context, validate_job_name
from manuscript.cli.main import cli
from manuscript.deployment.loader import load_manuscript


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def store(config_path, tmp_path):
    config_path.write_text(yaml.safe_dump({"base_dir": str(tmp_path / "base")}))
    return config_path


FULL_OPTIONS = [
    "--name",
    "eth-blocks",
    "--chain",
    "ethereum",
    "--table",
    "blocks",
    "--sink",
    "postgres",
]


class TestValidation:
    @pytest.mark.parametrize("name", ["demo", "eth-blocks", "job_1", "9lives"])
    def test_valid_names(self, name):
        assert validate_job_name(name) is True

    @pytest.mark.parametrize("name", ["", "Demo", "-leading", "with space", "a/b"])
    def test_invalid_names(self, name):
        assert validate_job_name(name) is not True

    def test_default_primary_key_depends_on_table(self):
        context = build_descriptor_context("d", "ethereum", "transactions", "postgres", None, 1)

        assert context["primary_key"] == "hash"
        assert context["source_name"] == "ethereum_transactions"


class TestInitCommand:
    def test_writes_descriptor_without_deploying(self, cli_runner, store, tmp_path):
        with patch("manuscript.cli.init_cmd.deploy_with_progress") as mock_deploy:
            result = cli_runner.invoke(
                cli, ["--config", str(store), "init", *FULL_OPTIONS, "--no-deploy"]
            )

        assert result.exit_code == 0, result.output
        descriptor = tmp_path / "base" / "manuscript" / "eth-blocks" / "manuscript.yaml"
        ms = load_manuscript(descriptor)
        assert ms.name == "eth-blocks"
        assert ms.chain == "ethereum.blocks"
        assert ms.table == "blocks"
        assert ms.sink == "postgres"
        assert ms.sinks[0].primary_key == "block_number"
        mock_deploy.assert_not_called()

    def test_deploys_after_writing(self, cli_runner, store, tmp_path):
        with patch("manuscript.cli.init_cmd.deploy_with_progress") as mock_deploy:
            result = cli_runner.invoke(cli, ["--config", str(store), "i", *FULL_OPTIONS])

        assert result.exit_code == 0, result.output
        descriptor, settings = mock_deploy.call_args[0]
        assert descriptor.endswith("manuscript.yaml")
        assert settings.base_dir == tmp_path / "base"

    def test_existing_descriptor_needs_force(self, cli_runner, store, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        (out / "manuscript.yaml").write_text("name: old\n")

        result = cli_runner.invoke(
            cli, ["--config", str(store), "init", *FULL_OPTIONS, "-o", str(out), "--no-deploy"]
        )

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert (out / "manuscript.yaml").read_text() == "name: old\n"

    def test_invalid_name_option(self, cli_runner, store):
        options = ["--name", "Bad Name", *FULL_OPTIONS[2:]]

        result = cli_runner.invoke(cli, ["--config", str(store), "init", *options, "--no-deploy"])

        assert result.exit_code != 0

    def test_prompts_for_missing_values(self, cli_runner, store, tmp_path):
        prompts = MagicMock()
        prompts.text.return_value.ask.return_value = "prompted"
        prompts.select.return_value.ask.side_effect = ["bsc", "transactions", "print"]

        with patch("manuscript.cli.init_cmd.questionary", prompts):
            result = cli_runner.invoke(cli, ["--config", str(store), "init", "--no-deploy"])

        assert result.exit_code == 0, result.output
        ms = load_manuscript(tmp_path / "base" / "manuscript" / "prompted" / "manuscript.yaml")
        assert ms.chain == "bsc.transactions"
        assert ms.sinks[0].type == "print"

    def test_cancelled_prompt_aborts(self, cli_runner, store):
        prompts = MagicMock()
        prompts.text.return_value.ask.return_value = None

        with patch("manuscript.cli.init_cmd.questionary", prompts):
            result = cli_runner.invoke(cli, ["--config", str(store), "init"])

        assert result.exit_code == 1
        assert "cancelled" in result.output
