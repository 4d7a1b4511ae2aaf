"""Tests for manuscript descriptor loading."""

import pytest

from manuscript.deployment.loader import (
    copy_descriptor_file,
    find_descriptors,
    load_manuscript,
    validate_descriptor_file,
)
from manuscript.errors import DescriptorError, ErrorCategory
from tests.conftest import DESCRIPTOR_YAML


class TestValidateDescriptorFile:
    """Test existence and emptiness checks."""

    def test_valid_file(self, descriptor_file):
        validate_descriptor_file(descriptor_file)

    def test_missing_file(self, tmp_path):
        with pytest.raises(DescriptorError, match="does not exist") as exc_info:
            validate_descriptor_file(tmp_path / "missing.yaml")

        assert exc_info.value.category is ErrorCategory.FILE_IO

    def test_whitespace_only_file_is_empty(self, tmp_path):
        path = tmp_path / "manuscript.yaml"
        path.write_text("  \n\n")

        with pytest.raises(DescriptorError, match="empty"):
            validate_descriptor_file(path)


class TestLoadManuscript:
    """Test descriptor parsing and derived fields."""

    def test_parses_descriptor(self, descriptor_file):
        ms = load_manuscript(descriptor_file)

        assert ms.name == "demo"
        assert ms.spec_version == "v1.0.0"
        assert ms.parallelism == 1
        assert ms.sources[0].dataset == "ethereum.blocks"
        assert ms.sinks[0].from_ == "ethereum_blocks_transform"
        assert ms.sinks[0].primary_key == "block_number"

    def test_derives_display_fields(self, descriptor_file):
        ms = load_manuscript(descriptor_file)

        assert ms.chain == "ethereum.blocks"
        assert ms.table == "blocks"
        assert ms.database == "ethereum"
        assert ms.sink == "postgres"
        assert "SELECT * FROM ethereum_blocks" in ms.query

    def test_ports_default_to_unset(self, descriptor_file):
        ms = load_manuscript(descriptor_file)

        assert (ms.port, ms.graphql_port, ms.db_port) == (0, 0, 0)

    def test_camel_case_ports_are_read(self, tmp_path):
        path = tmp_path / "manuscript.yaml"
        path.write_text("name: demo\nport: 8090\ngraphqlPort: 8091\ndbPort: 15440\n")

        ms = load_manuscript(path)

        assert (ms.port, ms.graphql_port, ms.db_port) == (8090, 8091, 15440)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "manuscript.yaml"
        path.write_text("name: [unclosed\n")

        with pytest.raises(DescriptorError, match="failed to parse"):
            load_manuscript(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "manuscript.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(DescriptorError, match="mapping"):
            load_manuscript(path)

    def test_missing_name(self, tmp_path):
        path = tmp_path / "manuscript.yaml"
        path.write_text("parallelism: 1\n")

        with pytest.raises(DescriptorError, match="invalid manuscript"):
            load_manuscript(path)

    @pytest.mark.parametrize("name", ["../../escaped", "My Job", "-leading", "a/b", "Demo"])
    def test_unsafe_job_names_are_rejected(self, tmp_path, name):
        path = tmp_path / "manuscript.yaml"
        path.write_text(f"name: '{name}'\n")

        with pytest.raises(DescriptorError, match="invalid job name"):
            load_manuscript(path)

    @pytest.mark.parametrize("name", ["demo", "eth-blocks", "job_1", "9lives"])
    def test_valid_job_names(self, tmp_path, name):
        path = tmp_path / "manuscript.yaml"
        path.write_text(f"name: '{name}'\n")

        assert load_manuscript(path).name == name


class TestCopyDescriptorFile:
    """Test the atomic copy into the job directory."""

    def test_copies_content(self, descriptor_file, tmp_path):
        job_dir = tmp_path / "job"
        job_dir.mkdir()

        destination = copy_descriptor_file(descriptor_file, job_dir)

        assert destination == job_dir / "manuscript.yaml"
        assert destination.read_text() == DESCRIPTOR_YAML
        assert not (job_dir / "manuscript.yaml.tmp").exists()

    def test_copy_uses_fixed_descriptor_name(self, tmp_path):
        source = tmp_path / "eth_job.yaml"
        source.write_text(DESCRIPTOR_YAML)
        job_dir = tmp_path / "job"
        job_dir.mkdir()

        destination = copy_descriptor_file(source, job_dir)

        assert destination == job_dir / "manuscript.yaml"
        assert sorted(p.name for p in job_dir.iterdir()) == ["manuscript.yaml"]

    def test_overwrites_existing_copy(self, descriptor_file, tmp_path):
        job_dir = tmp_path / "job"
        job_dir.mkdir()
        (job_dir / "manuscript.yaml").write_text("name: old\n")

        copy_descriptor_file(descriptor_file, job_dir)

        assert (job_dir / "manuscript.yaml").read_text() == DESCRIPTOR_YAML

    def test_same_file_is_left_alone(self, descriptor_file):
        destination = copy_descriptor_file(descriptor_file, descriptor_file.parent)

        assert destination == descriptor_file
        assert descriptor_file.read_text() == DESCRIPTOR_YAML

    def test_empty_source(self, tmp_path):
        source = tmp_path / "manuscript.yaml"
        source.write_text("")

        with pytest.raises(DescriptorError, match="source manuscript file is empty"):
            copy_descriptor_file(source, tmp_path / "job")

    def test_missing_job_dir(self, descriptor_file, tmp_path):
        with pytest.raises(DescriptorError, match="temporary file"):
            copy_descriptor_file(descriptor_file, tmp_path / "does-not-exist")


class TestFindDescriptors:
    """Test directory scanning for the list command."""

    def test_finds_job_descriptors_and_skips_invalid(self, tmp_path):
        (tmp_path / "good").mkdir()
        (tmp_path / "good" / "manuscript.yaml").write_text(DESCRIPTOR_YAML)
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "manuscript.yaml").write_text("- not a mapping\n")
        (tmp_path / "empty").mkdir()

        manuscripts = find_descriptors(tmp_path)

        assert [ms.name for ms in manuscripts] == ["demo"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DescriptorError, match="does not exist"):
            find_descriptors(tmp_path / "nope")
