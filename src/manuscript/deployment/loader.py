"""Job descriptor loading.

Parses ``manuscript.yaml`` descriptors into :class:`~manuscript.models.Manuscript`
models and derives the display fields shown by ``list`` and used by the
compose template.

Examples:
    Basic descriptor::

        # manuscript.yaml
        name: demo
        specVersion: v1.0.0
        parallelism: 1
        sources:
          - name: zkevm_blocks
            type: dataset
            dataset: zkevm.blocks
        transforms:
          - name: zkevm_blocks_transform
            sql: SELECT * FROM zkevm_blocks limit 100
        sinks:
          - name: zkevm_blocks_sink
            type: postgres
            from: zkevm_blocks_transform
            database: zkevm
            schema: public
            table: blocks
            primary_key: block_number

        >>> ms = load_manuscript("manuscript.yaml")
        >>> ms.chain, ms.table, ms.sink
        ('zkevm.blocks', 'blocks', 'postgres')
"""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from manuscript.errors import DescriptorError
from manuscript.models import Manuscript
from manuscript.utils.logger import get_logger

logger = get_logger("loader")

DESCRIPTOR_FILENAME = "manuscript.yaml"


def validate_descriptor_file(path: str | Path) -> None:
    """Check that the descriptor exists and is not empty.

    :raises DescriptorError: If the file is missing, unreadable or empty
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except FileNotFoundError as e:
        raise DescriptorError(f"manuscript file does not exist: {path}", str(path)) from e
    except OSError as e:
        raise DescriptorError(f"failed to read manuscript file: {e}", str(path)) from e

    if not content.strip():
        raise DescriptorError("manuscript file is empty", str(path))


def derive_display_fields(manuscript: Manuscript) -> Manuscript:
    """Fill chain/table/database/query/sink from the first source, sink and transform."""
    update = {}
    if manuscript.sinks:
        first_sink = manuscript.sinks[0]
        update["table"] = first_sink.table
        update["database"] = first_sink.database
        if first_sink.type == "postgres":
            update["sink"] = "postgres"
    if manuscript.sources:
        update["chain"] = manuscript.sources[0].dataset
    if manuscript.transforms:
        update["query"] = manuscript.transforms[0].sql
    return manuscript.model_copy(update=update)


def load_manuscript(path: str | Path) -> Manuscript:
    """Parse a descriptor file into a Manuscript with display fields derived.

    :raises DescriptorError: If the YAML is invalid or does not describe a manuscript
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DescriptorError(f"failed to parse manuscript yaml: {e}", str(path)) from e
    except OSError as e:
        raise DescriptorError(f"failed to read manuscript file: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise DescriptorError(f"manuscript file must contain a mapping: {path}", str(path))

    try:
        manuscript = Manuscript.model_validate(data)
    except ValidationError as e:
        raise DescriptorError(f"invalid manuscript {path}: {e}", str(path)) from e

    logger.debug(f"Loaded manuscript '{manuscript.name}' from {path}")
    return derive_display_fields(manuscript)


def copy_descriptor_file(source: str | Path, job_dir: str | Path) -> Path:
    """Copy the descriptor into the job directory atomically as ``manuscript.yaml``.

    The compose file mounts the descriptor under that fixed name, whatever the
    source file is called.

    The content is written to ``<destination>.tmp`` and renamed into place; the
    temporary file is removed if the rename fails.

    :return: Path of the copied descriptor
    :raises DescriptorError: If the source cannot be read, is empty, or the copy fails
    """
    source = Path(source)
    try:
        content = source.read_bytes()
    except OSError as e:
        raise DescriptorError(f"failed to read source file: {e}", str(source)) from e

    if not content:
        raise DescriptorError("source manuscript file is empty", str(source))

    destination = Path(job_dir) / DESCRIPTOR_FILENAME
    if destination.resolve() == source.resolve():
        return destination

    temp_file = destination.with_name(destination.name + ".tmp")
    try:
        temp_file.write_bytes(content)
    except OSError as e:
        raise DescriptorError(f"failed to write temporary file: {e}", str(temp_file)) from e

    try:
        os.replace(temp_file, destination)
    except OSError as e:
        temp_file.unlink(missing_ok=True)
        raise DescriptorError(f"failed to rename temporary file: {e}", str(destination)) from e

    return destination


def find_descriptors(directory: str | Path) -> list[Manuscript]:
    """Load every ``<directory>/<job>/manuscript.yaml``; unreadable ones are skipped."""
    directory = Path(directory)
    if not directory.is_dir():
        raise DescriptorError(f"manuscript directory does not exist: {directory}", str(directory))

    manuscripts = []
    for descriptor in sorted(directory.glob(f"*/{DESCRIPTOR_FILENAME}")):
        try:
            manuscripts.append(load_manuscript(descriptor))
        except DescriptorError as e:
            logger.warning(f"Skipping {descriptor}: {e}")
    return manuscripts
