"""
Configuration Store

The configuration store is a small YAML file that remembers previously
deployed manuscripts and a handful of CLI settings:

    base_dir: /home/user            # jobs live in <base_dir>/manuscript/<name>
    container_runtime: auto         # docker, podman or auto
    status_timeout: 60              # seconds to wait for the job manager
    logging:
      level: INFO                   # root log level unless --verbose is given
    manuscripts:
      - name: demo
        port: 8081
        graphqlPort: 8082
        dbPort: 15432

Features:
- Single-file YAML loading with validation and error handling
- Environment variable resolution (${VAR}, ${VAR:-default}, $VAR)
- Dot-path access to values
- Placeholders are preserved when the store is written back
"""

import copy
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from manuscript.errors import ConfigurationError
from manuscript.models import Manuscript
from manuscript.utils.logger import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "MANUSCRIPT_CONFIG"
DEFAULT_CONFIG_FILENAME = ".manuscript_config.yml"
JOBS_DIR_NAME = "manuscript"

DEFAULT_STATUS_TIMEOUT = 60.0
DEFAULT_STATUS_INTERVAL = 2.0


def default_config_path() -> Path:
    """Resolve the store location: MANUSCRIPT_CONFIG, else ~/.manuscript_config.yml."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / DEFAULT_CONFIG_FILENAME


class ConfigStore:
    """
    Persisted list of deployed manuscripts plus CLI settings.

    A missing file is an empty store; it is created on the first save.
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Load the configuration store.

        Args:
            config_path: Path to the store. If None, uses MANUSCRIPT_CONFIG or
                ~/.manuscript_config.yml.

        Raises:
            ConfigurationError: If the file exists but is not a valid YAML mapping.
        """
        dotenv_path = Path.cwd() / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)
            logger.debug(f"Loaded .env file from {dotenv_path}")

        self.config_path = Path(config_path).expanduser() if config_path else default_config_path()
        self.raw_config, self._unexpanded_config = self._load_config()

    def _load_yaml_file(self, file_path: Path) -> dict[str, Any]:
        """Load and validate the YAML store file."""
        if not file_path.exists():
            logger.debug(f"No configuration store at {file_path}, starting empty")
            return {}

        try:
            with open(file_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Error parsing configuration store {file_path}: {e}", {"path": str(file_path)}
            ) from e

        if config is None:
            logger.debug(f"Configuration store is empty: {file_path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration store must contain a mapping: {file_path}",
                {"path": str(file_path)},
            )

        logger.debug(f"Loaded configuration store from {file_path}")
        return config

    def _resolve_env_vars(self, data: Any) -> Any:
        """Recursively resolve environment variables in configuration data.

        Supports both simple and bash-style default value syntax:
        - ${VAR_NAME} - simple substitution
        - ${VAR_NAME:-default_value} - with default value
        - $VAR_NAME - simple substitution without braces
        """
        if isinstance(data, dict):
            return {key: self._resolve_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._resolve_env_vars(item) for item in data]
        elif isinstance(data, str):

            def replace_env_var(match):
                if match.group(1):
                    var_name = match.group(1)
                    default_value = match.group(2)
                else:
                    var_name = match.group(3)
                    default_value = None

                env_value = os.environ.get(var_name)
                if env_value is None:
                    if default_value is not None:
                        return default_value
                    logger.debug(f"Environment variable '{var_name}' not found, keeping original value")
                    return match.group(0)
                return env_value

            pattern = r"\$\{([^}:]+)(?::-(.*?))?\}|\$([A-Za-z_][A-Za-z0-9_]*)"
            return re.sub(pattern, replace_env_var, data)
        else:
            return data

    def _load_config(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Return (expanded, unexpanded) copies of the store."""
        config = self._load_yaml_file(self.config_path)
        unexpanded_config = copy.deepcopy(config)
        return self._resolve_env_vars(config), unexpanded_config

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path."""
        value = self.raw_config
        try:
            for key in path.split("."):
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    @property
    def base_dir(self) -> Path:
        base = self.get("base_dir")
        if base:
            return Path(str(base)).expanduser()
        return Path.home()

    @property
    def manuscripts(self) -> list[Manuscript]:
        """Previously deployed manuscripts, in store order.

        Raises:
            ConfigurationError: If an entry is not a valid manuscript.
        """
        entries = self.get("manuscripts") or []
        if not isinstance(entries, list):
            raise ConfigurationError(
                f"'manuscripts' in {self.config_path} must be a list",
                {"path": str(self.config_path)},
            )

        result = []
        for entry in entries:
            try:
                result.append(Manuscript.model_validate(entry))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid manuscript entry in {self.config_path}: {e}",
                    {"path": str(self.config_path), "entry": entry},
                ) from e
        return result

    def find_manuscript(self, name: str) -> Manuscript | None:
        for ms in self.manuscripts:
            if ms.name == name:
                return ms
        return None

    def save_manuscript(self, manuscript: Manuscript) -> None:
        """Insert or replace (by name, keeping its position) a manuscript and write the store."""
        entry = manuscript.to_store_dict()
        for config in (self._unexpanded_config, self.raw_config):
            entries = list(config.get("manuscripts") or [])
            for index, existing in enumerate(entries):
                if isinstance(existing, dict) and existing.get("name") == manuscript.name:
                    entries[index] = copy.deepcopy(entry)
                    break
            else:
                entries.append(copy.deepcopy(entry))
            config["manuscripts"] = entries
        self.save()

    def save(self) -> None:
        """Write the store atomically, keeping ${VAR} placeholders unexpanded."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.config_path.with_name(self.config_path.name + ".tmp")
        try:
            with open(tmp_path, "w") as f:
                yaml.safe_dump(self._unexpanded_config, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, self.config_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise ConfigurationError(
                f"Failed to save configuration store {self.config_path}: {e}",
                {"path": str(self.config_path)},
            ) from e
        logger.debug(f"Saved configuration store to {self.config_path}")


@dataclass
class ManuscriptSettings:
    """Settings passed explicitly to every command handler.

    Attributes:
        config_path: Location of the configuration store
        base_dir: Directory under which <base_dir>/manuscript/<name> job dirs live
        env: Deployment environment ('local' or 'chainbase')
        container_runtime: 'docker', 'podman' or 'auto'
        status_timeout: Seconds to wait for the job manager to report running
        status_interval: Seconds between status polls
        log_level: Optional root log level name from the store's logging.level key
    """

    config_path: Path
    base_dir: Path = field(default_factory=Path.home)
    env: str = "local"
    container_runtime: str = "auto"
    status_timeout: float = DEFAULT_STATUS_TIMEOUT
    status_interval: float = DEFAULT_STATUS_INTERVAL
    log_level: str | None = None

    @property
    def jobs_dir(self) -> Path:
        return self.base_dir / JOBS_DIR_NAME

    def job_dir(self, name: str) -> Path:
        return self.jobs_dir / name

    def runtime_config(self) -> dict[str, Any]:
        """Config mapping understood by :mod:`manuscript.deployment.runtime_helper`."""
        return {"container_runtime": self.container_runtime}

    def open_store(self) -> ConfigStore:
        """Read the configuration store fresh from disk."""
        return ConfigStore(self.config_path)


def load_settings(config_path: str | Path | None = None, env: str = "local") -> ManuscriptSettings:
    """Build settings from the configuration store.

    Args:
        config_path: Optional explicit store path
        env: Deployment environment selected on the command line

    Returns:
        ManuscriptSettings populated from the store, with defaults for missing keys

    Raises:
        ConfigurationError: If the store is malformed or a numeric value is invalid
    """
    store = ConfigStore(config_path)
    try:
        status_timeout = float(store.get("status_timeout", DEFAULT_STATUS_TIMEOUT))
        status_interval = float(store.get("status_interval", DEFAULT_STATUS_INTERVAL))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid status timing in {store.config_path}: {e}") from e

    return ManuscriptSettings(
        config_path=store.config_path,
        base_dir=store.base_dir,
        env=env,
        container_runtime=str(store.get("container_runtime", "auto")),
        status_timeout=status_timeout,
        status_interval=status_interval,
        log_level=store.get("logging.level"),
    )
