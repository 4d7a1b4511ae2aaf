"""Text-to-SQL chat over a job's Postgres sink.

Questions are turned into PostgreSQL queries by an OpenAI-compatible chat
completion endpoint and executed with ``psql`` inside the job's Postgres
container.

Providers:
    - openai: OPENAI_API_KEY, optional OPENAI_API_BASE
    - gemini: GEMINI_API_KEY (Google's OpenAI-compatible endpoint)
    - gaia: OPENAI_API_BASE or the public Gaia node, key optional
"""

import os
import re
import subprocess
from dataclasses import dataclass

import openai

from manuscript.deployment.runtime_helper import get_runtime_binary
from manuscript.errors import ConfigurationError, ContainerRuntimeError
from manuscript.models import Manuscript
from manuscript.utils.logger import get_logger

logger = get_logger("chat")


@dataclass(frozen=True)
class ProviderConfig:
    api_key_env: str
    default_model: str
    base_url_env: str | None = None
    default_base_url: str | None = None
    key_required: bool = True


PROVIDERS = {
    "openai": ProviderConfig(
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
        base_url_env="OPENAI_API_BASE",
    ),
    "gemini": ProviderConfig(
        api_key_env="GEMINI_API_KEY",
        default_model="gemini-1.5-flash",
        default_base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    ),
    "gaia": ProviderConfig(
        api_key_env="GAIA_API_KEY",
        default_model="llama",
        base_url_env="OPENAI_API_BASE",
        default_base_url="https://llama.us.gaianet.network/v1",
        key_required=False,
    ),
}

_SQL_FENCE_RE = re.compile(r"```(?:sql|postgresql)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_sql(text: str) -> str:
    """Pull the SQL statement out of a model response.

    Prefers the first fenced code block; otherwise the whole response is used.
    """
    match = _SQL_FENCE_RE.search(text or "")
    sql = match.group(1) if match else (text or "")
    return sql.strip()


def create_client(provider: str) -> openai.OpenAI:
    """Build an OpenAI SDK client for ``provider``.

    :raises ConfigurationError: For unknown providers or a missing API key
    """
    config = PROVIDERS.get(provider)
    if config is None:
        raise ConfigurationError(
            f"Unknown AI provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}"
        )

    api_key = os.environ.get(config.api_key_env)
    if not api_key:
        if config.key_required:
            raise ConfigurationError(
                f"{config.api_key_env} is not set. Export it to chat with the {provider} provider."
            )
        api_key = "not-needed"

    base_url = None
    if config.base_url_env:
        base_url = os.environ.get(config.base_url_env)
    base_url = base_url or config.default_base_url

    return openai.OpenAI(api_key=api_key, base_url=base_url)


class SqlChatSession:
    """Conversation state for one job.

    Attributes:
        manuscript: Job whose Postgres sink is queried
        provider: Provider name from :data:`PROVIDERS`
        model: Model identifier
        history: Previous (question, sql) exchanges as chat messages
    """

    def __init__(
        self,
        manuscript: Manuscript,
        config: dict | None = None,
        provider: str = "openai",
        model: str | None = None,
        client: openai.OpenAI | None = None,
    ):
        self.manuscript = manuscript
        self.config = config
        self.provider = provider
        self.model = model or PROVIDERS.get(provider, PROVIDERS["openai"]).default_model
        self.client = client or create_client(provider)
        self.history: list[dict[str, str]] = []
        self._table_description: str | None = None

    @property
    def database(self) -> str:
        return self.manuscript.database or self.manuscript.name

    @property
    def qualified_table(self) -> str:
        schema = self.manuscript.sinks[0].schema_ if self.manuscript.sinks else "public"
        return f"{schema or 'public'}.{self.manuscript.table}"

    def _psql_command(self, sql: str) -> list[str]:
        return [
            get_runtime_binary(self.config),
            "exec",
            "-i",
            self.manuscript.postgres_container,
            "psql",
            "-U",
            self.manuscript.db_user,
            "-d",
            self.database,
            "-c",
            sql,
        ]

    def run_query(self, sql: str) -> str:
        """Execute ``sql`` in the job's Postgres container and return psql's output.

        :raises ContainerRuntimeError: If psql exits with an error
        """
        cmd = self._psql_command(sql)
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise ContainerRuntimeError(
                f"query failed: {result.stderr.strip() or result.returncode}", cmd, result.stderr
            )
        return result.stdout

    def describe_table(self) -> str:
        """Column listing of the sink table, empty if it cannot be fetched."""
        if self._table_description is None:
            try:
                self._table_description = self.run_query(f"\\d {self.qualified_table}")
            except ContainerRuntimeError as e:
                logger.warning(f"Could not describe {self.qualified_table}: {e}")
                self._table_description = ""
        return self._table_description

    def system_prompt(self) -> str:
        prompt = (
            "You translate questions into a single PostgreSQL query.\n"
            f"Database: {self.database}\n"
            f"Table: {self.qualified_table}\n"
        )
        if self.manuscript.chain:
            prompt += f"The table holds {self.manuscript.chain} data.\n"
        description = self.describe_table()
        if description:
            prompt += f"Table definition:\n{description}\n"
        prompt += "Reply with the SQL statement only, in a ```sql code block."
        return prompt

    def build_messages(self, question: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt()},
            *self.history,
            {"role": "user", "content": question},
        ]

    def generate_sql(self, question: str) -> str:
        """Ask the model for a query answering ``question``."""
        response = self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(question),
            temperature=0,
        )
        sql = extract_sql(response.choices[0].message.content or "")
        logger.debug(f"Generated SQL: {sql}")

        self.history.append({"role": "user", "content": question})
        self.history.append({"role": "assistant", "content": f"```sql\n{sql}\n```"})
        return sql
