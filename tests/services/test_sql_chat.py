"""Tests for the Text-to-SQL chat session."""

import os
from unittest.mock import MagicMock, patch

import pytest

from manuscript.errors import ConfigurationError, ContainerRuntimeError
from manuscript.services import sql_chat
from manuscript.services.sql_chat import SqlChatSession, create_client, extract_sql
from tests.conftest import make_manuscript


def completion(content):
    """Build a chat completion response shaped like the OpenAI SDK's."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def session():
    client = MagicMock()
    ms = make_manuscript("demo", database="ethereum", table="blocks", chain="ethereum.blocks")
    chat = SqlChatSession(ms, {"container_runtime": "docker"}, client=client)
    # Skip the psql table description round trip
    chat._table_description = ""
    return chat


class TestExtractSql:
    """Test pulling SQL out of model responses."""

    def test_fenced_sql_block(self):
        text = "Here you go:\n```sql\nSELECT count(*) FROM public.blocks;\n```\nEnjoy."
        assert extract_sql(text) == "SELECT count(*) FROM public.blocks;"

    def test_unlabelled_fence(self):
        assert extract_sql("```\nSELECT 1;\n```") == "SELECT 1;"

    def test_plain_text(self):
        assert extract_sql("  SELECT 1;  \n") == "SELECT 1;"

    def test_empty(self):
        assert extract_sql("") == ""
        assert extract_sql(None) == ""


class TestCreateClient:
    """Test provider selection and API key checks."""

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_openai_key(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            create_client("openai")

    @patch.dict(os.environ, {}, clear=True)
    def test_missing_gemini_key(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            create_client("gemini")

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown AI provider"):
            create_client("mystery")

    @patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test", "OPENAI_API_BASE": "http://llm.local/v1"})
    @patch("openai.OpenAI")
    def test_openai_with_custom_base(self, mock_openai):
        create_client("openai")

        mock_openai.assert_called_once_with(api_key="sk-test", base_url="http://llm.local/v1")

    @patch.dict(os.environ, {"GEMINI_API_KEY": "g-test"}, clear=True)
    @patch("openai.OpenAI")
    def test_gemini_uses_compatible_endpoint(self, mock_openai):
        create_client("gemini")

        assert mock_openai.call_args.kwargs["base_url"] == sql_chat.PROVIDERS["gemini"].default_base_url

    @patch.dict(os.environ, {}, clear=True)
    @patch("openai.OpenAI")
    def test_gaia_does_not_need_a_key(self, mock_openai):
        create_client("gaia")

        assert mock_openai.call_args.kwargs["base_url"] == sql_chat.PROVIDERS["gaia"].default_base_url


class TestSqlChatSession:
    """Test prompt building, generation and query execution."""

    def test_build_messages_includes_table_and_history(self, session):
        session.history = [
            {"role": "user", "content": "how many blocks?"},
            {"role": "assistant", "content": "```sql\nSELECT count(*) FROM public.blocks\n```"},
        ]

        messages = session.build_messages("and today?")

        assert messages[0]["role"] == "system"
        assert "public.blocks" in messages[0]["content"]
        assert "Database: ethereum" in messages[0]["content"]
        assert messages[1:3] == session.history
        assert messages[-1] == {"role": "user", "content": "and today?"}

    def test_generate_sql_records_history(self, session):
        session.client.chat.completions.create.return_value = completion(
            "```sql\nSELECT max(block_number) FROM public.blocks;\n```"
        )

        sql = session.generate_sql("latest block?")

        assert sql == "SELECT max(block_number) FROM public.blocks;"
        kwargs = session.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][-1]["content"] == "latest block?"
        assert len(session.history) == 2

    @patch.object(sql_chat, "get_runtime_binary", return_value="docker")
    @patch("subprocess.run")
    def test_run_query_execs_psql_in_postgres_container(self, mock_run, _binary, session):
        mock_run.return_value = MagicMock(returncode=0, stdout=" count \n-------\n  42\n")

        output = session.run_query("SELECT count(*) FROM public.blocks")

        assert "42" in output
        assert mock_run.call_args[0][0] == [
            "docker",
            "exec",
            "-i",
            "demo-postgres-1",
            "psql",
            "-U",
            "postgres",
            "-d",
            "ethereum",
            "-c",
            "SELECT count(*) FROM public.blocks",
        ]

    @patch.object(sql_chat, "get_runtime_binary", return_value="docker")
    @patch("subprocess.run")
    def test_run_query_failure(self, mock_run, _binary, session):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr='relation "x" does not exist')

        with pytest.raises(ContainerRuntimeError, match="does not exist"):
            session.run_query("SELECT * FROM x")

    @patch.object(sql_chat, "get_runtime_binary", return_value="docker")
    @patch("subprocess.run")
    def test_describe_table_failure_is_not_fatal(self, mock_run, _binary):
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="no such container")
        chat = SqlChatSession(make_manuscript("demo", table="blocks"), client=MagicMock())

        assert chat.describe_table() == ""
        assert "Table definition" not in chat.system_prompt()
