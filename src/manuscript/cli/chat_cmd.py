"""Text-to-SQL chat command.

This module provides the 'manuscript-cli chat' command, an interactive loop
around :class:`manuscript.services.sql_chat.SqlChatSession`.
"""

import click
import openai
import questionary
from rich.markup import escape
from rich.syntax import Syntax

from manuscript.errors import ContainerRuntimeError, ManuscriptError
from manuscript.services.sql_chat import PROVIDERS, SqlChatSession

from .project_utils import report_error, resolve_job, settings_from_context
from .styles import Messages, Styles, console, get_questionary_style

EXIT_WORDS = {"exit", "quit", "bye", "end"}


def _answer(session: SqlChatSession, question: str, confirm: bool) -> None:
    with console.status("[dim]Generating SQL...[/dim]", spinner="dots"):
        sql = session.generate_sql(question)

    if not sql:
        console.print(Messages.warning("The model did not return a query"))
        return

    console.print(Syntax(sql, "sql", theme="monokai", word_wrap=True))
    if confirm:
        run_it = questionary.confirm(
            "Execute this query?", default=True, style=get_questionary_style()
        ).ask()
        if not run_it:
            return

    with console.status("[dim]Running query...[/dim]", spinner="dots"):
        output = session.run_query(sql)
    console.print(escape(output))


@click.command()
@click.argument("job_name")
@click.option(
    "--provider",
    type=click.Choice(list(PROVIDERS)),
    default="openai",
    show_default=True,
    help="AI provider",
)
@click.option("--model", help="Model identifier (default depends on provider)")
@click.option("--yes", "-y", is_flag=True, help="Run generated queries without asking")
@click.pass_context
def chat(ctx, job_name: str, provider: str, model: str | None, yes: bool):
    """Chat with a job's dataset using natural language.

    Questions are translated to SQL by the selected AI provider and run
    against the job's Postgres database.

    Required environment variables:

    \b
      OPENAI_API_KEY   - openai provider
      GEMINI_API_KEY   - gemini provider
      OPENAI_API_BASE  - optional custom endpoint (openai, gaia)

    Commands within the chat:

    \b
      exit/quit/bye - Leave the chat
      Ctrl+C        - Leave the chat

    Examples:

    \b
      $ manuscript-cli chat my-manuscript
      $ manuscript-cli c my-manuscript --provider gemini
    """
    try:
        settings = settings_from_context(ctx)
        manuscript = resolve_job(settings, job_name)
        session = SqlChatSession(
            manuscript, settings.runtime_config(), provider=provider, model=model
        )
    except ManuscriptError as e:
        report_error(f"Failed to start chat: {e}")
        raise click.Abort() from None

    console.print(
        f"🤖 Chatting with {Messages.job(escape(manuscript.name))} "
        f"([info]{session.qualified_table}[/info]) using {provider}/{session.model}"
    )
    console.print("   Type 'exit' or press Ctrl+C to leave\n", style=Styles.DIM)

    while True:
        try:
            question = console.input("[job]🏄 Ask> [/job]").strip()
        except (KeyboardInterrupt, EOFError):
            break

        if not question:
            continue
        if question.lower() in EXIT_WORDS:
            break

        try:
            _answer(session, question, confirm=not yes)
        except openai.APIError as e:
            report_error(f"AI request failed: {e}")
        except ContainerRuntimeError as e:
            report_error(str(e))
        except KeyboardInterrupt:
            console.print()
            break

    console.print("\n👋 Goodbye!", style=Styles.WARNING)
