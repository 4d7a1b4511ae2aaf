"""Console styles for manuscript-cli output.

Every command prints through the shared :data:`console`. Colors live in one
Rich theme keyed by what is being shown (a job name, an endpoint, a pipeline
step), so commands refer to ``[job]`` or ``[endpoint]`` rather than to colors.
"""

import sys

from questionary import Style as QuestionaryStyle
from rich.console import Console
from rich.theme import Theme

PALETTE = {
    "green": "#3fbf7f",
    "red": "#ff5f5f",
    "amber": "#ffaa00",
    "blue": "#3f8efc",
    "cyan": "#5fb4d9",
    "slate": "#8fa8c8",
    "grey": "#777777",
}

THEME = Theme(
    {
        "success": f"bold {PALETTE['green']}",
        "error": f"bold {PALETTE['red']}",
        "warning": f"bold {PALETTE['amber']}",
        "info": PALETTE["cyan"],
        "dim": PALETTE["grey"],
        "step": PALETTE["green"],
        "job": f"bold {PALETTE['blue']}",
        "endpoint": f"underline {PALETTE['cyan']}",
        "command": PALETTE["slate"],
        "path": PALETTE["slate"],
        "label": "bold",
    }
)

# Prompts for `init` and the query confirmation in `chat`
QUESTIONARY_STYLE = QuestionaryStyle(
    [
        ("qmark", f"fg:{PALETTE['amber']} bold"),
        ("question", "bold"),
        ("answer", f"fg:{PALETTE['blue']} bold"),
        ("pointer", f"fg:{PALETTE['blue']} bold"),
        ("highlighted", f"fg:{PALETTE['blue']} bold"),
        ("instruction", f"fg:{PALETTE['grey']} italic"),
    ]
)

# Windows consoles need UTF-8 forced for the status glyphs
if sys.platform == "win32":
    console = Console(theme=THEME, force_terminal=True, legacy_windows=False)
else:
    console = Console(theme=THEME)


def get_questionary_style() -> QuestionaryStyle:
    return QUESTIONARY_STYLE


class Styles:
    """Theme style names for ``console.print(..., style=...)``."""

    BOLD = "bold"
    DIM = "dim"
    INFO = "info"
    WARNING = "warning"
    JOB = "job"
    ENDPOINT = "endpoint"


class Messages:
    """Markup helpers for the lines commands print most often."""

    @staticmethod
    def step(name: str) -> str:
        """A finished deployment step."""
        return f"[step]✓ {name}[/step]"

    @staticmethod
    def success(text: str) -> str:
        return f"[success]✓ {text}[/success]"

    @staticmethod
    def error(text: str) -> str:
        return f"[error]✗ {text}[/error]"

    @staticmethod
    def warning(text: str) -> str:
        return f"[warning]⚠️  {text}[/warning]"

    @staticmethod
    def job(name: str) -> str:
        return f"[job]{name}[/job]"

    @staticmethod
    def endpoint(label: str, url: str) -> str:
        """``label: url`` with the address highlighted."""
        return f"[label]{label}:[/label] [endpoint]{url}[/endpoint]"

    @staticmethod
    def label_value(label: str, value: str) -> str:
        return f"[label]{label}:[/label] {value}"

    @staticmethod
    def command(text: str) -> str:
        return f"[command]{text}[/command]"


__all__ = ["Messages", "Styles", "console", "get_questionary_style"]
