"""Tests for console styles."""

import io

import pytest
from rich.console import Console

from manuscript.cli.styles import THEME, Messages, Styles


def render(markup: str) -> str:
    console = Console(theme=THEME, file=io.StringIO(), width=200, color_system=None)
    console.print(markup)
    return console.file.getvalue()


class TestMessages:
    def test_step_has_check_mark(self):
        assert render(Messages.step("Step 3: Verifying port initialization")).strip() == (
            "✓ Step 3: Verifying port initialization"
        )

    def test_endpoint_shows_label_and_url(self):
        output = render(Messages.endpoint("GraphQL endpoint", "http://localhost:8082"))

        assert output.strip() == "GraphQL endpoint: http://localhost:8082"

    def test_error_has_cross(self):
        assert render(Messages.error("boom")).strip() == "✗ boom"

    @pytest.mark.parametrize(
        "markup",
        [
            Messages.success("done"),
            Messages.warning("careful"),
            Messages.job("demo"),
            Messages.label_value("Python", "3.12"),
            Messages.command("manuscript-cli list"),
            "[path]manuscript.yaml[/path] [info]public.blocks[/info]",
        ],
    )
    def test_markup_uses_theme_styles(self, markup):
        assert render(markup).strip()


class TestStyles:
    @pytest.mark.parametrize(
        "name", [Styles.DIM, Styles.INFO, Styles.WARNING, Styles.JOB, Styles.ENDPOINT]
    )
    def test_style_names_are_in_theme(self, name):
        assert name in THEME.styles
