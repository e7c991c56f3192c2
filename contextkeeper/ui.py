# contextkeeper/ui.py
"""
Terminal output for the CLI. Messages go to stderr so stdout stays clean for
piped context output (and, in server mode, the JSON-RPC stream).
"""

from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.theme import Theme

# ─── TokyoNight-flavoured theme ───────────────────────────────────
CONTEXTKEEPER_THEME = Theme(
    {
        "primary": "bold #7aa2f7",
        "success": "#9ece6a",
        "warning": "bold #e0af68",
        "error": "bold #f7768e",
        "info": "dim #7dcfff",
        "markdown.h1": "bold #7aa2f7",
        "markdown.h2": "bold #bb9af7",
        "markdown.h3": "#7dcfff",
        "markdown.code": "bold #ff9e64",
        "markdown.block_quote": "#565f89",
        "markdown.table_border": "#3b4261",
    }
)

# stdout: rendered context only; stderr: everything else
console = Console(theme=CONTEXTKEEPER_THEME)
err_console = Console(theme=CONTEXTKEEPER_THEME, stderr=True)


def print_markdown(text: str) -> None:
    console.print(Markdown(text))


def print_info(message: str, **kwargs) -> None:
    err_console.print(f"[info]{escape(message)}[/info]", **kwargs)


def print_success(message: str, **kwargs) -> None:
    err_console.print(f"[success]{escape(message)}[/success]", **kwargs)


def print_error(message: str, **kwargs) -> None:
    err_console.print(f"[error]{escape(message)}[/error]", **kwargs)
