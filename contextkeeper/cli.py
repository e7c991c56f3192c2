# contextkeeper/cli.py
from pathlib import Path
from typing import List, Optional

import typer

from contextkeeper import __version__, env
from contextkeeper.errors import ConfigError, PersistenceError
from contextkeeper.logger import get_logger
from contextkeeper.ui import print_error, print_info, print_markdown, print_success

app = typer.Typer(
    help="ContextKeeper: development-environment context for AI assistants.",
    add_completion=False,
)

logger = get_logger("cli")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"context-keeper {__version__}")
        raise typer.Exit()


def print_context(root: Path, level: Optional[str], pretty: bool) -> int:
    from contextkeeper.pipeline import get_dev_context

    try:
        markdown, _ = get_dev_context(root, level)
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        return 1
    except ValueError as exc:
        print_error(str(exc))
        return 1

    if pretty:
        print_markdown(markdown)
    else:
        typer.echo(markdown, nl=False)
    return 0


def save_state(
    root: Path,
    summary: str,
    notes: str,
    files: List[str],
    todos: List[str],
) -> int:
    from contextkeeper.config import default_config, load_config
    from contextkeeper.state import save_work_state

    try:
        config = load_config(root)
    except ConfigError as exc:
        logger.info("Saving work state without config: %s", exc)
        config = default_config(root)

    try:
        state = save_work_state(
            config,
            summary,
            working_files=files or None,
            notes=notes,
            todos=todos,
        )
    except (PersistenceError, ValueError) as exc:
        print_error(f"Failed to save work state: {exc}")
        return 1

    source = "auto-detected" if state.files_detected else "provided"
    print_success(
        f"Work state saved ({len(state.working_files)} {source} file(s), {len(state.todos)} todo(s))."
    )
    return 0


def clear_state(root: Path) -> int:
    from contextkeeper.state import WorkStateStore

    try:
        removed = WorkStateStore(root).clear()
    except PersistenceError as exc:
        print_error(str(exc))
        return 1
    print_info("Work state cleared." if removed else "No saved work state.")
    return 0


@app.command()
def main(
    level: Optional[str] = typer.Argument(
        None, help="Detail level for --context: minimal, normal (default) or full."
    ),
    context: bool = typer.Option(
        False, "--context", "-c", help="Print the rendered context and exit."
    ),
    save_state_summary: Optional[str] = typer.Option(
        None, "--save-state", "-s", metavar="SUMMARY", help="Save work state and exit."
    ),
    notes: str = typer.Option("", "--notes", help="Notes stored with --save-state."),
    files: Optional[List[str]] = typer.Option(
        None, "--file", "-f", help="Working file for --save-state (repeatable)."
    ),
    todos: Optional[List[str]] = typer.Option(
        None, "--todo", help="Pending todo for --save-state (repeatable)."
    ),
    clear: bool = typer.Option(False, "--clear-state", help="Delete the saved work state and exit."),
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Project root (defaults to the current directory)."
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Render --context output for a terminal."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Serve MCP over stdio (no flags), or print/save context from the shell.
    """
    project_root = env.resolve_project_root(root)

    if clear:
        raise typer.Exit(code=clear_state(project_root))

    if save_state_summary is not None:
        raise typer.Exit(
            code=save_state(project_root, save_state_summary, notes, files or [], todos or [])
        )

    if context:
        raise typer.Exit(code=print_context(project_root, level, pretty))

    if level is not None:
        print_error(f"Unexpected argument {level!r} (did you mean --context {level}?)")
        raise typer.Exit(code=2)

    from contextkeeper.server import run_server

    raise typer.Exit(code=run_server(project_root))
