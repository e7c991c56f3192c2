# contextkeeper/server/tools.py
"""
MCP tools exposed by the server.

Each tool is a description (shown by ``tools/list``) plus a handler that
receives the call arguments and returns an MCP ``CallToolResult`` dict.
Parameter problems raise `ProtocolError`; environment problems (bad config,
unwritable state) come back as a result with ``isError: true``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from contextkeeper.collectors import Collector, SectionName
from contextkeeper.compose import Level
from contextkeeper.config import default_config, load_config
from contextkeeper.errors import ConfigError, PersistenceError, ProtocolError
from contextkeeper.logger import get_logger
from contextkeeper.pipeline import get_dev_context
from contextkeeper.runner import ExternalCommandRunner
from contextkeeper.state import TodoItem, WorkStateStore, save_work_state

logger = get_logger("server.tools")


@dataclass
class ToolContext:
    """Per-server collaborators handed to every tool call."""

    root: Optional[Path] = None
    runner: Optional[ExternalCommandRunner] = None
    collectors: Optional[Dict[SectionName, Collector]] = None
    state_dir: Optional[Path] = None


@dataclass
class Tool:
    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: Callable[[Dict[str, Any], ToolContext], Dict[str, Any]] = field(repr=False)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def text_result(text: str, is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


# ---------------------------------------------------------------------------
# get_dev_context
# ---------------------------------------------------------------------------


def _get_dev_context(arguments: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    level = arguments.get("level")
    if level is not None and not isinstance(level, str):
        raise ProtocolError(ProtocolError.INVALID_PARAMS, "'level' must be a string")
    try:
        lvl = Level.parse(level)
    except ValueError as exc:
        raise ProtocolError(ProtocolError.INVALID_PARAMS, str(exc)) from exc

    try:
        markdown, _ = get_dev_context(
            ctx.root, lvl, runner=ctx.runner, collectors=ctx.collectors
        )
    except ConfigError as exc:
        logger.warning("get_dev_context: %s", exc)
        return text_result(f"Configuration error: {exc}", is_error=True)
    return text_result(markdown)


# ---------------------------------------------------------------------------
# save_work_state
# ---------------------------------------------------------------------------


class SaveWorkStateParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    task_summary: str = Field(min_length=1)
    working_files: Optional[List[str]] = None
    notes: str = ""
    todos: List[Union[TodoItem, str]] = Field(default_factory=list)


def _save_work_state(arguments: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    try:
        params = SaveWorkStateParams.model_validate(arguments)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ProtocolError(ProtocolError.INVALID_PARAMS, f"Invalid arguments: {problems}") from exc
    if not params.task_summary.strip():
        raise ProtocolError(ProtocolError.INVALID_PARAMS, "task_summary must not be empty")

    try:
        config = load_config(ctx.root)
    except ConfigError as exc:
        logger.info("save_work_state without a usable config (%s); using defaults", exc)
        config = default_config(ctx.root)

    try:
        state = save_work_state(
            config,
            params.task_summary,
            working_files=params.working_files,
            notes=params.notes,
            todos=params.todos,
            runner=ctx.runner,
            store=WorkStateStore(config.root, state_dir=ctx.state_dir),
        )
    except PersistenceError as exc:
        logger.error("save_work_state failed: %s", exc)
        return text_result(f"Failed to save work state: {exc}", is_error=True)

    source = "auto-detected" if state.files_detected else "provided"
    return text_result(
        f"Work state saved: {state.task_summary} "
        f"({len(state.working_files)} {source} working file(s), {len(state.todos)} todo(s))"
    )


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

TOOLS: Dict[str, Tool] = {
    t.name: t
    for t in (
        Tool(
            name="get_dev_context",
            description=(
                "Get the current development environment context: saved work state, "
                "build targets, containers, recent build commands, git status and "
                "connected devices. Call this at the start of a conversation, after "
                "context compression, or whenever the environment is unclear."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "level": {
                        "type": "string",
                        "enum": [level.value for level in Level],
                        "default": Level.NORMAL.value,
                        "description": "Detail level: minimal (~200 tokens), normal (~400), full (~1000).",
                    }
                },
            },
            handler=_get_dev_context,
        ),
        Tool(
            name="save_work_state",
            description=(
                "Save a compact summary of the task in progress so it survives context "
                "compression. Replaces any previously saved state for this project."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "task_summary": {"type": "string", "description": "What you are working on."},
                    "working_files": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Files being edited; auto-detected from git when omitted.",
                    },
                    "notes": {"type": "string", "description": "Free-form notes."},
                    "todos": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "content": {"type": "string"},
                                "status": {
                                    "type": "string",
                                    "enum": ["pending", "in_progress", "completed"],
                                },
                            },
                            "required": ["content"],
                        },
                    },
                },
                "required": ["task_summary"],
            },
            handler=_save_work_state,
        ),
    )
}


def list_tools() -> List[Dict[str, Any]]:
    return [tool.describe() for tool in TOOLS.values()]


def call_tool(name: Any, arguments: Any, ctx: ToolContext) -> Dict[str, Any]:
    tool = TOOLS.get(name) if isinstance(name, str) else None
    if tool is None:
        raise ProtocolError(ProtocolError.INVALID_PARAMS, f"Unknown tool: {name}")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ProtocolError(ProtocolError.INVALID_PARAMS, "'arguments' must be an object")
    logger.info("Calling tool %s", name)
    return tool.handler(arguments, ctx)
