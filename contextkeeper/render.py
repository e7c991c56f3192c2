# contextkeeper/render.py
"""
Markdown rendering of a `ContextSnapshot`.

The layout is the documented contract consumed by assistants:

    # Development Context (ContextKeeper)
    ## Project / ## AI Hints (Important) / ## Work State
    ## Available Build Targets / ## Active Containers / ## Example Commands
    ## Recent Relevant Commands / ## Git Status / ## Connected Devices
    ## Warnings

`minimal` collapses everything into a handful of lines.
"""

from __future__ import annotations

from typing import List

from contextkeeper.compose import ContextSnapshot, Level, SectionSlice, WorkStateView

TITLE = "# Development Context (ContextKeeper)"
MAX_COMMAND_CHARS = 80


def _cell(text: str) -> str:
    return str(text).replace("|", "\\|").replace("\n", " ")


def _more(section: SectionSlice) -> str:
    return f"+{section.omitted} more" if section.omitted else ""


def _more_line(out: List[str], section: SectionSlice) -> None:
    if section.omitted:
        out.append(f"_{_more(section)}_")


def _short_command(command: str) -> str:
    if len(command) > MAX_COMMAND_CHARS:
        return command[: MAX_COMMAND_CHARS - 3] + "..."
    return command


# ─────────────────────────────  minimal  ────────────────────────────────────
def _render_minimal(snap: ContextSnapshot) -> str:
    kind = f" [{snap.project_type}]" if snap.project_type else ""
    out = [f"# Dev Context: {snap.project_name}{kind} (minimal)"]
    if snap.hint:
        out.append(f"> {snap.hint}")

    ws = snap.work_state
    if ws:
        out.append(f"**Task:** {ws.task_summary}")
        if ws.working_files.items:
            files = ", ".join(f"`{f}`" for f in ws.working_files.items)
            more = f" ({_more(ws.working_files)})" if ws.working_files.omitted else ""
            out.append(f"**Files:** {files}{more}")

    if snap.git is not None and snap.git.items:
        repos = ", ".join(f"{r.path} ({r.branch})" for r in snap.git.items)
        more = f" ({_more(snap.git)})" if snap.git.omitted else ""
        out.append(f"**Dirty repos:** {repos}{more}")

    if snap.warnings:
        out.append("**Warnings:** " + "; ".join(snap.warnings))

    return "\n".join(out) + "\n"


# ─────────────────────────────  sections  ───────────────────────────────────
def _project(out: List[str], snap: ContextSnapshot) -> None:
    out.append("## Project")
    out.append(f"- **Name:** {snap.project_name}")
    if snap.project_type:
        out.append(f"- **Type:** {snap.project_type}")
    out.append(f"- **Detail level:** {snap.level.value}")
    out.append("")


def _hints(out: List[str], snap: ContextSnapshot) -> None:
    if not snap.hint:
        return
    out.append("## AI Hints (Important)")
    out.extend(f"> {line}" if line.strip() else ">" for line in snap.hint.splitlines())
    out.append("")


def _work_state(out: List[str], ws: WorkStateView) -> None:
    out.append("## Work State")
    out.append(f"**Task:** {ws.task_summary}")
    if ws.saved_at:
        out.append(f"_Saved {ws.saved_at.strftime('%Y-%m-%d %H:%M')} UTC_")
    if ws.working_files.items:
        label = "Working files (auto-detected)" if ws.files_detected else "Working files"
        out.append(f"\n**{label}:**")
        out.extend(f"- `{f}`" for f in ws.working_files.items)
        _more_line(out, ws.working_files)
    if ws.notes:
        out.append("\n**Notes:**")
        out.append(ws.notes)
    if ws.todos is not None and ws.todos.items:
        out.append("\n**Todos:**")
        for todo in ws.todos.items:
            mark = {"completed": "x", "in_progress": "~"}.get(todo.status.value, " ")
            out.append(f"- [{mark}] {todo.content}")
        _more_line(out, ws.todos)
    out.append("")


def _targets(out: List[str], snap: ContextSnapshot) -> None:
    targets = snap.targets
    if targets is None or not targets.items:
        return
    out.append("## Available Build Targets")
    out.append("")
    out.append("| Target | Description | Container | Lunch Target |")
    out.append("|--------|-------------|-----------|--------------|")
    for t in targets.items:
        out.append(
            f"| {_cell(t.name)} | {_cell(t.description)} | {_cell(t.container)} | {_cell(t.launch_target)} |"
        )
    _more_line(out, targets)
    capable = [t for t in targets.items if t.capabilities]
    if capable:
        out.append("")
        out.append("### Target Capabilities")
        out.extend(f"- **{t.name}:** {', '.join(t.capabilities)}" for t in capable)
    out.append("")


def _containers(out: List[str], snap: ContextSnapshot) -> None:
    containers = snap.containers
    if containers is None or not containers.items:
        return
    out.append("## Active Containers")
    out.extend(f"- **{c.name}** ({c.runtime}): {c.status}" for c in containers.items)
    _more_line(out, containers)
    out.append("")


def _commands(out: List[str], snap: ContextSnapshot) -> None:
    commands = snap.commands
    if commands is None or not commands.items:
        return
    out.append("## Example Commands")
    out.append("```bash")
    out.extend(commands.items)
    out.append("```")
    _more_line(out, commands)
    out.append("")


def _history(out: List[str], snap: ContextSnapshot) -> None:
    history = snap.history
    if history is None or not history.items:
        return
    out.append("## Recent Relevant Commands")
    out.append("Newest first; executed in previous sessions (useful after context compression):")
    out.append("")
    out.append("| Time | Command |")
    out.append("|------|---------|")
    for entry in history.items:
        out.append(f"| {_cell(entry.timestamp)} | `{_cell(_short_command(entry.command))}` |")
    _more_line(out, history)
    out.append("")


def _git(out: List[str], snap: ContextSnapshot) -> None:
    git = snap.git
    if git is None or not git.items:
        return
    title = "## Git Status" if snap.level is Level.FULL else "## Git Status (dirty repositories)"
    out.append(title)
    out.append("")
    out.append("| Repository | Branch | Status | Upstream | Last Commit |")
    out.append("|------------|--------|--------|----------|-------------|")
    for r in git.items:
        out.append(
            f"| {_cell(r.path)} | {_cell(r.branch)} | {r.summary} | {r.divergence} | {_cell(r.last_commit)} |"
        )
    _more_line(out, git)
    out.append("")


def _devices(out: List[str], snap: ContextSnapshot) -> None:
    devices = snap.devices
    if devices is None or not devices.items:
        return
    out.append("## Connected Devices")
    out.append("| Serial | State | Type |")
    out.append("|--------|-------|------|")
    out.extend(f"| {d.serial} | {d.state} | {d.transport} |" for d in devices.items)
    _more_line(out, devices)
    out.append("")


def _warnings(out: List[str], snap: ContextSnapshot) -> None:
    if not snap.warnings:
        return
    out.append("## Warnings")
    out.append("Some sources could not be collected; their sections are omitted:")
    out.extend(f"- {w}" for w in snap.warnings)
    out.append("")


# ─────────────────────────────  public API  ─────────────────────────────────
def render_markdown(snap: ContextSnapshot) -> str:
    if snap.level is Level.MINIMAL:
        return _render_minimal(snap)

    out: List[str] = [TITLE, ""]
    _project(out, snap)
    _hints(out, snap)
    if snap.work_state:
        _work_state(out, snap.work_state)
    _targets(out, snap)
    _containers(out, snap)
    _commands(out, snap)
    _history(out, snap)
    _git(out, snap)
    _devices(out, snap)
    _warnings(out, snap)
    return "\n".join(out).rstrip("\n") + "\n"
