# contextkeeper/pipeline.py
"""Load config → collect → compose → render, for one request."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from contextkeeper.collectors import Collector, SectionName, collect_sections
from contextkeeper.compose import (
    ContextSnapshot,
    Level,
    LevelComposer,
    estimate_tokens,
    required_sections,
)
from contextkeeper.config import load_config
from contextkeeper.logger import get_logger
from contextkeeper.render import render_markdown
from contextkeeper.runner import ExternalCommandRunner

logger = get_logger("pipeline")


def build_snapshot(
    root: Optional[Path],
    level: Union[Level, str, None] = None,
    *,
    runner: Optional[ExternalCommandRunner] = None,
    collectors: Optional[Dict[SectionName, Collector]] = None,
) -> ContextSnapshot:
    """Raises ConfigError (bad config) or ValueError (unknown level)."""
    lvl = level if isinstance(level, Level) else Level.parse(level)
    config = load_config(root)
    report = collect_sections(
        config, required_sections(lvl), runner=runner, collectors=collectors
    )
    return LevelComposer(lvl).compose(config, report)


def get_dev_context(
    root: Optional[Path],
    level: Union[Level, str, None] = None,
    *,
    runner: Optional[ExternalCommandRunner] = None,
    collectors: Optional[Dict[SectionName, Collector]] = None,
) -> Tuple[str, ContextSnapshot]:
    snapshot = build_snapshot(root, level, runner=runner, collectors=collectors)
    markdown = render_markdown(snapshot)
    logger.info(
        "Rendered %s context for %r: %d chars (~%d tokens), %d warning(s)",
        snapshot.level.value,
        snapshot.project_name,
        len(markdown),
        estimate_tokens(markdown),
        len(snapshot.warnings),
    )
    return markdown, snapshot
