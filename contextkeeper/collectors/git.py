# contextkeeper/collectors/git.py
from __future__ import annotations

from typing import List

from contextkeeper import vcs
from contextkeeper.config import ProjectConfig
from contextkeeper.errors import CollectorError, CollectorErrorKind
from contextkeeper.logger import get_logger
from contextkeeper.runner import CommandStatus, ExternalCommandRunner

from .base import Collector
from .models import GitRepoStatus, SectionName

logger = get_logger("collectors.git")


def priority_order(repos: List[GitRepoStatus]) -> List[GitRepoStatus]:
    """Dirty repositories first, then alphabetical by path."""
    return sorted(repos, key=lambda r: (not r.dirty, r.path))


class GitCollector(Collector):
    """Status of every repository under the project root."""

    section = SectionName.GIT

    def collect(
        self, config: ProjectConfig, runner: ExternalCommandRunner
    ) -> List[GitRepoStatus]:
        paths = vcs.repository_paths(
            config.root,
            explicit=config.git.paths,
            auto_detect=config.git.auto_detect,
            scan_depth=config.git.scan_depth,
        )
        if not paths:
            return []

        # every discovered repo is inspected; the level budget cuts after ordering
        repos: List[GitRepoStatus] = [self._inspect(runner, config, rel) for rel in paths]
        logger.debug("Inspected %d repositories", len(repos))
        return priority_order(repos)

    def _inspect(
        self, runner: ExternalCommandRunner, config: ProjectConfig, rel: str
    ) -> GitRepoStatus:
        repo = config.resolve(rel)
        result = vcs.git(runner, repo, "status", "--porcelain", "--branch")
        if result.status is CommandStatus.NOT_FOUND:
            raise CollectorError(CollectorErrorKind.TOOL_NOT_FOUND, "git not found on PATH")
        if not result.ok:
            logger.warning("Degraded git entry for %s: %s", rel, result.describe())
            return GitRepoStatus(path=rel, degraded=True, error=result.describe())

        porcelain = vcs.parse_porcelain(result.stdout)
        branch = porcelain.branch
        if porcelain.detached or not branch:
            described = vcs.git(runner, repo, "describe", "--always")
            branch = f"({described.stdout.strip()})" if described.ok else "unknown"

        commit = vcs.short_commit(runner, repo)
        return GitRepoStatus(
            path=rel,
            branch=branch,
            dirty=porcelain.dirty,
            ahead=porcelain.ahead,
            behind=porcelain.behind,
            modified=porcelain.modified,
            untracked=porcelain.untracked,
            last_commit=vcs.truncate_commit(commit.stdout) if commit.ok else "",
        )
