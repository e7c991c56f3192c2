# contextkeeper/env.py
"""
contextkeeper.env
=================

Single source‑of‑truth for:

• User‑level home (~/.contextkeeper, overridable via CONTEXTKEEPER_HOME)
• Standard home tree
      <home>/logs
      <home>/state
• Default history log location (written by the shell hook)
• Config‑file discovery inside a project root
"""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path
from typing import Optional, Sequence

# ──────────────────────────────────────────────────────────────
# constants
# ──────────────────────────────────────────────────────────────
HOME_ENV = "CONTEXTKEEPER_HOME"
CONFIG_ENV = "CONTEXTKEEPER_CONFIG"

CONFIG_CANDIDATES: Sequence[str] = (
    "contextkeeper.toml",
    "context-keeper.toml",
    ".contextkeeper.toml",
    "contextkeeper.yml",
    ".contextkeeper.yml",
)

HISTORY_LOG_NAME = "command-history.jsonl"


# ──────────────────────────────────────────────────────────────
# user‑level (~/.contextkeeper) helper
# ──────────────────────────────────────────────────────────────
def get_user_root() -> Path:
    """Return the tool home (caller decides whether to create)."""
    custom = os.getenv(HOME_ENV)
    return Path(custom).expanduser() if custom else Path("~/.contextkeeper").expanduser()


def _ensure_dir(p: Path) -> Path:
    p.mkdir(parents=True, exist_ok=True)
    return p


def get_logs_root() -> Path:
    """`<home>/logs` – rotating session log."""
    return _ensure_dir(get_user_root() / "logs")


def get_state_root() -> Path:
    """`<home>/state` – one work‑state file per project."""
    return _ensure_dir(get_user_root() / "state")


def get_default_history_log() -> Path:
    return get_user_root() / HISTORY_LOG_NAME


# ──────────────────────────────────────────────────────────────
# project helpers
# ──────────────────────────────────────────────────────────────
def resolve_project_root(path: Optional[Path | str] = None) -> Path:
    return Path(path).expanduser().resolve() if path else Path.cwd().resolve()


def project_key(root: Path) -> str:
    """
    Stable per‑project file stem: ``<slug>-<sha1(root)[:8]>``.

    The hash keeps two checkouts with the same directory name apart.
    """
    root = root.resolve()
    slug = re.sub(r"[^A-Za-z0-9_.-]+", "-", root.name).strip("-") or "root"
    digest = hashlib.sha1(str(root).encode()).hexdigest()[:8]
    return f"{slug}-{digest}"


def find_config_file(root: Path) -> Optional[Path]:
    """First existing config candidate in *root*, or the env override."""
    custom = os.getenv(CONFIG_ENV)
    if custom:
        path = Path(custom).expanduser()
        return path if path.is_absolute() else root / path

    for name in CONFIG_CANDIDATES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None
