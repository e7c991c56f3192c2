# contextkeeper/errors.py
"""Error taxonomy shared by every layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ContextKeeperError(Exception):
    """Base class for all ContextKeeper failures."""


class ConfigError(ContextKeeperError):
    """Missing or unparseable project configuration."""


class PersistenceError(ContextKeeperError):
    """Work-state read/write failure."""


class CollectorErrorKind(str, Enum):
    TOOL_NOT_FOUND = "tool_not_found"
    TIMEOUT = "timeout"
    PARSE_FAILURE = "parse_failure"
    IO_FAILURE = "io_failure"


class CollectorError(ContextKeeperError):
    """A single collector failed; only its own section is lost."""

    def __init__(self, kind: CollectorErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} ({self.kind.value})"


class ProtocolError(ContextKeeperError):
    """A request-level failure reported as a JSON-RPC error object."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def __init__(self, code: int, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data
