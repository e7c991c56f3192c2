"""
contextkeeper.server
────────────────────
Newline-delimited JSON-RPC 2.0 over stdio.

• One request is read, fully handled and answered before the next line.
• Requests without an ``id`` are notifications and never answered.
• Only end-of-input or an I/O failure on the pipe ends the loop; anything
  that goes wrong inside a request becomes a JSON-RPC error object.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from pydantic import ValidationError

from contextkeeper import __version__
from contextkeeper.collectors import Collector, SectionName
from contextkeeper.errors import ProtocolError
from contextkeeper.logger import get_logger
from contextkeeper.runner import ExternalCommandRunner

from .protocol import (
    MISSING,
    JsonRpcRequest,
    encode,
    error_response,
    recover_id,
    success_response,
)
from .tools import ToolContext, call_tool, list_tools

logger = get_logger("server")

PROTOCOL_VERSION = "2025-06-18"
SERVER_NAME = "context-keeper"
INSTRUCTIONS = (
    "ContextKeeper provides development environment context. Call get_dev_context "
    "to retrieve build targets, containers, git status and recent commands, and "
    "save_work_state before context compression to keep track of the current task."
)


class ProtocolServer:
    """AwaitingRequest → Dispatching → AwaitingRequest until EOF."""

    def __init__(
        self,
        root: Optional[Path] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        runner: Optional[ExternalCommandRunner] = None,
        collectors: Optional[Dict[SectionName, Collector]] = None,
        state_dir: Optional[Path] = None,
    ) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        # undecodable bytes become U+FFFD and take the parse-error path
        if hasattr(self.stdin, "reconfigure"):
            self.stdin.reconfigure(errors="replace")
        self.stdout = stdout if stdout is not None else sys.stdout
        self.ctx = ToolContext(
            root=root, runner=runner, collectors=collectors, state_dir=state_dir
        )
        self._methods = {
            "initialize": self._initialize,
            "ping": lambda params: {},
            "tools/list": lambda params: {"tools": list_tools()},
            "tools/call": self._tools_call,
        }

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    def serve(self) -> int:
        """Serve until end of input. Returns the process exit code."""
        logger.info("Server started (root=%s)", self.ctx.root or Path.cwd())
        while True:
            try:
                line = self.stdin.readline()
            except (OSError, ValueError) as exc:
                logger.error("Failed reading request: %s", exc)
                return 1
            if line == "":
                logger.info("End of input; server stopping")
                return 0
            if not line.strip():
                continue

            try:
                response = self.handle_line(line)
            except Exception:  # noqa: BLE001
                logger.exception("Dropping request that could not be handled")
                continue
            if response is None:
                continue
            try:
                self.stdout.write(encode(response))
                self.stdout.flush()
            except (OSError, ValueError) as exc:
                logger.error("Failed writing response: %s", exc)
                return 1

    def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Handle one raw input line; None when nothing should be sent back."""
        try:
            payload = json.loads(line)
        except (ValueError, RecursionError) as exc:
            detail = exc.msg if isinstance(exc, json.JSONDecodeError) else type(exc).__name__
            request_id = recover_id(line)
            if request_id is MISSING:
                logger.warning("Ignoring unparseable line without id: %s", detail)
                return None
            return error_response(request_id, ProtocolError.PARSE_ERROR, f"Parse error: {detail}")

        if not isinstance(payload, dict):
            logger.warning("Ignoring non-object message: %r", type(payload).__name__)
            return None

        try:
            request = JsonRpcRequest.model_validate(payload)
        except ValidationError:
            if "id" not in payload:
                logger.warning("Ignoring invalid notification: %r", payload)
                return None
            raw_id = payload["id"]
            request_id = raw_id if isinstance(raw_id, (int, str)) and not isinstance(raw_id, bool) else None
            return error_response(request_id, ProtocolError.INVALID_REQUEST, "Invalid request")

        if request.is_notification:
            logger.debug("Notification %s", request.method)
            return None
        return self.handle(request)

    def handle(self, request: JsonRpcRequest) -> Dict[str, Any]:
        method = self._methods.get(request.method)
        if method is None:
            return error_response(
                request.id, ProtocolError.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )
        try:
            return success_response(request.id, method(request.params))
        except ProtocolError as exc:
            logger.warning("%s (id=%r): %s", request.method, request.id, exc.message)
            return error_response(request.id, exc.code, exc.message, exc.data)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in %s", request.method)
            return error_response(request.id, ProtocolError.INTERNAL_ERROR, f"Internal error: {exc}")

    # ------------------------------------------------------------------ #
    # Methods
    # ------------------------------------------------------------------ #

    def _initialize(self, params: Any) -> Dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
            "instructions": INSTRUCTIONS,
        }

    def _tools_call(self, params: Any) -> Dict[str, Any]:
        if not isinstance(params, dict):
            raise ProtocolError(ProtocolError.INVALID_PARAMS, "tools/call requires an object 'params'")
        return call_tool(params.get("name"), params.get("arguments"), self.ctx)


def run_server(root: Optional[Path] = None) -> int:
    return ProtocolServer(root=root).serve()
