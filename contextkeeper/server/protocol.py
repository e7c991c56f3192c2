# contextkeeper/server/protocol.py
"""JSON-RPC 2.0 envelopes for the newline-delimited stdio transport."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr

JSONRPC_VERSION = "2.0"

RequestId = Union[StrictInt, StrictStr, None]

# Not a JSON parser: only used to salvage an id from a line that failed to parse.
_ID_RE = re.compile(r'"id"\s*:\s*(-?\d+|"(?:[^"\\]|\\.)*")')


class JsonRpcRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = JSONRPC_VERSION
    method: StrictStr
    params: Optional[Union[Dict[str, Any], List[Any]]] = None
    id: RequestId = None

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


def success_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def error_response(
    request_id: RequestId, code: int, message: str, data: Optional[Any] = None
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": request_id}


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


def recover_id(raw: str) -> Union[RequestId, _Missing]:
    """Best-effort id extraction from a malformed line; MISSING if none."""
    match = _ID_RE.search(raw)
    if not match:
        return MISSING
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return MISSING


def encode(message: Dict[str, Any]) -> str:
    """One message per line; json.dumps never emits raw newlines."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")) + "\n"
