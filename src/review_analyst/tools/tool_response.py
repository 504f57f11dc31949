"""MCP-style tool response envelopes."""

import json
from typing import Any, Dict, List, Optional

from review_analyst.execution.error_classifier import ErrorMeta


def _to_text_content(
    structured: Dict[str, Any], text: Optional[str] = None
) -> List[Dict[str, str]]:
    body = text if text is not None else json.dumps(structured, default=str)
    return [{"type": "text", "text": body}]


def create_tool_response(
    structured: Dict[str, Any], text: Optional[str] = None
) -> Dict[str, Any]:
    """
    Wrap structured content in a tool response.

    Args:
        structured: Structured payload, usually ``{"ok": True, "result": ...}``
        text: Human-readable text; the JSON payload is used when omitted
    """
    return {
        "content": _to_text_content(structured, text),
        "structuredContent": structured,
    }


def create_error_tool_response(
    code: str,
    message: str,
    result: Any = None,
    meta: Optional[ErrorMeta] = None,
) -> Dict[str, Any]:
    """Build an ``isError`` tool response carrying a stable error code."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if meta is not None:
        error["kind"] = meta.kind.value
        error["retryable"] = meta.retryable

    structured: Dict[str, Any] = {"ok": False, "error": error}
    if result is not None:
        structured["result"] = result

    return {
        "content": _to_text_content(structured),
        "structuredContent": structured,
        "isError": True,
    }
