"""Sage Events — builders for every event the SSE transport can send.

Invariants:
    - Every event is {"type": str, "data": dict}
    - stream_end is the last event of every stream (success or failure)
    - Field names are camelCase: this module is the wire contract with the web client

Design Decisions:
    - Plain dict builders over Pydantic models: events are produced on the hot path
      and serialized once by the transport
"""

from typing import Any

TEXT_DELTA = "text_delta"
TOOL_START = "tool:start"
TOOL_END = "tool:end"
STREAM_END = "stream_end"


# -- Chat lifecycle ------------------------------------------------------------

def chat_start_event(message_id: str) -> dict:
    return {"type": "chat:start", "data": {"messageId": message_id}}


def text_delta_event(message_id: str, content: str) -> dict:
    return {
        "type": TEXT_DELTA,
        "data": {"messageId": message_id, "content": content},
    }


def chat_end_event(message_id: str, input_tokens: int, output_tokens: int) -> dict:
    return {
        "type": "chat:end",
        "data": {
            "messageId": message_id,
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
        },
    }


def stream_end_event(
    error: bool = False, turns: int = 0,
    input_tokens: int = 0, output_tokens: int = 0,
) -> dict:
    return {
        "type": STREAM_END,
        "data": {
            "error": error,
            "turns": turns,
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
        },
    }


# -- Tool lifecycle ------------------------------------------------------------

def tool_start_event(tool_use_id: str, tool_name: str, tool_input: dict) -> dict:
    return {
        "type": TOOL_START,
        "data": {
            "toolUseId": tool_use_id,
            "toolName": tool_name,
            "input": tool_input,
        },
    }


def tool_end_event(
    tool_use_id: str, tool_name: str, result: Any, is_error: bool,
) -> dict:
    return {
        "type": TOOL_END,
        "data": {
            "toolUseId": tool_use_id,
            "toolName": tool_name,
            "result": result,
            "isError": is_error,
        },
    }


# -- Panel / UI / session ------------------------------------------------------

def panel_event(kind: str, data: dict) -> dict:
    """Tool-driven panel update, e.g. panel_event("spark", {...}) -> panel:spark."""
    return {"type": f"panel:{kind}", "data": data}


def ui_ready_event(stage: str, summary: str) -> dict:
    return {"type": "ui:ready", "data": {"stage": stage, "summary": summary}}


def session_stage_event(session_id: str, stage: str) -> dict:
    return {"type": "session:stage", "data": {"sessionId": session_id, "stage": stage}}


def unexpected_error_event() -> dict:
    return {
        "type": "error",
        "data": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "severity": "critical",
            "retryable": False,
        },
    }
