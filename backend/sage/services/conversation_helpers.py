"""Conversation Helpers — pure functions used by the conversation loop.

Invariants:
    - fold_history keeps plain text only: tool_use / tool_result blocks never persist
    - Folded history strictly alternates roles (consecutive same-role text is merged)
    - All functions are pure (no IO)
"""

from sage.core.conversation_types import CollectedToolUse


def message_text(content: object) -> str:
    """Plain text of a message's content (string or block list)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            b.get("text", "") for b in content
            if isinstance(b, dict) and b.get("type") == "text"
        )
    return ""


def fold_history(messages: list[dict]) -> list[dict]:
    """Collapse a request's working messages to persisted plain-text history."""
    folded: list[dict] = []
    for msg in messages:
        text = message_text(msg.get("content")).strip()
        if not text:
            continue
        role = msg.get("role")
        if folded and folded[-1]["role"] == role:
            folded[-1]["content"] += "\n\n" + text
        else:
            folded.append({"role": role, "content": text})
    return folded


def tool_call_record(tool_use: CollectedToolUse, tool_end: dict, turn: int) -> dict:
    """Tool-call log entry from a tool:end event's data."""
    return {
        "toolUseId": tool_use.id,
        "toolName": tool_use.name,
        "input": tool_use.input,
        "result": tool_end["data"]["result"],
        "isError": tool_end["data"]["isError"],
        "turn": turn,
    }
