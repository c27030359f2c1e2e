"""Error Hierarchy — typed, categorized exceptions for every Sage failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Retryable conditions are flagged explicitly (retryable=True)
    - to_response() produces the REST envelope; to_sse_event() the SSE error event
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with SageError base: one FastAPI handler catches all
    - Tool-local failures never surface as exceptions past the dispatcher; they are
      converted to error results (see services/tool_registry.py)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    tool_name: str | None = None
    stage: str | None = None
    turn: int | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class SageError(Exception):
    """Base exception for all Sage errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.retryable = retryable

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "tool_name": self.context.tool_name,
                    "stage": self.context.stage,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_sse_event(self) -> dict:
        """Convert to SSE error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "retryable": self.retryable,
            },
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ToolInputError(SageError):
    """Tool input failed validation inside a handler."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "TOOL_INPUT_INVALID", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field


class ResourceNotFoundError(SageError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class StageTransitionError(SageError):
    """Stage advance requested before the current stage signalled ready."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "STAGE_NOT_READY", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )


class NothingToUndoError(SageError):
    """Undo requested for a section with no usable version history."""
    def __init__(self, section_path: str, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "NOTHING_TO_UNDO", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.section_path = section_path


class ConcurrencyError(SageError):
    """Concurrent modification of the adventure document detected."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409, retryable=True,
        )


class RateLimitExceededError(SageError):
    """Admission control denied the request."""
    def __init__(
        self, tier: str, limit: int, retry_after_ms: int,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            "Too many requests. Please wait before trying again.",
            "RATE_LIMIT", ErrorCategory.RATE_LIMIT,
            ErrorSeverity.WARNING, ctx, 429, retryable=True,
        )
        self.tier = tier
        self.limit = limit
        self.retry_after_ms = retry_after_ms

    def to_response(self) -> dict:
        """Flat body: clients key off code + retryAfterMs."""
        return {
            "error": self.message,
            "code": self.code,
            "retryable": True,
            "retryAfterMs": self.retry_after_ms,
        }


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DuplicateToolError(SageError):
    """A tool handler was registered twice under the same name."""
    def __init__(self, tool_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool handler '{tool_name}' is already registered",
            "DUPLICATE_TOOL", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.tool_name = tool_name


class DatabaseError(SageError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


_RETRYABLE_API_ERRORS = frozenset({"rate_limit", "overloaded", "connection_error", "timeout"})


class AnthropicAPIError(SageError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
            retryable=api_error_type in _RETRYABLE_API_ERRORS,
        )
        self.api_error_type = api_error_type


class StreamProtocolError(SageError):
    """Provider stream framing violated the expected event sequence."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed provider stream: {message}",
            "STREAM_PROTOCOL_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )


class ConversationLoopExceededError(SageError):
    """Model kept calling tools past the turn cap."""
    def __init__(self, max_turns: int, context: ErrorContext | None = None):
        super().__init__(
            f"Conversation exceeded maximum turn limit ({max_turns})",
            "AGENT_LOOP_EXCEEDED", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )
