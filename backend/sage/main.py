"""Sage Codex API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SageError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - One RateLimitStore per process, compacted by a background task (never on
      the request path); one Anthropic client and ConversationLoop per process

Design Decisions:
    - Lifespan over @app.on_event: cleaner startup/shutdown pairing
    - Rate-limit store attached at import time so routes work even where the
      lifespan does not run (ASGI test transports)
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sage.api.error_handlers import register_error_handlers
from sage.api.routes import chat, health, sessions
from sage.config import Settings, get_settings
from sage.core.rate_limit import RateLimitStore
from sage.infrastructure.anthropic_client import ResilientAnthropicClient
from sage.infrastructure.database import init_db
from sage.infrastructure.observability import setup_logging
from sage.services.conversation_loop import ConversationLoop

logger = logging.getLogger(__name__)


async def compact_rate_limits(store: RateLimitStore, settings: Settings) -> None:
    """Drop idle rate-limit keys every cleanup interval until cancelled."""
    window_ms = settings.longest_rate_limit_window_ms
    while True:
        await asyncio.sleep(settings.rate_limit_cleanup_interval_seconds)
        removed = store.compact(window_ms)
        if removed:
            logger.info("Compacted rate-limit store (%d keys removed)", removed)


def build_conversation_loop(settings: Settings) -> ConversationLoop:
    client = ResilientAnthropicClient(
        api_key=settings.anthropic_api_key,
        max_retries=settings.anthropic_max_retries,
        base_delay_ms=settings.anthropic_base_delay_ms,
        max_delay_ms=settings.anthropic_max_delay_ms,
        timeout_seconds=settings.anthropic_timeout_seconds,
    )
    return ConversationLoop(
        client,
        model=settings.agent_model,
        max_tokens=settings.agent_max_tokens,
        max_turns=settings.agent_max_turns,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.conversation_loop = build_conversation_loop(settings)
    compaction = asyncio.create_task(
        compact_rate_limits(app.state.rate_limit_store, settings),
    )
    logger.info("Sage Codex API started")
    yield
    logger.info("Sage Codex API shutting down")
    compaction.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await compaction
    await manager.dispose()


app = FastAPI(
    title="Sage Codex API", version="1.0.0", lifespan=lifespan,
)
app.state.rate_limit_store = RateLimitStore()

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(chat.router)

register_error_handlers(app)
